# bot/middlewares/whitelist.py
from typing import Callable, Awaitable, Any, Dict
from aiogram import BaseMiddleware
from car_show.config import Settings

def is_whitelisted(tg_username: str | None) -> bool:
	return bool(tg_username) and tg_username.lstrip("@") in Settings().whitelist

class WhitelistMiddleware(BaseMiddleware):
	"""Marks users allowed to /switch_role (``WHITELIST`` setting)."""
	async def __call__(self,
		handler: Callable[[Any, Dict[str, Any]], Awaitable[Any]],
		event: Any,
		data: Dict[str, Any]) -> Any:

		user = data.get("current_user", None)
		data["is_whitelisted"] = is_whitelisted(user.tg_username) if user else False

		return await handler(event, data)
