# bot/middlewares/user.py
from typing import Callable, Self, Awaitable, Any, ClassVar, Optional, Dict
from aiogram import BaseMiddleware
from aiogram.types import User as TgUser
from car_show.db.schemas.user import UserRead
from car_show.bot.services.user import UserService
from car_show.bot.services.audit_log import audit_logger

class UserMiddleware(BaseMiddleware):
	"""Resolves (or registers) the Telegram sender and exposes it to handlers as ``current_user``."""
	_instance: ClassVar[Optional["UserMiddleware"]] = None

	def __new__(cls, *args, **kwargs) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)

		return cls._instance

	def __init__(self,  *args, **kwargs) -> None:
		if getattr(self, "_initialized", False):
			return

		self._user_service = UserService()

		self._initialized = True

	async def get_user(self, tg_user: TgUser) -> Optional[UserRead]:
		return await self._user_service.get_user(
			tg_id=tg_user.id,
			tg_username=tg_user.username,
			name=tg_user.full_name or None,
			autocreate=True,
		)

	async def __call__(self,
		handler: Callable[[Any, Dict[str, Any]], Awaitable[Any]],
		event: Any,
		data: dict[str, Any]) -> Any:
		tg_user: Optional[TgUser] = data.get("event_from_user")
		if tg_user is None:
			return

		user = await self.get_user(tg_user)
		if user is None or not user.is_active:
			return

		data["current_user"] = user
		# bind actor context for downstream audit entries
		token = audit_logger.bind_actor(user.id)
		try:
			return await handler(event, data)
		finally:
			audit_logger.unbind_actor(token)
