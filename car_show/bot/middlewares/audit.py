# bot/middlewares/audit.py
from typing import Callable, Awaitable, Any, Dict
from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message
from car_show.bot.services.audit_log import audit_logger

def handler_action(data: Dict[str, Any]) -> str | None:
	"""``bot.<router module>.<handler>`` of the handler aiogram picked for this event."""
	handler = data.get("handler")
	callback = getattr(handler, "callback", None)
	if callback is None:
		return None
	module = getattr(callback, "__module__", "").rsplit(".", 1)[-1]
	return f"bot.{module}.{callback.__name__}"

class AuditMiddleware(BaseMiddleware):
	"""Inner middleware: one audit row per handled message or button press, ``.error`` if the handler raised."""
	async def __call__(self,
		handler: Callable[[Any, Dict[str, Any]], Awaitable[Any]],
		event: Any,
		data: Dict[str, Any]) -> Any:

		action = handler_action(data)
		if action is None:
			return await handler(event, data)

		payload: Dict[str, Any] = {}
		if isinstance(event, Message):
			payload["text"] = event.text
		elif isinstance(event, CallbackQuery):
			payload["data"] = event.data
		user = data.get("current_user")
		actor = user.id if user is not None else None

		try:
			result = await handler(event, data)
		except Exception as exc:
			payload["error"] = repr(exc)
			await audit_logger.log(action=f"{action}.error", actor=actor, payload=payload)
			raise

		await audit_logger.log(action=action, actor=actor, payload=payload)
		return result
