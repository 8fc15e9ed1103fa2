# bot/services/notifier.py
"""Fire-and-forget broadcasts about contest state changes."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError

from car_show.db.database import DataBase
from car_show.db.enums import Audience, ContestType, UserRole, VoteState
from car_show.i18n import Localizer

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class NotificationEvent:
	audience: Audience
	message: str
	icon: str = ""

	@property
	def text(self) -> str:
		return f"{self.icon} {self.message}".strip()


# (contest type, entered state) -> (audience, locale key, icon)
TRANSITION_EVENTS: dict[tuple[ContestType, VoteState], tuple[Audience, str, str]] = {
	(ContestType.JUDGE, VoteState.OPEN): (Audience.JUDGE, "notify.judge.open", "🔓"),
	(ContestType.JUDGE, VoteState.CLOSED): (Audience.JUDGE, "notify.judge.closed", "🔒"),
	(ContestType.JUDGE, VoteState.LOCKED): (Audience.JUDGE, "notify.judge.locked", "🏆"),
	(ContestType.SPECIALTY, VoteState.OPEN): (Audience.ALL, "notify.specialty.open", "🗳️"),
	(ContestType.SPECIALTY, VoteState.CLOSED): (Audience.ALL, "notify.specialty.closed", "🔒"),
	(ContestType.SPECIALTY, VoteState.LOCKED): (Audience.ALL, "notify.specialty.locked", "📨"),
}


def transition_event(contest_type: ContestType, state: VoteState, lz: Optional[Localizer] = None) -> NotificationEvent:
	audience, key, icon = TRANSITION_EVENTS[(contest_type, state)]
	lz = lz or Localizer()
	return NotificationEvent(audience=audience, message=lz.get(key), icon=icon)


class NotificationAdapter(Protocol):
	async def publish(self, event: NotificationEvent) -> None: ...


class NotifierService:
	"""
	Fans events out to adapters in a background task.

	``notify`` never waits for delivery; adapter failures are logged and dropped.
	``drain`` awaits whatever is still in flight (shutdown, tests).
	"""

	def __init__(self, adapters: Optional[Iterable[NotificationAdapter]] = None) -> None:
		self._adapters: list[NotificationAdapter] = list(adapters or [])
		self._tasks: set[asyncio.Task] = set()

	def add_adapter(self, adapter: NotificationAdapter) -> None:
		self._adapters.append(adapter)

	def notify(self, audience: Audience, message: str, icon: str = "") -> NotificationEvent:
		return self.send(NotificationEvent(audience=audience, message=message, icon=icon))

	def send(self, event: NotificationEvent) -> NotificationEvent:
		if not self._adapters:
			logger.debug("No notification adapters; dropping %r", event)
			return event

		task = asyncio.get_running_loop().create_task(self._deliver(event))
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
		return event

	async def drain(self) -> None:
		while self._tasks:
			await asyncio.gather(*list(self._tasks))

	async def _deliver(self, event: NotificationEvent) -> None:
		for adapter in self._adapters:
			try:
				await adapter.publish(event)
			except Exception:
				logger.exception("Adapter %s failed to deliver %r", type(adapter).__name__, event)


class TelegramNotificationAdapter:
	"""Sends an event to every active user of the audience role through a bound aiogram Bot."""

	def __init__(self, bot: Optional[Bot] = None, database: Optional[DataBase] = None) -> None:
		self._bot = bot
		self._database = database or DataBase()

	def bind_bot(self, bot: Bot) -> None:
		self._bot = bot
		logger.info("Telegram notifier bound to bot %s", getattr(bot, "id", None))

	async def publish(self, event: NotificationEvent) -> None:
		if self._bot is None:
			logger.debug("Telegram notifier bot is not bound; skipping %r", event)
			return

		role = None if event.audience == Audience.ALL else UserRole(event.audience.value)
		users = await self._database.list_users(role=role)
		delivered = 0
		for user in users:
			if not isinstance(user.tg_id, int):
				continue
			try:
				await self._bot.send_message(chat_id=user.tg_id, text=event.text)
			except (TelegramForbiddenError, TelegramBadRequest):
				logger.warning("Failed to deliver notification to user %s", user.id, exc_info=True)
				continue
			delivered += 1

		logger.info("Notification to %s delivered to %d of %d users", event.audience.value, delivered, len(users))
