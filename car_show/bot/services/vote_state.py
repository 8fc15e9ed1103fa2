# bot/services/vote_state.py
"""Per contest type voting state: Closed, Open, Locked."""
import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from car_show.db.database import DataBase
from car_show.db.enums import ContestType, VoteState
from car_show.bot.services.errors import InvalidTransition, NotOpen, StorageError

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[VoteState, frozenset[VoteState]] = {
	VoteState.CLOSED: frozenset({VoteState.OPEN}),
	VoteState.OPEN: frozenset({VoteState.CLOSED, VoteState.LOCKED}),
	VoteState.LOCKED: frozenset({VoteState.OPEN}),
}

OnEnter = Callable[[VoteState, VoteState], Awaitable[None]]


def is_allowed(current: VoteState, new_state: VoteState) -> bool:
	return new_state in ALLOWED_TRANSITIONS.get(current, frozenset())


class ContestStateStore(Protocol):
	async def load(self, contest_type: ContestType) -> VoteState: ...

	async def save(self, contest_type: ContestType, state: VoteState) -> None: ...


class DatabaseStateStore:
	"""
	Keeps the state in the ``contest_state`` table; a missing row reads as Closed.

	``transaction()`` lets the publication of a Lock and the state row commit together.
	"""

	def __init__(self, database: Optional[DataBase] = None) -> None:
		self._database = database or DataBase()

	async def load(self, contest_type: ContestType) -> VoteState:
		return (await self._database.get_contest_state(contest_type)).state

	async def save(self, contest_type: ContestType, state: VoteState) -> None:
		await self._database.set_contest_state(contest_type, state)

	@asynccontextmanager
	async def transaction(self) -> AsyncIterator[None]:
		try:
			async with self._database.transaction():
				yield
		except SQLAlchemyError as exc:
			raise StorageError("Could not store the contest state") from exc


class VoteStateController:
	"""
	Owns the state machine of both contest types.

	A ledger write runs inside ``gate(contest_type)``; a transition runs through
	``set_state``. Both hold the same per contest type lock, so a transition and
	its publication never interleave with a gated write in this process.
	"""

	def __init__(self, store: Optional[ContestStateStore] = None) -> None:
		self._store: ContestStateStore = store or DatabaseStateStore()
		self._locks: dict[ContestType, asyncio.Lock] = {ct: asyncio.Lock() for ct in ContestType}

	async def get_state(self, contest_type: ContestType) -> VoteState:
		return await self._store.load(contest_type)

	@asynccontextmanager
	async def hold(self, contest_type: ContestType) -> AsyncIterator[VoteState]:
		"""Hold the contest lock in any state; for admin corrections."""
		async with self._locks[contest_type]:
			yield await self._store.load(contest_type)

	@asynccontextmanager
	async def gate(self, contest_type: ContestType) -> AsyncIterator[VoteState]:
		"""Hold the contest lock for a write; raises NotOpen unless the contest is Open."""
		async with self.hold(contest_type) as state:
			if state != VoteState.OPEN:
				raise NotOpen(
					f"{contest_type.value} voting is {state.value}",
					contest_type=contest_type,
					state=state,
				)
			yield state

	async def set_state(
		self,
		contest_type: ContestType,
		new_state: VoteState,
		on_enter: Optional[OnEnter] = None,
	) -> VoteState:
		"""
		Move `contest_type` to `new_state` and return the previous state.

		`on_enter(previous, new_state)` runs under the lock, in the same store
		transaction as the state row when the store provides one. If either
		raises, the state is left unchanged and the error propagates.
		"""
		async with self._locks[contest_type]:
			current = await self._store.load(contest_type)
			if not is_allowed(current, new_state):
				raise InvalidTransition(
					f"{contest_type.value}: {current.value} -> {new_state.value}",
					contest_type=contest_type,
					current=current,
					requested=new_state,
				)
			transaction = getattr(self._store, "transaction", None)
			async with transaction() if transaction is not None else nullcontext():
				if on_enter is not None:
					await on_enter(current, new_state)
				await self._store.save(contest_type, new_state)

		logger.info("Contest %s moved %s -> %s", contest_type.value, current.value, new_state.value)
		return current
