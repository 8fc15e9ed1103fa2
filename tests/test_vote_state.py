"""Tests for the contest state machine and its write gate."""

import asyncio
from contextlib import asynccontextmanager

import pytest

from car_show.bot.services.errors import InvalidTransition, NotOpen
from car_show.bot.services.vote_state import ALLOWED_TRANSITIONS, VoteStateController, is_allowed
from car_show.db.enums import ContestType, VoteState


class MemoryStore:
    def __init__(self, **states: VoteState) -> None:
        self.states = {ContestType(k): v for k, v in states.items()}
        self.saves: list[tuple[ContestType, VoteState]] = []

    async def load(self, contest_type: ContestType) -> VoteState:
        return self.states.get(contest_type, VoteState.CLOSED)

    async def save(self, contest_type: ContestType, state: VoteState) -> None:
        self.saves.append((contest_type, state))
        self.states[contest_type] = state


class TestTransitionTable:
    @pytest.mark.parametrize(
        "current,new_state",
        [
            (VoteState.CLOSED, VoteState.OPEN),
            (VoteState.OPEN, VoteState.CLOSED),
            (VoteState.OPEN, VoteState.LOCKED),
            (VoteState.LOCKED, VoteState.OPEN),
        ],
    )
    def test_allowed(self, current, new_state):
        assert is_allowed(current, new_state)

    @pytest.mark.parametrize(
        "current,new_state",
        [
            (VoteState.CLOSED, VoteState.LOCKED),
            (VoteState.LOCKED, VoteState.CLOSED),
            (VoteState.CLOSED, VoteState.CLOSED),
            (VoteState.OPEN, VoteState.OPEN),
            (VoteState.LOCKED, VoteState.LOCKED),
        ],
    )
    def test_rejected(self, current, new_state):
        assert not is_allowed(current, new_state)

    def test_every_state_has_an_exit(self):
        assert set(ALLOWED_TRANSITIONS) == set(VoteState)
        assert all(ALLOWED_TRANSITIONS[s] for s in VoteState)


class TestController:
    async def test_missing_state_reads_closed(self):
        controller = VoteStateController(MemoryStore())
        assert await controller.get_state(ContestType.JUDGE) == VoteState.CLOSED

    async def test_set_state_returns_previous(self):
        store = MemoryStore()
        controller = VoteStateController(store)
        previous = await controller.set_state(ContestType.JUDGE, VoteState.OPEN)
        assert previous == VoteState.CLOSED
        assert store.states[ContestType.JUDGE] == VoteState.OPEN

    async def test_invalid_transition_changes_nothing(self):
        store = MemoryStore()
        controller = VoteStateController(store)
        with pytest.raises(InvalidTransition):
            await controller.set_state(ContestType.SPECIALTY, VoteState.LOCKED)
        assert store.saves == []

    async def test_contest_types_are_independent(self):
        store = MemoryStore()
        controller = VoteStateController(store)
        await controller.set_state(ContestType.JUDGE, VoteState.OPEN)
        assert await controller.get_state(ContestType.SPECIALTY) == VoteState.CLOSED

    async def test_on_enter_receives_previous_and_new(self):
        seen = []

        async def on_enter(previous, new_state):
            seen.append((previous, new_state))

        controller = VoteStateController(MemoryStore(judge=VoteState.OPEN))
        await controller.set_state(ContestType.JUDGE, VoteState.LOCKED, on_enter=on_enter)
        assert seen == [(VoteState.OPEN, VoteState.LOCKED)]

    async def test_failing_on_enter_keeps_state(self):
        store = MemoryStore(judge=VoteState.OPEN)
        controller = VoteStateController(store)

        async def on_enter(previous, new_state):
            raise RuntimeError("publish failed")

        with pytest.raises(RuntimeError):
            await controller.set_state(ContestType.JUDGE, VoteState.LOCKED, on_enter=on_enter)
        assert await controller.get_state(ContestType.JUDGE) == VoteState.OPEN
        assert store.saves == []


class TestGate:
    @pytest.mark.parametrize("state", [VoteState.CLOSED, VoteState.LOCKED])
    async def test_gate_rejects_when_not_open(self, state):
        controller = VoteStateController(MemoryStore(specialty=state))
        entered = False
        with pytest.raises(NotOpen):
            async with controller.gate(ContestType.SPECIALTY):
                entered = True
        assert not entered

    async def test_gate_admits_when_open(self):
        controller = VoteStateController(MemoryStore(specialty=VoteState.OPEN))
        async with controller.gate(ContestType.SPECIALTY) as state:
            assert state == VoteState.OPEN

    async def test_gate_error_carries_state(self):
        controller = VoteStateController(MemoryStore(judge=VoteState.LOCKED))
        with pytest.raises(NotOpen) as exc_info:
            async with controller.gate(ContestType.JUDGE):
                pass
        assert exc_info.value.details["state"] == VoteState.LOCKED
        assert exc_info.value.code == "not_open"

    @pytest.mark.parametrize("state", list(VoteState))
    async def test_hold_admits_in_any_state(self, state):
        controller = VoteStateController(MemoryStore(judge=state))
        async with controller.hold(ContestType.JUDGE) as held:
            assert held == state

    async def test_hold_blocks_transitions(self):
        store = MemoryStore(judge=VoteState.OPEN)
        controller = VoteStateController(store)
        async with controller.hold(ContestType.JUDGE):
            transition = asyncio.create_task(controller.set_state(ContestType.JUDGE, VoteState.LOCKED))
            await asyncio.sleep(0.01)
            assert not transition.done()
            assert store.saves == []
        assert await transition == VoteState.OPEN


class TransactionalStore(MemoryStore):
    def __init__(self, **states: VoteState) -> None:
        super().__init__(**states)
        self.log: list[str] = []

    async def save(self, contest_type: ContestType, state: VoteState) -> None:
        self.log.append("save")
        await super().save(contest_type, state)

    @asynccontextmanager
    async def transaction(self):
        self.log.append("begin")
        try:
            yield
        except Exception:
            self.log.append("rollback")
            raise
        self.log.append("commit")


class TestTransitionTransaction:
    async def test_on_enter_and_save_share_the_transaction(self):
        store = TransactionalStore(judge=VoteState.OPEN)

        async def on_enter(previous, entered):
            store.log.append("publish")

        await VoteStateController(store).set_state(ContestType.JUDGE, VoteState.LOCKED, on_enter=on_enter)
        assert store.log == ["begin", "publish", "save", "commit"]

    async def test_failing_on_enter_rolls_back(self):
        store = TransactionalStore(judge=VoteState.OPEN)

        async def on_enter(previous, entered):
            raise RuntimeError("publish failed")

        with pytest.raises(RuntimeError):
            await VoteStateController(store).set_state(ContestType.JUDGE, VoteState.LOCKED, on_enter=on_enter)
        assert store.log == ["begin", "rollback"]
        assert store.saves == []

    async def test_invalid_transition_opens_no_transaction(self):
        store = TransactionalStore()
        with pytest.raises(InvalidTransition):
            await VoteStateController(store).set_state(ContestType.JUDGE, VoteState.LOCKED)
        assert store.log == []


class TestDatabaseStore:
    async def test_state_persists_through_engine(self, engine):
        await engine.set_contest_state(ContestType.JUDGE, VoteState.OPEN)
        assert await engine.get_contest_state(ContestType.JUDGE) == VoteState.OPEN
        assert await engine.get_contest_state(ContestType.SPECIALTY) == VoteState.CLOSED

    async def test_list_contest_states(self, engine):
        await engine.set_contest_state(ContestType.SPECIALTY, VoteState.OPEN)
        assert await engine.list_contest_states() == {
            ContestType.JUDGE: VoteState.CLOSED,
            ContestType.SPECIALTY: VoteState.OPEN,
        }

    async def test_round_trip_through_all_states(self, engine):
        for state in (VoteState.OPEN, VoteState.LOCKED, VoteState.OPEN, VoteState.CLOSED):
            await engine.set_contest_state(ContestType.JUDGE, state)
            assert await engine.get_contest_state(ContestType.JUDGE) == state

    async def test_invalid_transition_through_engine(self, engine, recorder):
        with pytest.raises(InvalidTransition):
            await engine.set_contest_state(ContestType.JUDGE, VoteState.CLOSED)
        await engine.notifier.drain()
        assert recorder.events == []
        assert await engine.get_contest_state(ContestType.JUDGE) == VoteState.CLOSED
