"""End to end runs through the engine, including the audit trail."""

import pytest
from sqlalchemy.exc import OperationalError

from car_show.bot.services.audit_log import audit_logger
from car_show.bot.services.errors import AlreadyVoted, InvalidTransition, NotOpen
from car_show.db.enums import Audience, ContestType, VoteState
from conftest import open_contest


class TestShowDay:
    async def test_full_show(self, engine, show, recorder):
        # morning: judging opens, judges score the classic class
        await open_contest(engine, ContestType.JUDGE)
        for judge, values in zip(show.judges, [(8, 7, 40), (9, 9, 45)]):
            await engine.submit_judge_scores(show.cars[0].id, judge.id, list(zip(show.q, values)))
            await engine.submit_judge_scores(show.cars[1].id, judge.id, [(show.q[2], 30)])

        # afternoon: public voting
        await open_contest(engine, ContestType.SPECIALTY)
        for voter in show.voters:
            await engine.cast_specialty_ballot(show.people_choice.id, voter.id, show.cars[1].id)
        await engine.cast_specialty_ballot(show.invite_only.id, show.voters[0].id, show.cars[3].id)

        judge_lock = await engine.set_contest_state(ContestType.JUDGE, VoteState.LOCKED)
        specialty_lock = await engine.set_contest_state(ContestType.SPECIALTY, VoteState.LOCKED)
        await engine.notifier.drain()

        assert judge_lock.publish.entries == 2
        assert specialty_lock.publish.entries == 2

        classic = await engine.get_published_snapshot(ContestType.JUDGE, show.classes[0].id)
        assert [(e.car_id, e.total) for e in classic] == [(show.cars[0].id, 118.0), (show.cars[1].id, 60.0)]

        people = await engine.get_published_snapshot(ContestType.SPECIALTY, show.people_choice.id)
        assert [(e.car_id, e.total) for e in people] == [(show.cars[1].id, 3.0)]

        assert [e.audience for e in recorder.events] == [Audience.JUDGE, Audience.ALL, Audience.JUDGE, Audience.ALL]

        # nothing more is accepted once locked
        with pytest.raises(NotOpen):
            await engine.submit_judge_scores(show.cars[2].id, show.judges[0].id, [(show.q[0], 1)])
        with pytest.raises(NotOpen):
            await engine.cast_specialty_ballot(show.people_choice.id, show.admin.id, show.cars[2].id)

    async def test_locked_cannot_close_directly(self, engine, show):
        await open_contest(engine, ContestType.SPECIALTY)
        await engine.set_contest_state(ContestType.SPECIALTY, VoteState.LOCKED)
        with pytest.raises(InvalidTransition) as exc_info:
            await engine.set_contest_state(ContestType.SPECIALTY, VoteState.CLOSED)
        assert exc_info.value.details == {"current": VoteState.LOCKED, "requested": VoteState.CLOSED}

    async def test_transition_result(self, engine, show):
        result = await engine.set_contest_state(ContestType.JUDGE, VoteState.OPEN, actor_id=show.admin.id)
        assert (result.contest_type, result.previous, result.state) == (
            ContestType.JUDGE,
            VoteState.CLOSED,
            VoteState.OPEN,
        )
        assert result.publish is None


class TestAuditTrail:
    async def test_ballot_is_audited_with_voter(self, engine, show, db):
        await open_contest(engine, ContestType.SPECIALTY)
        ballot = await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id)

        entries, total = await db.list_audit_logs(action="services.voting.cast_specialty_ballot")
        assert total == 1
        assert entries[0].actor_id == show.voters[0].id
        assert entries[0].payload["args"]["car_id"] == str(show.cars[0].id)
        assert entries[0].payload["result"]["id"] == str(ballot.id)

    async def test_failed_call_is_audited_as_error(self, engine, show, db):
        await open_contest(engine, ContestType.SPECIALTY)
        await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id)
        with pytest.raises(AlreadyVoted):
            await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[1].id)

        entries, total = await db.list_audit_logs(action="services.voting.cast_specialty_ballot.error")
        assert total == 1
        assert "AlreadyVoted" in entries[0].payload["error"]
        assert "result" not in entries[0].payload

    async def test_admin_actions_carry_the_admin(self, engine, show, db):
        await engine.set_contest_state(ContestType.JUDGE, VoteState.OPEN, actor_id=show.admin.id)
        entries, _ = await db.list_audit_logs(actor_id=show.admin.id)
        assert [e.action for e in entries] == ["services.voting.set_contest_state"]
        assert entries[0].payload["args"]["new_state"] == "open"

    async def test_override_is_audited_with_the_admin(self, engine, show, db):
        await engine.override_judge_scores(
            show.cars[0].id, {show.judges[0].id: [(show.q[0], 4)]}, actor_id=show.admin.id
        )
        [entry], _ = await db.list_audit_logs(action="services.voting.override_judge_scores")
        assert entry.actor_id == show.admin.id
        assert list(entry.payload["args"]["scores_by_judge"]) == [str(show.judges[0].id)]

    async def test_context_actor_is_used_when_no_actor_given(self, engine, show, db):
        token = audit_logger.bind_actor(show.admin.id)
        try:
            await engine.set_contest_state(ContestType.SPECIALTY, VoteState.OPEN)
        finally:
            audit_logger.unbind_actor(token)

        entries, _ = await db.list_audit_logs(action="services.voting.set_contest_state")
        assert entries[0].actor_id == show.admin.id

    async def test_reads_are_not_audited(self, engine, show, db):
        await engine.get_aggregated_results(ContestType.JUDGE)
        await engine.list_votable_contests(show.voters[0].id)
        entries, _ = await db.list_audit_logs(action="services.voting.get_aggregated_results")
        assert entries == []

    async def test_storage_failure_does_not_change_the_outcome(self, engine, show, db, monkeypatch):
        async def broken(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(db, "create_audit_log", broken)
        result = await engine.set_contest_state(ContestType.JUDGE, VoteState.OPEN)
        assert result.state == VoteState.OPEN
