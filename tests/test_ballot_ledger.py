"""Tests for specialty contest ballots."""

import asyncio
import uuid

import pytest

from car_show.bot.services.ballot_ledger import car_in_scope
from car_show.bot.services.errors import AlreadyVoted, NotEligible, NotFound, NotOpen
from car_show.db.enums import ContestType, VoteState
from car_show.db.schemas.specialty_contest import SpecialtyContestCreate, SpecialtyContestUpdate
from car_show.db.schemas.user import UserUpdate
from conftest import open_contest


class TestCast:
    @pytest.fixture(autouse=True)
    async def _open(self, engine, show):
        await open_contest(engine, ContestType.SPECIALTY)

    async def test_cast_stores_ballot(self, engine, show):
        ballot = await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[2].id)
        assert ballot.contest_id == show.people_choice.id
        assert ballot.car_id == show.cars[2].id

        [detail] = await engine.list_ballots(show.people_choice.id)
        assert detail.voter_name == "Voter 1"
        assert detail.car_voter_id == 3
        assert detail.car_label == "1962 Ford Model 3"

    async def test_second_ballot_is_rejected(self, engine, show):
        await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[2].id)
        with pytest.raises(AlreadyVoted):
            await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[3].id)

        ballots = await engine.list_ballots(show.people_choice.id)
        assert [b.car_id for b in ballots] == [show.cars[2].id]

    async def test_concurrent_ballots_store_one(self, engine, show):
        results = await asyncio.gather(
            engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id),
            engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[1].id),
            return_exceptions=True,
        )
        assert len([r for r in results if isinstance(r, AlreadyVoted)]) == 1
        assert len([r for r in results if not isinstance(r, BaseException)]) == 1
        assert len(await engine.list_ballots(show.people_choice.id)) == 1

    async def test_one_ballot_per_contest_not_per_show(self, engine, show):
        await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id)
        await engine.cast_specialty_ballot(show.invite_only.id, show.voters[0].id, show.cars[0].id)
        votable = await engine.list_votable_contests(show.voters[0].id)
        assert all(v.has_voted for v in votable)

    async def test_allow_list_rejects_others(self, engine, show):
        with pytest.raises(NotEligible) as exc_info:
            await engine.cast_specialty_ballot(show.invite_only.id, show.voters[1].id, show.cars[0].id)
        assert exc_info.value.code == "not_eligible"

    async def test_inactive_user_is_not_eligible(self, engine, show, db):
        await db.update_user(UserUpdate(id=show.voters[2].id, is_active=False))
        with pytest.raises(NotEligible):
            await engine.cast_specialty_ballot(show.people_choice.id, show.voters[2].id, show.cars[0].id)

    async def test_unknown_user_is_not_eligible(self, engine, show):
        with pytest.raises(NotEligible):
            await engine.cast_specialty_ballot(show.people_choice.id, uuid.uuid4(), show.cars[0].id)

    async def test_car_outside_contest_class(self, engine, show):
        with pytest.raises(NotFound):
            await engine.cast_specialty_ballot(show.invite_only.id, show.voters[0].id, show.cars[4].id)

    async def test_unknown_car(self, engine, show):
        with pytest.raises(NotFound):
            await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, uuid.uuid4())

    async def test_unknown_contest(self, engine, show):
        with pytest.raises(NotFound):
            await engine.cast_specialty_ballot(uuid.uuid4(), show.voters[0].id, show.cars[0].id)

    async def test_inactive_contest(self, engine, show, db):
        await db.update_specialty_contest(SpecialtyContestUpdate(id=show.people_choice.id, is_active=False))
        with pytest.raises(NotFound):
            await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id)


class TestStateGate:
    @pytest.mark.parametrize("locked", [False, True])
    async def test_rejected_unless_open(self, engine, show, locked):
        if locked:
            await open_contest(engine, ContestType.SPECIALTY)
            await engine.set_contest_state(ContestType.SPECIALTY, VoteState.LOCKED)
        with pytest.raises(NotOpen):
            await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id)
        assert await engine.list_ballots(show.people_choice.id) == []

    async def test_judge_state_does_not_open_ballots(self, engine, show):
        await open_contest(engine, ContestType.JUDGE)
        with pytest.raises(NotOpen):
            await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id)


class TestDelete:
    async def test_delete_allows_a_new_ballot(self, engine, show):
        await open_contest(engine, ContestType.SPECIALTY)
        ballot = await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id)

        removed = await engine.delete_ballot(ballot.id, actor_id=show.admin.id)
        assert removed.id == ballot.id
        assert await engine.list_ballots(show.people_choice.id) == []

        again = await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[1].id)
        assert again.car_id == show.cars[1].id

    async def test_delete_works_in_any_state(self, engine, show):
        await open_contest(engine, ContestType.SPECIALTY)
        ballot = await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id)
        await engine.set_contest_state(ContestType.SPECIALTY, VoteState.CLOSED)

        await engine.delete_ballot(ballot.id)
        assert await engine.list_ballots(show.people_choice.id) == []

    async def test_delete_unknown_ballot(self, engine, show):
        with pytest.raises(NotFound):
            await engine.delete_ballot(uuid.uuid4())


class TestReads:
    async def test_votable_contests_follow_eligibility(self, engine, show):
        first = await engine.list_votable_contests(show.voters[0].id)
        second = await engine.list_votable_contests(show.voters[1].id)
        assert {v.contest.id for v in first} == {show.people_choice.id, show.invite_only.id}
        assert [v.contest.id for v in second] == [show.people_choice.id]

    async def test_votable_contests_flag_cast_ballots(self, engine, show):
        await open_contest(engine, ContestType.SPECIALTY)
        await engine.cast_specialty_ballot(show.people_choice.id, show.voters[0].id, show.cars[0].id)
        flags = {v.contest.id: v.has_voted for v in await engine.list_votable_contests(show.voters[0].id)}
        assert flags == {show.people_choice.id: True, show.invite_only.id: False}

    async def test_cars_for_class_contest(self, engine, show):
        cars = await engine.list_cars_for_contest(show.invite_only.id)
        assert [c.voter_id for c in cars] == [1, 2, 3, 4]

    async def test_cars_for_open_contest(self, engine, show):
        cars = await engine.list_cars_for_contest(show.people_choice.id)
        assert [c.voter_id for c in cars] == [1, 2, 3, 4, 5, 6, 7]

    async def test_list_ballots_of_unknown_contest(self, engine, show):
        with pytest.raises(NotFound):
            await engine.list_ballots(uuid.uuid4())


class TestScope:
    async def test_vehicle_type_scope(self, show):
        contest = show.people_choice.model_copy(update={"vehicle_type_id": show.other_type.id})
        assert car_in_scope(contest, show.other_car)
        assert not car_in_scope(contest, show.cars[0])

    async def test_unscoped_contest_takes_any_car(self, show):
        assert car_in_scope(show.people_choice, show.other_car)

    async def test_type_scoped_contest_lists_only_that_type(self, engine, show, db):
        trucks = await db.create_specialty_contest(
            SpecialtyContestCreate(name="Best Truck", allow_all_users=True, vehicle_type_id=show.other_type.id)
        )
        assert [c.id for c in await engine.list_cars_for_contest(trucks.id)] == [show.other_car.id]
