# bot/services/ballot_ledger.py
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from car_show.db.database import DataBase
from car_show.db.enums import ContestType
from car_show.db.schemas.ballot import BallotCreate, BallotDetail, BallotRead
from car_show.db.schemas.specialty_contest import SpecialtyContestRead, VotableContest
from car_show.db.schemas.vehicle import CarRead
from car_show.bot.services.errors import AlreadyVoted, NotEligible, NotFound, StorageError
from car_show.bot.services.vote_state import VoteStateController

logger = logging.getLogger(__name__)


def car_in_scope(contest: SpecialtyContestRead, car: CarRead) -> bool:
	"""A contest limited to a vehicle type and/or class only accepts matching cars."""
	if contest.vehicle_type_id is not None and car.vehicle_type_id != contest.vehicle_type_id:
		return False
	if contest.class_id is not None and car.class_id != contest.class_id:
		return False
	return True


class BallotLedger:
	"""One immutable ballot per (specialty contest, user)."""

	def __init__(self, controller: VoteStateController, database: Optional[DataBase] = None) -> None:
		self._controller = controller
		self._database = database or DataBase()

	async def cast(self, contest_id: UUID, user_id: UUID, car_id: UUID) -> BallotRead:
		contest = await self._database.get_specialty_contest(contest_id)
		if contest is None or not contest.is_active:
			raise NotFound(f"Specialty contest {contest_id} not found", contest_id=contest_id)

		async with self._controller.gate(ContestType.SPECIALTY):
			if not await self.is_eligible(contest, user_id):
				raise NotEligible(f"User {user_id} may not vote in {contest.name}", contest_id=contest_id, user_id=user_id)

			car = await self._database.get_car(car_id)
			if car is None or not car.is_active or not car_in_scope(contest, car):
				raise NotFound(f"Car {car_id} is not part of {contest.name}", car_id=car_id, contest_id=contest_id)

			try:
				ballot = await self._database.create_ballot(
					BallotCreate(contest_id=contest_id, user_id=user_id, car_id=car_id)
				)
			except IntegrityError as exc:
				raise AlreadyVoted(
					f"User {user_id} already voted in {contest.name}", contest_id=contest_id, user_id=user_id
				) from exc
			except SQLAlchemyError as exc:
				raise StorageError(f"Could not store ballot for contest {contest_id}") from exc

		logger.info("Ballot %s cast in contest %s for car %s", ballot.id, contest_id, car_id)
		return ballot

	async def delete(self, ballot_id: UUID) -> BallotRead:
		removed = await self._database.delete_ballot(ballot_id)
		if removed is None:
			raise NotFound(f"Ballot {ballot_id} not found", ballot_id=ballot_id)
		logger.info("Ballot %s removed from contest %s", ballot_id, removed.contest_id)
		return removed

	async def is_eligible(self, contest: SpecialtyContestRead, user_id: UUID) -> bool:
		user = await self._database.get_user_by_id(user_id)
		if user is None or not user.is_active:
			return False
		if contest.allow_all_users:
			return True
		return await self._database.is_specialty_voter(contest.id, user_id)

	async def list_ballots(self, contest_id: UUID) -> list[BallotDetail]:
		await self._require_contest(contest_id)
		return await self._database.list_ballots(contest_id)

	async def list_votable_contests(self, user_id: UUID) -> list[VotableContest]:
		"""Active contests the user may vote in, flagged with whether a ballot already exists."""
		voted = await self._database.list_voted_contest_ids(user_id)
		result: list[VotableContest] = []
		for contest in await self._database.list_specialty_contests():
			if await self.is_eligible(contest, user_id):
				result.append(VotableContest(contest=contest, has_voted=contest.id in voted))
		return result

	async def list_cars_for_contest(self, contest_id: UUID) -> list[CarRead]:
		contest = await self._require_contest(contest_id)
		return await self._database.list_cars(vehicle_type_id=contest.vehicle_type_id, class_id=contest.class_id)

	async def _require_contest(self, contest_id: UUID) -> SpecialtyContestRead:
		contest = await self._database.get_specialty_contest(contest_id)
		if contest is None:
			raise NotFound(f"Specialty contest {contest_id} not found", contest_id=contest_id)
		return contest
