# bot/services/score_ledger.py
import logging
from collections import Counter
from typing import Iterable, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from car_show.db.database import DataBase
from car_show.db.enums import ContestType, UserRole
from car_show.db.schemas.judge_question import JudgeQuestionRead
from car_show.db.schemas.judge_score import JudgeScoreCreate, JudgeScoreDetail, JudgeScoreRead, ScoreEntry
from car_show.db.schemas.vehicle import CarRead
from car_show.bot.services.errors import DuplicateQuestion, NotEligible, NotFound, OutOfRange, StorageError
from car_show.bot.services.vote_state import VoteStateController

logger = logging.getLogger(__name__)

EntryLike = ScoreEntry | tuple[UUID, int]


def as_entries(entries: Iterable[EntryLike]) -> list[ScoreEntry]:
	"""Accept ScoreEntry objects or plain (question_id, value) pairs."""
	result: list[ScoreEntry] = []
	for entry in entries:
		if isinstance(entry, ScoreEntry):
			result.append(entry)
		else:
			question_id, value = entry
			result.append(ScoreEntry(question_id=question_id, value=value))
	return result


class ScoreLedger:
	"""
	Judge score rows. A submission replaces everything a judge stored for a car;
	the admin override replaces everything stored for a car.

	Judge submissions are gated by the judge contest state. The override is an admin
	correction and works in any state, under the same lock.
	"""

	def __init__(self, controller: VoteStateController, database: Optional[DataBase] = None) -> None:
		self._controller = controller
		self._database = database or DataBase()

	async def list_questions_for_car(self, car_id: UUID) -> list[JudgeQuestionRead]:
		car = await self._require_car(car_id)
		return await self._database.list_judge_questions(car.vehicle_type_id)

	async def submit(self, car_id: UUID, judge_id: UUID, entries: Iterable[EntryLike]) -> list[JudgeScoreRead]:
		entries = as_entries(entries)
		async with self._controller.gate(ContestType.JUDGE):
			car = await self._require_car(car_id)
			rows = await self._build_rows(car, judge_id, entries)
			written = await self._replace(car_id, rows, judge_id=judge_id)

		logger.info("Judge %s stored %d scores for car %s", judge_id, len(written), car_id)
		return written

	async def override(self, car_id: UUID, scores_by_judge: Mapping[UUID, Iterable[EntryLike]]) -> list[JudgeScoreRead]:
		async with self._controller.hold(ContestType.JUDGE):
			car = await self._require_car(car_id)
			rows: list[JudgeScoreCreate] = []
			for judge_id, entries in scores_by_judge.items():
				rows.extend(await self._build_rows(car, judge_id, as_entries(entries)))
			written = await self._replace(car_id, rows)

		logger.info("Scores of car %s overridden: %d rows from %d judges", car_id, len(written), len(scores_by_judge))
		return written

	async def get_scores(self, car_id: UUID) -> list[JudgeScoreDetail]:
		await self._require_car(car_id, active_only=False)
		return await self._database.list_judge_scores(car_id)

	async def list_scored_car_ids(self, judge_id: UUID) -> set[UUID]:
		return await self._database.list_scored_car_ids(judge_id)

	async def _require_car(self, car_id: UUID, active_only: bool = True) -> CarRead:
		car = await self._database.get_car(car_id)
		if car is None or (active_only and not car.is_active):
			raise NotFound(f"Car {car_id} not found", car_id=car_id)
		return car

	async def _build_rows(self, car: CarRead, judge_id: UUID, entries: Sequence[ScoreEntry]) -> list[JudgeScoreCreate]:
		judge = await self._database.get_user_by_id(judge_id)
		if judge is None:
			raise NotFound(f"Judge {judge_id} not found", judge_id=judge_id)
		if judge.role != UserRole.JUDGE or not judge.is_active:
			raise NotEligible(f"User {judge_id} is not an active judge", judge_id=judge_id, role=judge.role)

		questions = {q.id: q for q in await self._database.list_judge_questions(car.vehicle_type_id)}
		for entry in entries:
			if entry.question_id not in questions:
				raise NotFound(f"Question {entry.question_id} not found", question_id=entry.question_id)

		repeated = [qid for qid, n in Counter(e.question_id for e in entries).items() if n > 1]
		if repeated:
			raise DuplicateQuestion(f"Question {repeated[0]} answered twice", question_id=repeated[0])

		for entry in entries:
			question = questions[entry.question_id]
			if not question.accepts(entry.value):
				raise OutOfRange(
					f"{entry.value} is outside [{question.min_score}, {question.max_score}]",
					question_id=question.id,
					value=entry.value,
					min_score=question.min_score,
					max_score=question.max_score,
				)

		return [
			JudgeScoreCreate(judge_id=judge_id, car_id=car.id, question_id=e.question_id, score=e.value)
			for e in entries
		]

	async def _replace(
		self,
		car_id: UUID,
		rows: Sequence[JudgeScoreCreate],
		judge_id: Optional[UUID] = None,
	) -> list[JudgeScoreRead]:
		try:
			return await self._database.replace_judge_scores(car_id, rows, judge_id=judge_id)
		except SQLAlchemyError as exc:
			raise StorageError(f"Could not store scores for car {car_id}") from exc
