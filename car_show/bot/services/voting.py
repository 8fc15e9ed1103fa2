# bot/services/voting.py
"""
Composition root of the voting engine.

``VotingEngine`` is what the bot routers (and any other caller) talk to. It wires
the state controller, both ledgers, aggregation, the publisher and the notifier,
and keeps no state of its own besides those collaborators.
"""
import logging
from typing import Iterable, Mapping, Optional
from uuid import UUID

from car_show.db.database import DataBase
from car_show.db.enums import ContestType, VoteState
from car_show.db.schemas.ballot import BallotDetail, BallotRead
from car_show.db.schemas.judge_question import JudgeQuestionRead
from car_show.db.schemas.judge_score import JudgeScoreDetail, JudgeScoreRead
from car_show.db.schemas.results import PublishResult, ScopeResult, TransitionResult
from car_show.db.schemas.snapshot import SnapshotEntryRead
from car_show.db.schemas.specialty_contest import VotableContest
from car_show.db.schemas.vehicle import CarRead
from car_show.i18n import Localizer
from car_show.bot.services.aggregation import AggregationService
from car_show.bot.services.audit_log import instrument_service_class
from car_show.bot.services.ballot_ledger import BallotLedger
from car_show.bot.services.notifier import NotifierService, transition_event
from car_show.bot.services.publisher import Publisher
from car_show.bot.services.score_ledger import EntryLike, ScoreLedger
from car_show.bot.services.vote_state import ContestStateStore, DatabaseStateStore, VoteStateController

logger = logging.getLogger(__name__)


class VotingEngine:
    def __init__(
        self,
        *,
        database: Optional[DataBase] = None,
        state_store: Optional[ContestStateStore] = None,
        notifier: Optional[NotifierService] = None,
        podium_size: Optional[int] = None,
        localizer: Optional[Localizer] = None,
    ) -> None:
        self.database = database or DataBase()
        self.controller = VoteStateController(state_store or DatabaseStateStore(self.database))
        self.scores = ScoreLedger(self.controller, self.database)
        self.ballots = BallotLedger(self.controller, self.database)
        self.aggregation = AggregationService(self.database, podium_size=podium_size)
        self.publisher = Publisher(self.aggregation, self.database)
        self.notifier = notifier or NotifierService()
        self._lz = localizer or Localizer()

    # --------------------
    # Contest state
    # --------------------
    async def get_contest_state(self, contest_type: ContestType) -> VoteState:
        return await self.controller.get_state(contest_type)

    async def list_contest_states(self) -> dict[ContestType, VoteState]:
        return {ct: await self.controller.get_state(ct) for ct in ContestType}

    async def set_contest_state(
        self,
        contest_type: ContestType,
        new_state: VoteState,
        *,
        actor_id: Optional[UUID] = None,
    ) -> TransitionResult:
        """
        Apply an admin transition. Locking publishes the results first; if that
        fails the contest stays Open and the error propagates. Every successful
        transition broadcasts exactly one notification.
        """
        published: list[PublishResult] = []

        async def _publish_on_lock(previous: VoteState, entered: VoteState) -> None:
            if entered == VoteState.LOCKED:
                published.append(await self.publisher.publish(contest_type))

        previous = await self.controller.set_state(contest_type, new_state, on_enter=_publish_on_lock)
        self.notifier.send(transition_event(contest_type, new_state, self._lz))

        return TransitionResult(
            contest_type=contest_type,
            previous=previous,
            state=new_state,
            publish=published[0] if published else None,
        )

    # --------------------
    # Judge scores
    # --------------------
    async def submit_judge_scores(
        self,
        car_id: UUID,
        judge_id: UUID,
        entries: Iterable[EntryLike],
    ) -> list[JudgeScoreRead]:
        return await self.scores.submit(car_id, judge_id, entries)

    async def override_judge_scores(
        self,
        car_id: UUID,
        scores_by_judge: Mapping[UUID, Iterable[EntryLike]],
        *,
        actor_id: Optional[UUID] = None,
    ) -> list[JudgeScoreRead]:
        return await self.scores.override(car_id, scores_by_judge)

    async def get_scores(self, car_id: UUID) -> list[JudgeScoreDetail]:
        return await self.scores.get_scores(car_id)

    async def list_questions_for_car(self, car_id: UUID) -> list[JudgeQuestionRead]:
        return await self.scores.list_questions_for_car(car_id)

    async def list_scored_car_ids(self, judge_id: UUID) -> set[UUID]:
        return await self.scores.list_scored_car_ids(judge_id)

    # --------------------
    # Specialty ballots
    # --------------------
    async def cast_specialty_ballot(self, contest_id: UUID, user_id: UUID, car_id: UUID) -> BallotRead:
        return await self.ballots.cast(contest_id, user_id, car_id)

    async def delete_ballot(self, ballot_id: UUID, *, actor_id: Optional[UUID] = None) -> BallotRead:
        return await self.ballots.delete(ballot_id)

    async def list_ballots(self, contest_id: UUID) -> list[BallotDetail]:
        return await self.ballots.list_ballots(contest_id)

    async def list_votable_contests(self, user_id: UUID) -> list[VotableContest]:
        return await self.ballots.list_votable_contests(user_id)

    async def list_cars_for_contest(self, contest_id: UUID) -> list[CarRead]:
        return await self.ballots.list_cars_for_contest(contest_id)

    # --------------------
    # Results
    # --------------------
    async def get_aggregated_results(
        self,
        contest_type: ContestType,
        scope_id: Optional[UUID] = None,
    ) -> list[ScopeResult]:
        """Live results in any state; never written anywhere."""
        return await self.aggregation.results(contest_type, scope_id)

    async def get_published_snapshot(
        self,
        result_type: ContestType,
        scope_id: Optional[UUID] = None,
    ) -> list[SnapshotEntryRead]:
        return await self.publisher.snapshot(result_type, scope_id)


instrument_service_class(
    VotingEngine,
    prefix="services.voting",
    actor_fields=("actor_id", "judge_id", "user_id"),
    exclude={
        "get_contest_state",
        "list_contest_states",
        "get_scores",
        "list_questions_for_car",
        "list_scored_car_ids",
        "list_ballots",
        "list_votable_contests",
        "list_cars_for_contest",
        "get_aggregated_results",
        "get_published_snapshot",
    },
)
