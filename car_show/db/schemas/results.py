# db/schemas/results.py
import uuid
from datetime import datetime
from typing import Optional
from car_show.db.schemas._base import OrmModel
from car_show.db.enums import ContestType, VoteState

class CarTotal(OrmModel):
    """Judge ledger rows of one car, summed."""
    car_id: uuid.UUID
    class_id: uuid.UUID
    voter_id: int
    label: str
    total: int = 0
    score_count: int = 0
    judge_count: int = 0

class BallotTally(OrmModel):
    """Ballots of one car within one specialty contest."""
    contest_id: uuid.UUID
    car_id: uuid.UUID
    voter_id: int
    label: str
    count: int = 0

class RankedEntry(OrmModel):
    car_id: uuid.UUID
    voter_id: int
    label: str
    place: int
    total: float
    # score rows for judge results, ballots for specialty results
    count: int = 0

class ScopeResult(OrmModel):
    result_type: ContestType
    scope_id: uuid.UUID
    scope_name: str
    ranking: list[RankedEntry] = []
    # judge: the podium; specialty: every car sharing the top count
    winners: list[RankedEntry] = []

    @property
    def is_tied(self) -> bool:
        return len(self.winners) > 1 and len({w.place for w in self.winners}) == 1

class PublishResult(OrmModel):
    contest_type: ContestType
    scopes: int
    entries: int
    published_at: datetime

class TransitionResult(OrmModel):
    contest_type: ContestType
    previous: VoteState
    state: VoteState
    # set only when the transition locked the contest
    publish: Optional[PublishResult] = None
