# db/schemas/snapshot.py
import uuid
from datetime import datetime
from car_show.db.schemas._base import OrmModel
from car_show.db.enums import ContestType, VoteState

class SnapshotEntryCreate(OrmModel):
    result_type: ContestType
    scope_id: uuid.UUID
    car_id: uuid.UUID
    place: int
    position: int = 0
    total: float = 0

class SnapshotEntryRead(SnapshotEntryCreate):
    id: uuid.UUID
    published_at: datetime

class ContestStateRead(OrmModel):
    contest_type: ContestType
    state: VoteState
    updated_at: datetime | None = None
