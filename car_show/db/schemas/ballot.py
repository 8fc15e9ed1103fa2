# db/schemas/ballot.py
import uuid
from datetime import datetime
from car_show.db.schemas._base import OrmModel

class BallotCreate(OrmModel):
    contest_id: uuid.UUID
    user_id: uuid.UUID
    car_id: uuid.UUID

class BallotRead(BallotCreate):
    id: uuid.UUID
    cast_at: datetime

class BallotDetail(BallotRead):
    voter_name: str
    car_label: str
    car_voter_id: int
