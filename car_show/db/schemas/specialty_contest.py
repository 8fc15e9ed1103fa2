# db/schemas/specialty_contest.py
import uuid
from datetime import datetime
from typing import Optional
from car_show.db.schemas._base import OrmModel
from car_show.utils.sentinels import Missing

class SpecialtyContestBase(OrmModel):
    name: str
    description: Optional[str] = None
    allow_all_users: bool = False
    vehicle_type_id: Optional[uuid.UUID] = None
    class_id: Optional[uuid.UUID] = None
    is_active: bool = True

class SpecialtyContestCreate(SpecialtyContestBase): ...

class SpecialtyContestUpdate(OrmModel):
    id: uuid.UUID
    name: str | Missing = Missing()
    description: str | Missing | None = Missing()
    allow_all_users: bool | Missing = Missing()
    vehicle_type_id: uuid.UUID | Missing | None = Missing()
    class_id: uuid.UUID | Missing | None = Missing()
    is_active: bool | Missing = Missing()

class SpecialtyContestRead(SpecialtyContestBase):
    id: uuid.UUID
    created_at: datetime

class VotableContest(OrmModel):
    contest: SpecialtyContestRead
    has_voted: bool = False
