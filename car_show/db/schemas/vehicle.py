# db/schemas/vehicle.py
import uuid
from typing import Optional
from car_show.db.schemas._base import OrmModel

class VehicleTypeCreate(OrmModel):
    name: str
    is_active: bool = True

class VehicleTypeRead(VehicleTypeCreate):
    id: uuid.UUID

class VehicleClassCreate(OrmModel):
    name: str
    vehicle_type_id: Optional[uuid.UUID] = None
    is_active: bool = True

class VehicleClassRead(VehicleClassCreate):
    id: uuid.UUID

class CarBase(OrmModel):
    vehicle_type_id: uuid.UUID
    class_id: Optional[uuid.UUID] = None
    owner_id: Optional[uuid.UUID] = None
    year: Optional[int] = None
    make: str
    model: str
    is_active: bool = True

class CarCreate(CarBase):
    # assigned as max(voter_id) + 1 when omitted
    voter_id: Optional[int] = None

class CarRead(CarBase):
    id: uuid.UUID
    voter_id: int

    @property
    def label(self) -> str:
        return format_car_label(self.year, self.make, self.model)


def format_car_label(year: Optional[int], make: str, model: str) -> str:
    parts = [str(year)] if year else []
    parts.extend([make, model])
    return " ".join(p for p in parts if p)
