# db/models/car.py
import uuid
from typing import Optional
from sqlalchemy import Boolean, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from car_show.db.models._base import Base

class Car(Base):
    __tablename__ = "car"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # public car number; also the natural row order of the ledgers
    voter_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True
    )
    vehicle_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("vehicle_type.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    class_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("vehicle_class.id", ondelete="SET NULL"), nullable=True, index=True
    )
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    make: Mapped[str] = mapped_column(String(128), nullable=False)
    model: Mapped[str] = mapped_column(String(128), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    owner = relationship("User", back_populates="cars")
    vehicle_class = relationship("VehicleClass")
