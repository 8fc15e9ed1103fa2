# db/models/snapshot.py
import uuid
from datetime import datetime
from sqlalchemy import DateTime, Enum as SAEnum, Float, ForeignKey, Index, Integer, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from car_show.db.models._base import Base
from car_show.db.enums import ContestType, VoteState

class SnapshotEntry(Base):
    """One published result row. Only the publisher creates or deletes these."""
    __tablename__ = "snapshot_entry"
    __table_args__ = (
        Index("ix_snapshot_entry_type_scope", "result_type", "scope_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    result_type: Mapped[ContestType] = mapped_column(SAEnum(ContestType, name="contest_type"), nullable=False)
    # vehicle class id for judge results, specialty contest id for specialty results
    scope_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    car_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("car.id", ondelete="CASCADE"), nullable=False)
    place: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, server_default=func.now())

    car = relationship("Car")


class ContestState(Base):
    __tablename__ = "contest_state"

    contest_type: Mapped[ContestType] = mapped_column(SAEnum(ContestType, name="contest_type"), primary_key=True)
    state: Mapped[VoteState] = mapped_column(
        SAEnum(VoteState, name="vote_state"), nullable=False, default=VoteState.CLOSED
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, server_default=func.now(), onupdate=func.now()
    )
