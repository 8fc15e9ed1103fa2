# db/models/specialty_contest.py
import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from car_show.db.models._base import Base

class SpecialtyContest(Base):
    __tablename__ = "specialty_contest"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    allow_all_users: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vehicle_type_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("vehicle_type.id", ondelete="SET NULL"), nullable=True
    )
    class_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("vehicle_class.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, server_default=func.now())

    voters: Mapped[List["SpecialtyVoter"]] = relationship(
        back_populates="contest", cascade="all, delete-orphan", passive_deletes=True
    )
    ballots: Mapped[List["Ballot"]] = relationship(
        back_populates="contest", cascade="all, delete-orphan", passive_deletes=True
    )


class SpecialtyVoter(Base):
    """Allow-list membership of a specialty contest."""
    __tablename__ = "specialty_voter"
    __table_args__ = (
        UniqueConstraint("contest_id", "user_id", name="uq_specialty_voter_contest_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    contest_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("specialty_contest.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)

    contest: Mapped[SpecialtyContest] = relationship(back_populates="voters")
