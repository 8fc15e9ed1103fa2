# db/models/ballot.py
import uuid
from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from car_show.db.models._base import Base

class Ballot(Base):
    __tablename__ = "ballot"
    __table_args__ = (
        # the only concurrency guard of the ballot ledger
        UniqueConstraint("contest_id", "user_id", name="uq_ballot_contest_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    contest_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("specialty_contest.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    car_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("car.id", ondelete="CASCADE"), nullable=False, index=True)
    cast_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, server_default=func.now())

    contest = relationship("SpecialtyContest", back_populates="ballots")
    user = relationship("User")
    car = relationship("Car")
