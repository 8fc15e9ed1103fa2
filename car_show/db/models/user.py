# db/models/user.py
import uuid
from typing import List, Optional
from sqlalchemy import Enum as SAEnum, String, BigInteger, Boolean, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from car_show.db.models._base import Base
from car_show.db.enums import UserRole

class User(Base):
    __tablename__ = "user"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tg_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, unique=True)
    tg_username: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    role: Mapped[UserRole] = mapped_column(SAEnum(UserRole, name="user_role"), nullable=False, default=UserRole.USER)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    cars: Mapped[List["Car"]] = relationship(back_populates="owner", passive_deletes=True)
    audit_logs: Mapped[List["AuditLog"]] = relationship(back_populates="actor", passive_deletes=True)
