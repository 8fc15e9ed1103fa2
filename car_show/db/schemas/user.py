# db/schemas/user.py
import uuid
from typing import Optional
from car_show.db.schemas._base import OrmModel
from car_show.db.enums import UserRole
from car_show.utils.sentinels import Missing

class UserBase(OrmModel):
    tg_id: Optional[int] = None
    tg_username: Optional[str] = None
    name: Optional[str] = None
    role: UserRole = UserRole.USER
    is_active: bool = True

class UserCreate(UserBase): ...

class UserUpdate(OrmModel):
    id: uuid.UUID
    tg_id: int | Missing | None = Missing()
    tg_username: str | Missing | None = Missing()
    name: str | Missing | None = Missing()
    role: UserRole | Missing = Missing()
    is_active: bool | Missing = Missing()

class UserRead(UserBase):
    id: uuid.UUID

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.tg_username:
            return f"@{self.tg_username}"
        return str(self.id)[:8]
