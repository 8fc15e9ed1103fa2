# bot/services/user.py
from uuid import UUID
from typing import Self, ClassVar, Optional
from car_show.db.schemas.user import UserRead, UserCreate, UserUpdate
from car_show.db.enums import UserRole
from car_show.db.database import DataBase
from car_show.bot.services.audit_log import instrument_service_class

class UserService:
    _instance: ClassVar[Optional["UserService"]] = None

    def __new__(cls) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self.database = DataBase()
        self.users: dict[int, UserRead] = dict()
        self._initialized = True

    def _remember(self, user: UserRead) -> UserRead:
        if isinstance(user.tg_id, int):
            self.users[user.tg_id] = user
        return user

    def forget(self, tg_id: Optional[int] = None) -> None:
        """Drop one cached user, or the whole cache when `tg_id` is None."""
        if tg_id is None:
            self.users.clear()
        else:
            self.users.pop(tg_id, None)

    async def create_user(self, user: UserCreate) -> UserRead:
        return self._remember(await self.database.create_user(user))

    async def update_user(self, user: UserUpdate) -> UserRead:
        return self._remember(await self.database.update_user(user))

    async def change_role(self, user: UserRead, role: UserRole) -> UserRead:
        return await self.update_user(UserUpdate(id=user.id, role=role))

    async def list_by_role(self, role: Optional[UserRole] = None) -> list[UserRead]:
        """Active users of a role; `None` means everyone."""
        return await self.database.list_users(role=role)

    async def get_user(
        self,
        uid: Optional[UUID] = None,
        tg_id: Optional[int] = None,
        tg_username: Optional[str] = None,
        name: Optional[str] = None,
        autocreate: bool = False,
        autoupdate: bool = True,
    ) -> Optional[UserRead]:
        """
        Resolve a user by internal id or Telegram id.

        With `autocreate` an unknown Telegram id becomes a new USER;
        with `autoupdate` a changed Telegram username is written back.
        """
        user = self.users.get(tg_id) if tg_id is not None else None
        if user is None:
            user = await self.database.get_user_by_id(uid)
        if user is None:
            user = await self.database.get_user_by_tg_id(tg_id)
        if user is None and autocreate and isinstance(tg_id, int):
            user = await self.database.create_user(UserCreate(tg_id=tg_id, tg_username=tg_username, name=name))

        if user is None:
            return None

        if autoupdate and tg_username is not None and user.tg_username != tg_username.lstrip("@"):
            user = await self.database.update_user(UserUpdate(id=user.id, tg_username=tg_username))

        return self._remember(user)


instrument_service_class(
    UserService,
    prefix="services.user",
    actor_fields=("user", "actor"),
    exclude={"get_user", "list_by_role"},
)
