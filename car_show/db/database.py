# db/database.py
import uuid
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import AsyncIterator, Optional, ClassVar, Self, Any, Iterable, List, Sequence

from sqlalchemy import select, func, delete, insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from car_show.config import Settings
from car_show.db.enums import ContestType, UserRole, VoteState
from car_show.db.models._base import Base
from car_show.db.models.user import User
from car_show.db.models.audit_log import AuditLog
from car_show.db.models.vehicle import VehicleType, VehicleClass
from car_show.db.models.car import Car
from car_show.db.models.judge_question import JudgeCategory, JudgeQuestion
from car_show.db.models.judge_score import JudgeScore
from car_show.db.models.specialty_contest import SpecialtyContest, SpecialtyVoter
from car_show.db.models.ballot import Ballot
from car_show.db.models.snapshot import SnapshotEntry, ContestState
from car_show.db.schemas.user import UserCreate, UserRead, UserUpdate
from car_show.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from car_show.db.schemas.vehicle import (
    VehicleTypeCreate, VehicleTypeRead, VehicleClassCreate, VehicleClassRead,
    CarCreate, CarRead, format_car_label,
)
from car_show.db.schemas.judge_question import (
    JudgeCategoryCreate, JudgeCategoryRead, JudgeQuestionCreate, JudgeQuestionRead,
)
from car_show.db.schemas.judge_score import JudgeScoreCreate, JudgeScoreRead, JudgeScoreDetail
from car_show.db.schemas.specialty_contest import (
    SpecialtyContestCreate, SpecialtyContestRead, SpecialtyContestUpdate,
)
from car_show.db.schemas.ballot import BallotCreate, BallotRead, BallotDetail
from car_show.db.schemas.snapshot import SnapshotEntryCreate, SnapshotEntryRead, ContestStateRead
from car_show.db.schemas.results import CarTotal, BallotTally
from car_show.utils.sentinels import provided


_ambient_session: ContextVar[Optional[AsyncSession]] = ContextVar("ambient_session", default=None)


def _strip_at(username: Optional[str]) -> Optional[str]:
    if username and username.startswith("@"):
        return username[1:]
    return username


class DataBase():
    """
    Async SQLAlchemy database singleton.
    Usage:
        db = DataBase()  # same instance everywhere
        async with db.session() as s:
            ...
    """
    _instance: ClassVar[Optional["DataBase"]] = None

    def __new__(cls, *args: Any, **kwargs: Any) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)

        return cls._instance

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None) -> None:
        if getattr(self, "_initialized", False):
            return

        settings = Settings()
        url = url or settings.database_url
        echo = settings.db_echo if echo is None else echo
        self._engine: AsyncEngine = create_async_engine(url, echo=echo, pool_pre_ping=True)
        self._sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=False,
        )

        self._initialized = True

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Provides an AsyncSession with safe commit/rollback semantics.
        Everything done inside one `async with` block is a single transaction.
        Inside `transaction()` the enclosing session is reused and committed by it.
        """
        ambient = _ambient_session.get()
        if ambient is not None:
            yield ambient
            return

        session: AsyncSession = self._sessionmaker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Run several facade calls as one unit of work.
        Usage:
            async with db.transaction():
                await db.replace_snapshot(...)
                await db.set_contest_state(...)
        """
        if _ambient_session.get() is not None:
            yield _ambient_session.get()
            return

        async with self.session() as s:
            token = _ambient_session.set(s)
            try:
                yield s
            finally:
                _ambient_session.reset(token)

    # --- schema management helpers ---

    async def create_all(self) -> None:
        """
        Create tables based on Base metadata. Use only in dev/tests; prefer Alembic in prod.
        """
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    # ---------------------------------
    # Users
    # ---------------------------------

    async def create_user(self, data: UserCreate) -> UserRead:
        """
        Create a user from UserCreate schema and return UserRead object.
        On unique-constraint violation, re-raises IntegrityError for the caller to handle.
        """
        user = User(
            tg_id=data.tg_id,
            tg_username=_strip_at(data.tg_username),
            name=data.name,
            role=data.role,
            is_active=data.is_active,
        )

        async with self.session() as s:
            s.add(user)
            await s.flush()
            await s.refresh(user)

        return UserRead.model_validate(user)

    async def get_user_by_id(self, uid: Optional[uuid.UUID] = None) -> Optional[UserRead]:
        """
        Fetch a user by internal UUID primary key.

        Args:
            uid: User UUID. If None, returns None immediately.

        Returns:
            Optional[UserRead]: Pydantic DTO of the user if found; otherwise None.
        """
        if uid is None:
            return None

        async with self.session() as s:
            user_row = await s.get(User, uid)

        return UserRead.model_validate(user_row) if user_row is not None else None

    async def get_user_by_tg_id(self, tg_id: Optional[int] = None) -> Optional[UserRead]:
        """
        Fetch a user by Telegram numeric ID.

        Notes:
            - Relies on the unique constraint on `User.tg_id`.
        """
        if tg_id is None:
            return None

        async with self.session() as s:
            stmt = select(User).where(User.tg_id == tg_id)
            user_row = (await s.execute(stmt)).scalar_one_or_none()

        return UserRead.model_validate(user_row) if user_row is not None else None

    async def update_user(self, data: UserUpdate) -> UserRead:
        """
        Partially update a user by id.
        Only fields explicitly provided (i.e., not MISSING) are updated.
        Passing None for a provided field will NULL it in DB.

        Raises:
            LookupError: if the user with given id does not exist.
            IntegrityError: on unique constraint violation (tg_id).
        """
        async with self.session() as s:
            db_user = await s.get(User, data.id)
            if db_user is None:
                raise LookupError("User not found.")

            if provided(data.tg_id):
                db_user.tg_id = data.tg_id
            if provided(data.tg_username):
                db_user.tg_username = _strip_at(data.tg_username)
            if provided(data.name):
                db_user.name = data.name
            if provided(data.role):
                db_user.role = data.role
            if provided(data.is_active):
                db_user.is_active = data.is_active

            await s.flush()
            await s.refresh(db_user)

        return UserRead.model_validate(db_user)

    async def list_users(self, *, role: Optional[UserRole] = None, active_only: bool = True) -> list[UserRead]:
        """Users ordered by name; `role=None` returns every role."""
        async with self.session() as s:
            stmt = select(User)
            if role is not None:
                stmt = stmt.where(User.role == role)
            if active_only:
                stmt = stmt.where(User.is_active.is_(True))
            stmt = stmt.order_by(User.name.asc(), User.id.asc())
            rows = (await s.execute(stmt)).scalars().all()

        return [UserRead.model_validate(r) for r in rows]

    # ---------------------------------
    # Catalog: vehicle types, classes, cars, questions
    # ---------------------------------

    async def create_vehicle_type(self, payload: VehicleTypeCreate) -> VehicleTypeRead:
        async with self.session() as s:
            row = VehicleType(**payload.model_dump())
            s.add(row)
            await s.flush()
            await s.refresh(row)
            return VehicleTypeRead.model_validate(row)

    async def list_vehicle_types(self, *, active_only: bool = True) -> list[VehicleTypeRead]:
        async with self.session() as s:
            stmt = select(VehicleType).order_by(VehicleType.name.asc())
            if active_only:
                stmt = stmt.where(VehicleType.is_active.is_(True))
            rows = (await s.execute(stmt)).scalars().all()
        return [VehicleTypeRead.model_validate(r) for r in rows]

    async def create_vehicle_class(self, payload: VehicleClassCreate) -> VehicleClassRead:
        async with self.session() as s:
            row = VehicleClass(**payload.model_dump())
            s.add(row)
            await s.flush()
            await s.refresh(row)
            return VehicleClassRead.model_validate(row)

    async def get_vehicle_class(self, class_id: uuid.UUID) -> Optional[VehicleClassRead]:
        async with self.session() as s:
            row = await s.get(VehicleClass, class_id)
        return VehicleClassRead.model_validate(row) if row else None

    async def list_vehicle_classes(self, *, active_only: bool = True) -> list[VehicleClassRead]:
        async with self.session() as s:
            stmt = select(VehicleClass).order_by(VehicleClass.name.asc(), VehicleClass.id.asc())
            if active_only:
                stmt = stmt.where(VehicleClass.is_active.is_(True))
            rows = (await s.execute(stmt)).scalars().all()
        return [VehicleClassRead.model_validate(r) for r in rows]

    async def create_car(self, payload: CarCreate) -> CarRead:
        """
        Register a car. When `voter_id` is omitted the next free number
        (current maximum + 1) is assigned inside the same transaction.
        """
        async with self.session() as s:
            data = payload.model_dump()
            if data.get("voter_id") is None:
                current = (await s.execute(select(func.coalesce(func.max(Car.voter_id), 0)))).scalar_one()
                data["voter_id"] = int(current) + 1
            row = Car(**data)
            s.add(row)
            await s.flush()
            await s.refresh(row)
            return CarRead.model_validate(row)

    async def get_car(self, car_id: uuid.UUID) -> Optional[CarRead]:
        async with self.session() as s:
            row = await s.get(Car, car_id)
        return CarRead.model_validate(row) if row else None

    async def list_cars(
        self,
        *,
        class_id: Optional[uuid.UUID] = None,
        vehicle_type_id: Optional[uuid.UUID] = None,
        active_only: bool = True,
    ) -> list[CarRead]:
        """Cars ordered by voter_id; filters combine with AND."""
        async with self.session() as s:
            stmt = select(Car).order_by(Car.voter_id.asc())
            if class_id is not None:
                stmt = stmt.where(Car.class_id == class_id)
            if vehicle_type_id is not None:
                stmt = stmt.where(Car.vehicle_type_id == vehicle_type_id)
            if active_only:
                stmt = stmt.where(Car.is_active.is_(True))
            rows = (await s.execute(stmt)).scalars().all()
        return [CarRead.model_validate(r) for r in rows]

    async def create_judge_category(self, payload: JudgeCategoryCreate) -> JudgeCategoryRead:
        async with self.session() as s:
            row = JudgeCategory(**payload.model_dump())
            s.add(row)
            await s.flush()
            await s.refresh(row)
            return JudgeCategoryRead.model_validate(row)

    async def create_judge_question(self, payload: JudgeQuestionCreate) -> JudgeQuestionRead:
        async with self.session() as s:
            row = JudgeQuestion(**payload.model_dump())
            s.add(row)
            await s.flush()
            await s.refresh(row)
            return JudgeQuestionRead.model_validate(row)

    async def get_judge_question(self, question_id: uuid.UUID) -> Optional[JudgeQuestionRead]:
        async with self.session() as s:
            row = await s.get(JudgeQuestion, question_id)
        return JudgeQuestionRead.model_validate(row) if row else None

    async def list_judge_questions(self, vehicle_type_id: uuid.UUID, *, active_only: bool = True) -> list[JudgeQuestionRead]:
        """
        Questions of a vehicle type in presentation order
        (category display_order, question display_order, text).
        With `active_only` a question of an inactive category is skipped too.
        """
        async with self.session() as s:
            stmt = (
                select(JudgeQuestion)
                .join(JudgeCategory, JudgeCategory.id == JudgeQuestion.category_id)
                .where(JudgeQuestion.vehicle_type_id == vehicle_type_id)
                .order_by(
                    JudgeCategory.display_order.asc(),
                    JudgeQuestion.display_order.asc(),
                    JudgeQuestion.text.asc(),
                )
            )
            if active_only:
                stmt = stmt.where(JudgeQuestion.is_active.is_(True), JudgeCategory.is_active.is_(True))
            rows = (await s.execute(stmt)).scalars().all()
        return [JudgeQuestionRead.model_validate(r) for r in rows]

    # ---------------------------------
    # Specialty contests
    # ---------------------------------

    async def create_specialty_contest(self, payload: SpecialtyContestCreate) -> SpecialtyContestRead:
        async with self.session() as s:
            row = SpecialtyContest(**payload.model_dump())
            s.add(row)
            await s.flush()
            await s.refresh(row)
            return SpecialtyContestRead.model_validate(row)

    async def get_specialty_contest(self, contest_id: uuid.UUID) -> Optional[SpecialtyContestRead]:
        async with self.session() as s:
            row = await s.get(SpecialtyContest, contest_id)
        return SpecialtyContestRead.model_validate(row) if row else None

    async def list_specialty_contests(self, *, active_only: bool = True) -> list[SpecialtyContestRead]:
        async with self.session() as s:
            stmt = select(SpecialtyContest).order_by(SpecialtyContest.name.asc())
            if active_only:
                stmt = stmt.where(SpecialtyContest.is_active.is_(True))
            rows = (await s.execute(stmt)).scalars().all()
        return [SpecialtyContestRead.model_validate(r) for r in rows]

    async def update_specialty_contest(self, payload: SpecialtyContestUpdate) -> SpecialtyContestRead:
        """
        Partially update a contest; MISSING fields are left untouched.

        Raises:
            LookupError: if the contest does not exist.
        """
        async with self.session() as s:
            row = await s.get(SpecialtyContest, payload.id)
            if row is None:
                raise LookupError("Specialty contest not found.")
            for field in ("name", "description", "allow_all_users", "vehicle_type_id", "class_id", "is_active"):
                value = getattr(payload, field)
                if provided(value):
                    setattr(row, field, value)
            await s.flush()
            await s.refresh(row)
            return SpecialtyContestRead.model_validate(row)

    async def delete_specialty_contest(self, contest_id: uuid.UUID) -> bool:
        """Delete a contest with its ballots and allow-list. Returns False if it did not exist."""
        async with self.session() as s:
            row = await s.get(SpecialtyContest, contest_id)
            if row is None:
                return False
            await s.execute(delete(Ballot).where(Ballot.contest_id == contest_id))
            await s.execute(delete(SpecialtyVoter).where(SpecialtyVoter.contest_id == contest_id))
            await s.delete(row)
        return True

    async def set_specialty_voters(self, contest_id: uuid.UUID, user_ids: Iterable[uuid.UUID]) -> None:
        """Replace the allow-list of a contest."""
        unique_ids = list(dict.fromkeys(user_ids))
        async with self.session() as s:
            await s.execute(delete(SpecialtyVoter).where(SpecialtyVoter.contest_id == contest_id))
            if unique_ids:
                await s.execute(
                    insert(SpecialtyVoter),
                    [{"id": uuid.uuid4(), "contest_id": contest_id, "user_id": uid} for uid in unique_ids],
                )

    async def list_specialty_voter_ids(self, contest_id: uuid.UUID) -> set[uuid.UUID]:
        async with self.session() as s:
            stmt = select(SpecialtyVoter.user_id).where(SpecialtyVoter.contest_id == contest_id)
            return set((await s.execute(stmt)).scalars().all())

    async def is_specialty_voter(self, contest_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        async with self.session() as s:
            stmt = select(func.count(SpecialtyVoter.id)).where(
                SpecialtyVoter.contest_id == contest_id,
                SpecialtyVoter.user_id == user_id,
            )
            return int((await s.execute(stmt)).scalar_one()) > 0

    # ---------------------------------
    # Judge score ledger
    # ---------------------------------

    async def replace_judge_scores(
        self,
        car_id: uuid.UUID,
        rows: Sequence[JudgeScoreCreate],
        *,
        judge_id: Optional[uuid.UUID] = None,
    ) -> list[JudgeScoreRead]:
        """
        Replace score rows of a car in one transaction.

        Args:
            car_id: car whose rows are replaced.
            rows: the new rows; an empty sequence just clears.
            judge_id: when given only this judge's rows are removed,
                otherwise every judge's rows for the car are.

        Returns:
            list[JudgeScoreRead]: rows of the replaced scope after the write.
        """
        async with self.session() as s:
            stmt = delete(JudgeScore).where(JudgeScore.car_id == car_id)
            if judge_id is not None:
                stmt = stmt.where(JudgeScore.judge_id == judge_id)
            await s.execute(stmt)

            if rows:
                await s.execute(
                    insert(JudgeScore),
                    [{"id": uuid.uuid4(), **row.model_dump()} for row in rows],
                )

            select_stmt = select(JudgeScore).where(JudgeScore.car_id == car_id)
            if judge_id is not None:
                select_stmt = select_stmt.where(JudgeScore.judge_id == judge_id)
            written = (await s.execute(select_stmt)).scalars().all()

        return [JudgeScoreRead.model_validate(r) for r in written]

    async def list_judge_scores(self, car_id: uuid.UUID, *, judge_id: Optional[uuid.UUID] = None) -> list[JudgeScoreDetail]:
        """Score rows of a car with judge display name and question text."""
        async with self.session() as s:
            stmt = (
                select(JudgeScore, User, JudgeQuestion.text)
                .join(User, User.id == JudgeScore.judge_id)
                .join(JudgeQuestion, JudgeQuestion.id == JudgeScore.question_id)
                .join(JudgeCategory, JudgeCategory.id == JudgeQuestion.category_id)
                .where(JudgeScore.car_id == car_id)
                .order_by(
                    User.name.asc(),
                    JudgeScore.judge_id.asc(),
                    JudgeCategory.display_order.asc(),
                    JudgeQuestion.display_order.asc(),
                    JudgeQuestion.text.asc(),
                )
            )
            if judge_id is not None:
                stmt = stmt.where(JudgeScore.judge_id == judge_id)
            result = (await s.execute(stmt)).all()

        return [
            JudgeScoreDetail(
                id=score.id,
                judge_id=score.judge_id,
                car_id=score.car_id,
                question_id=score.question_id,
                score=score.score,
                scored_at=score.scored_at,
                judge_name=UserRead.model_validate(user).display_name,
                question=question_text,
            )
            for score, user, question_text in result
        ]

    async def list_scored_car_ids(self, judge_id: uuid.UUID) -> set[uuid.UUID]:
        async with self.session() as s:
            stmt = select(JudgeScore.car_id).where(JudgeScore.judge_id == judge_id).distinct()
            return set((await s.execute(stmt)).scalars().all())

    async def judge_totals(self, class_id: Optional[uuid.UUID] = None) -> list[CarTotal]:
        """
        Summed judge scores per car, for active classified cars with at least one score row.
        Rows come ordered by voter_id ascending; ranking relies on that order for ties.
        """
        async with self.session() as s:
            stmt = (
                select(
                    Car.id,
                    Car.class_id,
                    Car.voter_id,
                    Car.year,
                    Car.make,
                    Car.model,
                    func.sum(JudgeScore.score).label("total"),
                    func.count(JudgeScore.id).label("score_count"),
                    func.count(func.distinct(JudgeScore.judge_id)).label("judge_count"),
                )
                .join(JudgeScore, JudgeScore.car_id == Car.id)
                .where(Car.is_active.is_(True), Car.class_id.is_not(None))
                .group_by(Car.id, Car.class_id, Car.voter_id, Car.year, Car.make, Car.model)
                .order_by(Car.voter_id.asc())
            )
            if class_id is not None:
                stmt = stmt.where(Car.class_id == class_id)
            rows = (await s.execute(stmt)).all()

        return [
            CarTotal(
                car_id=row.id,
                class_id=row.class_id,
                voter_id=row.voter_id,
                label=format_car_label(row.year, row.make, row.model),
                total=int(row.total or 0),
                score_count=int(row.score_count or 0),
                judge_count=int(row.judge_count or 0),
            )
            for row in rows
        ]

    # ---------------------------------
    # Ballot ledger
    # ---------------------------------

    async def create_ballot(self, payload: BallotCreate) -> BallotRead:
        """
        Insert a ballot. A second ballot for the same (contest, user)
        violates `uq_ballot_contest_user`; the IntegrityError is propagated.
        """
        async with self.session() as s:
            row = Ballot(**payload.model_dump())
            s.add(row)
            await s.flush()
            await s.refresh(row)
            return BallotRead.model_validate(row)

    async def get_ballot(self, ballot_id: uuid.UUID) -> Optional[BallotRead]:
        async with self.session() as s:
            row = await s.get(Ballot, ballot_id)
        return BallotRead.model_validate(row) if row else None

    async def delete_ballot(self, ballot_id: uuid.UUID) -> Optional[BallotRead]:
        """Delete a ballot; returns the removed row or None if there was none."""
        async with self.session() as s:
            row = await s.get(Ballot, ballot_id)
            if row is None:
                return None
            removed = BallotRead.model_validate(row)
            await s.delete(row)
        return removed

    async def list_ballots(self, contest_id: uuid.UUID) -> list[BallotDetail]:
        """Ballots of a contest, newest first, with voter and car labels."""
        async with self.session() as s:
            stmt = (
                select(Ballot, User, Car)
                .join(User, User.id == Ballot.user_id)
                .join(Car, Car.id == Ballot.car_id)
                .where(Ballot.contest_id == contest_id)
                .order_by(Ballot.cast_at.desc(), Car.voter_id.asc())
            )
            result = (await s.execute(stmt)).all()

        return [
            BallotDetail(
                id=ballot.id,
                contest_id=ballot.contest_id,
                user_id=ballot.user_id,
                car_id=ballot.car_id,
                cast_at=ballot.cast_at,
                voter_name=UserRead.model_validate(user).display_name,
                car_label=format_car_label(car.year, car.make, car.model),
                car_voter_id=car.voter_id,
            )
            for ballot, user, car in result
        ]

    async def list_voted_contest_ids(self, user_id: uuid.UUID) -> set[uuid.UUID]:
        async with self.session() as s:
            stmt = select(Ballot.contest_id).where(Ballot.user_id == user_id)
            return set((await s.execute(stmt)).scalars().all())

    async def ballot_tallies(self, contest_id: Optional[uuid.UUID] = None) -> list[BallotTally]:
        """Ballot counts per (contest, car) for cars with at least one ballot, ordered by voter_id."""
        async with self.session() as s:
            stmt = (
                select(
                    Ballot.contest_id,
                    Car.id,
                    Car.voter_id,
                    Car.year,
                    Car.make,
                    Car.model,
                    func.count(Ballot.id).label("count"),
                )
                .join(Car, Car.id == Ballot.car_id)
                .group_by(Ballot.contest_id, Car.id, Car.voter_id, Car.year, Car.make, Car.model)
                .order_by(Car.voter_id.asc())
            )
            if contest_id is not None:
                stmt = stmt.where(Ballot.contest_id == contest_id)
            rows = (await s.execute(stmt)).all()

        return [
            BallotTally(
                contest_id=row.contest_id,
                car_id=row.id,
                voter_id=row.voter_id,
                label=format_car_label(row.year, row.make, row.model),
                count=int(row.count or 0),
            )
            for row in rows
        ]

    # ---------------------------------
    # Contest state
    # ---------------------------------

    async def get_contest_state(self, contest_type: ContestType) -> ContestStateRead:
        """A contest type without a stored row reads as CLOSED."""
        async with self.session() as s:
            row = await s.get(ContestState, contest_type)
        if row is None:
            return ContestStateRead(contest_type=contest_type, state=VoteState.CLOSED)
        return ContestStateRead.model_validate(row)

    async def set_contest_state(self, contest_type: ContestType, state: VoteState) -> ContestStateRead:
        async with self.session() as s:
            row = await s.get(ContestState, contest_type)
            if row is None:
                row = ContestState(contest_type=contest_type, state=state)
                s.add(row)
            else:
                row.state = state
            await s.flush()
            await s.refresh(row)
            return ContestStateRead.model_validate(row)

    # ---------------------------------
    # Published snapshot
    # ---------------------------------

    async def replace_snapshot(
        self,
        result_type: ContestType,
        rows: Sequence[SnapshotEntryCreate],
        *,
        published_at: datetime,
    ) -> int:
        """
        Delete every snapshot row of `result_type` and insert `rows`, atomically.
        Readers see either the previous snapshot or the new one, never a mix.

        Returns:
            int: number of inserted rows.
        """
        async with self.session() as s:
            await s.execute(delete(SnapshotEntry).where(SnapshotEntry.result_type == result_type))
            if rows:
                await s.execute(
                    insert(SnapshotEntry),
                    [
                        {"id": uuid.uuid4(), "published_at": published_at, **row.model_dump()}
                        for row in rows
                    ],
                )
        return len(rows)

    async def list_snapshot(
        self,
        result_type: ContestType,
        scope_id: Optional[uuid.UUID] = None,
    ) -> list[SnapshotEntryRead]:
        async with self.session() as s:
            stmt = (
                select(SnapshotEntry)
                .where(SnapshotEntry.result_type == result_type)
                .order_by(SnapshotEntry.scope_id.asc(), SnapshotEntry.place.asc(), SnapshotEntry.position.asc())
            )
            if scope_id is not None:
                stmt = stmt.where(SnapshotEntry.scope_id == scope_id)
            rows: List[SnapshotEntry] = (await s.execute(stmt)).scalars().all()
        return [SnapshotEntryRead.model_validate(r) for r in rows]

    # ---------------------------------
    # Audit log helpers
    # ---------------------------------

    async def create_audit_log(self, payload: AuditLogCreate) -> AuditLogRead:
        """Persist a new audit log entry."""
        async with self.session() as s:
            record = AuditLog(
                actor_id=payload.actor_id,
                action=payload.action,
                payload=dict(payload.payload or {}),
            )
            s.add(record)
            await s.flush()
            await s.refresh(record)
            return AuditLogRead.model_validate(record)

    async def list_audit_logs(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        actor_id: uuid.UUID | None = None,
        action: str | None = None,
    ) -> tuple[list[AuditLogRead], int]:
        """Return paginated audit log entries filtered by actor/action."""
        limit = max(0, int(limit))
        offset = max(0, int(offset))

        async with self.session() as s:
            stmt = select(AuditLog).order_by(AuditLog.created_at.desc())
            count_stmt = select(func.count(AuditLog.id))
            if actor_id:
                stmt = stmt.where(AuditLog.actor_id == actor_id)
                count_stmt = count_stmt.where(AuditLog.actor_id == actor_id)
            if action:
                stmt = stmt.where(AuditLog.action == action)
                count_stmt = count_stmt.where(AuditLog.action == action)

            if limit:
                stmt = stmt.limit(limit)
            if offset:
                stmt = stmt.offset(offset)

            rows = (await s.execute(stmt)).scalars().all()
            total = int((await s.execute(count_stmt)).scalar_one())

        return [AuditLogRead.model_validate(row) for row in rows], total
