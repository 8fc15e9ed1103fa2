"""Shared fixtures: a throwaway SQLite database, a recording notifier and a seeded show."""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

_DB_DIR = Path(tempfile.mkdtemp(prefix="car_show_tests_"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'test.db'}"
os.environ["JUDGE_PODIUM_SIZE"] = "3"
os.environ["DEFAULT_LANGUAGE"] = "english"

import pytest  # noqa: E402

from car_show.bot.services.catalog import CatalogService  # noqa: E402
from car_show.bot.services.notifier import NotificationEvent, NotifierService  # noqa: E402
from car_show.bot.services.user import UserService  # noqa: E402
from car_show.bot.services.voting import VotingEngine  # noqa: E402
from car_show.db.database import DataBase  # noqa: E402
from car_show.db.enums import ContestType, UserRole, VoteState  # noqa: E402
from car_show.db.schemas.judge_question import JudgeQuestionCreate, JudgeQuestionRead  # noqa: E402
from car_show.db.schemas.specialty_contest import SpecialtyContestCreate, SpecialtyContestRead  # noqa: E402
from car_show.db.schemas.user import UserCreate, UserRead  # noqa: E402
from car_show.db.schemas.vehicle import CarCreate, CarRead, VehicleClassRead, VehicleTypeRead  # noqa: E402


class RecordingAdapter:
    """Notification adapter that keeps every published event."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def publish(self, event: NotificationEvent) -> None:
        self.events.append(event)


class FailingAdapter:
    async def publish(self, event: NotificationEvent) -> None:
        raise RuntimeError("delivery failed")


@dataclass
class Show:
    vehicle_type: VehicleTypeRead
    other_type: VehicleTypeRead
    classes: list[VehicleClassRead]
    # questions[0] and [1] are 0..10, questions[2] ("Overall") is 0..50
    questions: list[JudgeQuestionRead]
    inactive_question: JudgeQuestionRead
    foreign_question: JudgeQuestionRead
    admin: UserRead
    judges: list[UserRead]
    voters: list[UserRead]
    # cars[0..3] in classes[0], cars[4..5] in classes[1]; voter numbers 1..6
    cars: list[CarRead]
    other_car: CarRead
    people_choice: SpecialtyContestRead
    invite_only: SpecialtyContestRead

    @property
    def q(self) -> list:
        return [q.id for q in self.questions]


async def seed_show() -> Show:
    db = DataBase()
    catalog = CatalogService()

    vehicle_type = await catalog.create_vehicle_type("Car")
    other_type = await catalog.create_vehicle_type("Truck")
    classes = [
        await catalog.create_class("Classic", vehicle_type.id),
        await catalog.create_class("Modern", vehicle_type.id),
    ]

    exterior = await catalog.create_category(vehicle_type.id, "Exterior", display_order=1)
    interior = await catalog.create_category(vehicle_type.id, "Interior", display_order=2)
    questions = [
        await catalog.add_question(exterior, "Paint", display_order=1),
        await catalog.add_question(exterior, "Chrome", display_order=2),
        await catalog.add_question(interior, "Overall", min_score=0, max_score=50),
    ]
    inactive_question = await db.create_judge_question(
        JudgeQuestionCreate(
            vehicle_type_id=vehicle_type.id,
            category_id=exterior.id,
            text="Retired",
            min_score=0,
            max_score=10,
            is_active=False,
        )
    )
    truck_category = await catalog.create_category(other_type.id, "Bed")
    foreign_question = await catalog.add_question(truck_category, "Bed liner")

    admin = await db.create_user(UserCreate(tg_id=100, tg_username="boss", name="Admin", role=UserRole.ADMIN))
    judges = [
        await db.create_user(UserCreate(tg_id=200 + i, name=f"Judge {i}", role=UserRole.JUDGE))
        for i in range(1, 3)
    ]
    voters = [
        await db.create_user(UserCreate(tg_id=300 + i, name=f"Voter {i}"))
        for i in range(1, 4)
    ]

    cars = []
    for i in range(6):
        vehicle_class = classes[0] if i < 4 else classes[1]
        cars.append(
            await catalog.register_car(
                CarCreate(
                    vehicle_type_id=vehicle_type.id,
                    class_id=vehicle_class.id,
                    year=1960 + i,
                    make="Ford",
                    model=f"Model {i + 1}",
                )
            )
        )
    other_car = await catalog.register_car(CarCreate(vehicle_type_id=other_type.id, make="Dodge", model="Ram"))

    people_choice = await catalog.create_contest(SpecialtyContestCreate(name="People's Choice", allow_all_users=True))
    invite_only = await catalog.create_contest(
        SpecialtyContestCreate(name="Best Paint", allow_all_users=False, class_id=classes[0].id)
    )
    await catalog.set_allowed_voters(invite_only.id, [voters[0].id])

    return Show(
        vehicle_type=vehicle_type,
        other_type=other_type,
        classes=classes,
        questions=questions,
        inactive_question=inactive_question,
        foreign_question=foreign_question,
        admin=admin,
        judges=judges,
        voters=voters,
        cars=cars,
        other_car=other_car,
        people_choice=people_choice,
        invite_only=invite_only,
    )


@pytest.fixture
async def db():
    database = DataBase()
    await database.drop_all()
    await database.create_all()
    UserService().forget()
    yield database
    await database.engine.dispose()


@pytest.fixture
def recorder() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
async def engine(db, recorder) -> VotingEngine:
    return VotingEngine(database=db, notifier=NotifierService([recorder]), podium_size=3)


@pytest.fixture
async def show(db) -> Show:
    return await seed_show()


async def open_contest(engine: VotingEngine, contest_type: ContestType) -> None:
    await engine.set_contest_state(contest_type, VoteState.OPEN)
