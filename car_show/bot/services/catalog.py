# bot/services/catalog.py
from uuid import UUID
from typing import ClassVar, Iterable, Optional, Self

from car_show.config import Settings
from car_show.db.database import DataBase
from car_show.db.enums import ContestType
from car_show.db.schemas.vehicle import (
	CarCreate,
	CarRead,
	VehicleClassCreate,
	VehicleClassRead,
	VehicleTypeCreate,
	VehicleTypeRead,
)
from car_show.db.schemas.judge_question import (
	JudgeCategoryCreate,
	JudgeCategoryRead,
	JudgeQuestionCreate,
	JudgeQuestionRead,
)
from car_show.db.schemas.specialty_contest import (
	SpecialtyContestCreate,
	SpecialtyContestRead,
	SpecialtyContestUpdate,
)
from car_show.bot.services.audit_log import instrument_service_class
from car_show.bot.services.errors import NotFound


class CatalogService:
	"""
	Singleton service for everything the voting engine reads but does not own:
	vehicle types, classes, cars, judging questions and specialty contests.

	Strict rule: this service does **not** touch SQLAlchemy sessions or models.
	It only calls the DataBase facade and returns DTOs.
	"""

	_instance: ClassVar[Optional["CatalogService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database: DataBase = DataBase()
		self._initialized = True

	# --------------------
	# Vehicles
	# --------------------
	async def create_vehicle_type(self, name: str) -> VehicleTypeRead:
		return await self._database.create_vehicle_type(VehicleTypeCreate(name=name))

	async def list_vehicle_types(self) -> list[VehicleTypeRead]:
		return await self._database.list_vehicle_types()

	async def create_class(self, name: str, vehicle_type_id: Optional[UUID] = None) -> VehicleClassRead:
		return await self._database.create_vehicle_class(VehicleClassCreate(name=name, vehicle_type_id=vehicle_type_id))

	async def list_classes(self) -> list[VehicleClassRead]:
		return await self._database.list_vehicle_classes()

	async def register_car(self, payload: CarCreate) -> CarRead:
		"""Register a car; a missing voter number is assigned as the next free one."""
		return await self._database.create_car(payload)

	async def get_car(self, car_id: UUID) -> Optional[CarRead]:
		return await self._database.get_car(car_id)

	async def list_cars(self, class_id: Optional[UUID] = None) -> list[CarRead]:
		return await self._database.list_cars(class_id=class_id)

	async def list_judgeable_cars(self) -> list[CarRead]:
		"""Active cars that belong to an active class, i.e. cars that can appear in judge results."""
		active_classes = {c.id for c in await self.list_classes()}
		return [car for car in await self.list_cars() if car.class_id in active_classes]

	# --------------------
	# Judging questions
	# --------------------
	async def create_category(self, vehicle_type_id: UUID, name: str, display_order: int = 0) -> JudgeCategoryRead:
		return await self._database.create_judge_category(
			JudgeCategoryCreate(vehicle_type_id=vehicle_type_id, name=name, display_order=display_order)
		)

	async def add_question(
		self,
		category: JudgeCategoryRead,
		text: str,
		min_score: Optional[int] = None,
		max_score: Optional[int] = None,
		display_order: int = 0,
	) -> JudgeQuestionRead:
		"""Add a question to a category; omitted bounds come from the configured defaults."""
		settings = Settings()
		return await self._database.create_judge_question(
			JudgeQuestionCreate(
				vehicle_type_id=category.vehicle_type_id,
				category_id=category.id,
				text=text,
				min_score=settings.default_min_score if min_score is None else min_score,
				max_score=settings.default_max_score if max_score is None else max_score,
				display_order=display_order,
			)
		)

	# --------------------
	# Specialty contests
	# --------------------
	async def create_contest(self, payload: SpecialtyContestCreate) -> SpecialtyContestRead:
		return await self._database.create_specialty_contest(payload)

	async def update_contest(self, payload: SpecialtyContestUpdate) -> SpecialtyContestRead:
		try:
			return await self._database.update_specialty_contest(payload)
		except LookupError as exc:
			raise NotFound(f"Specialty contest {payload.id} not found", contest_id=payload.id) from exc

	async def delete_contest(self, contest_id: UUID) -> None:
		if not await self._database.delete_specialty_contest(contest_id):
			raise NotFound(f"Specialty contest {contest_id} not found", contest_id=contest_id)

	async def get_contest(self, contest_id: UUID) -> Optional[SpecialtyContestRead]:
		return await self._database.get_specialty_contest(contest_id)

	async def list_contests(self) -> list[SpecialtyContestRead]:
		return await self._database.list_specialty_contests()

	async def set_allowed_voters(self, contest_id: UUID, user_ids: Iterable[UUID]) -> None:
		if await self._database.get_specialty_contest(contest_id) is None:
			raise NotFound(f"Specialty contest {contest_id} not found", contest_id=contest_id)
		await self._database.set_specialty_voters(contest_id, user_ids)

	async def list_allowed_voters(self, contest_id: UUID) -> set[UUID]:
		return await self._database.list_specialty_voter_ids(contest_id)

	# --------------------
	# Result scopes
	# --------------------
	async def scope_names(self, contest_type: ContestType) -> dict[UUID, str]:
		"""Class names for judge results, contest names for specialty results."""
		if contest_type == ContestType.JUDGE:
			return {c.id: c.name for c in await self._database.list_vehicle_classes(active_only=False)}
		return {c.id: c.name for c in await self._database.list_specialty_contests(active_only=False)}


instrument_service_class(
	CatalogService,
	prefix="services.catalog",
	actor_fields=("actor", "user"),
	exclude={
		"list_vehicle_types",
		"list_classes",
		"get_car",
		"list_cars",
		"list_judgeable_cars",
		"get_contest",
		"list_contests",
		"list_allowed_voters",
		"scope_names",
	},
)
