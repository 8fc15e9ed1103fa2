# bot/services/publisher.py
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from car_show.db.database import DataBase
from car_show.db.enums import ContestType
from car_show.db.schemas.results import PublishResult, ScopeResult
from car_show.db.schemas.snapshot import SnapshotEntryCreate, SnapshotEntryRead
from car_show.bot.services.aggregation import AggregationService
from car_show.bot.services.errors import StorageError

logger = logging.getLogger(__name__)


def snapshot_rows(contest_type: ContestType, scopes: list[ScopeResult]) -> list[SnapshotEntryCreate]:
	"""Winners of every scope as snapshot rows; `position` keeps their order within a place."""
	rows: list[SnapshotEntryCreate] = []
	for scope in scopes:
		for position, entry in enumerate(scope.winners):
			rows.append(
				SnapshotEntryCreate(
					result_type=contest_type,
					scope_id=scope.scope_id,
					car_id=entry.car_id,
					place=entry.place,
					position=position,
					total=entry.total,
				)
			)
	return rows


class Publisher:
	"""
	Freezes the current results of a contest type into the published snapshot.

	The previous snapshot of that type is deleted and the new rows inserted in a
	single transaction, so a failure leaves the previous snapshot in place.
	"""

	def __init__(self, aggregation: AggregationService, database: Optional[DataBase] = None) -> None:
		self._aggregation = aggregation
		self._database = database or DataBase()

	async def publish(self, contest_type: ContestType) -> PublishResult:
		scopes = await self._aggregation.results(contest_type)
		rows = snapshot_rows(contest_type, scopes)
		published_at = datetime.now(timezone.utc).replace(tzinfo=None)

		try:
			written = await self._database.replace_snapshot(contest_type, rows, published_at=published_at)
		except SQLAlchemyError as exc:
			logger.exception("Publishing %s results failed", contest_type.value)
			raise StorageError(f"Could not publish {contest_type.value} results") from exc

		logger.info("Published %s results: %d scopes, %d rows", contest_type.value, len(scopes), written)
		return PublishResult(
			contest_type=contest_type,
			scopes=len(scopes),
			entries=written,
			published_at=published_at,
		)

	async def snapshot(self, result_type: ContestType, scope_id: Optional[UUID] = None) -> list[SnapshotEntryRead]:
		return await self._database.list_snapshot(result_type, scope_id)
