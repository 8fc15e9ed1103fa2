# bot/services/aggregation.py
"""
Live result computation over the score and ballot ledgers.

The ``rank_*`` functions are pure: they take already fetched rows and return
rankings, so a preview and a publish always agree. Nothing here writes.
"""
import logging
from collections import defaultdict
from typing import Iterable, Optional, Sequence
from uuid import UUID

from car_show.config import Settings
from car_show.db.database import DataBase
from car_show.db.enums import ContestType
from car_show.db.schemas.results import BallotTally, CarTotal, RankedEntry, ScopeResult
from car_show.bot.services.errors import NotFound

logger = logging.getLogger(__name__)


def rank_judge_totals(totals: Iterable[CarTotal]) -> list[RankedEntry]:
    """
    Order cars by total score, highest first, with sequential places 1..n.

    Equal totals are not co-ranked: they keep ascending voter_id order.
    """
    by_voter = sorted(totals, key=lambda t: t.voter_id)
    ordered = sorted(by_voter, key=lambda t: t.total, reverse=True)
    return [
        RankedEntry(
            car_id=t.car_id,
            voter_id=t.voter_id,
            label=t.label,
            place=place,
            total=float(t.total),
            count=t.score_count,
        )
        for place, t in enumerate(ordered, start=1)
    ]


def judge_podium(ranking: Sequence[RankedEntry], size: int) -> list[RankedEntry]:
    return list(ranking[:max(0, size)])


def rank_specialty_counts(tallies: Iterable[BallotTally]) -> list[RankedEntry]:
    """
    Order cars by ballot count, highest first. Equal counts share a place
    (1, 1, 3) and keep ascending voter_id order.
    """
    by_voter = sorted(tallies, key=lambda t: t.voter_id)
    ordered = sorted(by_voter, key=lambda t: t.count, reverse=True)

    ranking: list[RankedEntry] = []
    place = 0
    previous: Optional[int] = None
    for index, tally in enumerate(ordered, start=1):
        if tally.count != previous:
            place = index
            previous = tally.count
        ranking.append(
            RankedEntry(
                car_id=tally.car_id,
                voter_id=tally.voter_id,
                label=tally.label,
                place=place,
                total=float(tally.count),
                count=tally.count,
            )
        )
    return ranking


def specialty_winners(ranking: Sequence[RankedEntry]) -> list[RankedEntry]:
    """Every car sharing the highest count."""
    if not ranking:
        return []
    top = ranking[0].count
    return [entry for entry in ranking if entry.count == top]


class AggregationService:
    """Fetches ledger rows per scope and ranks them."""

    def __init__(self, database: Optional[DataBase] = None, podium_size: Optional[int] = None) -> None:
        self._database = database or DataBase()
        self.podium_size = podium_size if podium_size is not None else Settings().judge_podium_size

    async def results(self, contest_type: ContestType, scope_id: Optional[UUID] = None) -> list[ScopeResult]:
        if contest_type == ContestType.JUDGE:
            return await self.judge_results(scope_id)
        return await self.specialty_results(scope_id)

    async def judge_results(self, class_id: Optional[UUID] = None) -> list[ScopeResult]:
        """One result per active class; `class_id` narrows it to that class."""
        classes = await self._database.list_vehicle_classes()
        if class_id is not None:
            classes = [c for c in classes if c.id == class_id]
            if not classes:
                raise NotFound(f"Class {class_id} not found", class_id=class_id)

        by_class: dict[UUID, list[CarTotal]] = defaultdict(list)
        for total in await self._database.judge_totals(class_id):
            by_class[total.class_id].append(total)

        results = []
        for vehicle_class in classes:
            ranking = rank_judge_totals(by_class.get(vehicle_class.id, []))
            results.append(
                ScopeResult(
                    result_type=ContestType.JUDGE,
                    scope_id=vehicle_class.id,
                    scope_name=vehicle_class.name,
                    ranking=ranking,
                    winners=judge_podium(ranking, self.podium_size),
                )
            )
        logger.debug("Judge results computed for %d classes", len(results))
        return results

    async def specialty_results(self, contest_id: Optional[UUID] = None) -> list[ScopeResult]:
        """One result per active specialty contest; `contest_id` narrows it to that contest."""
        contests = await self._database.list_specialty_contests()
        if contest_id is not None:
            contests = [c for c in contests if c.id == contest_id]
            if not contests:
                raise NotFound(f"Specialty contest {contest_id} not found", contest_id=contest_id)

        by_contest: dict[UUID, list[BallotTally]] = defaultdict(list)
        for tally in await self._database.ballot_tallies(contest_id):
            by_contest[tally.contest_id].append(tally)

        results = []
        for contest in contests:
            ranking = rank_specialty_counts(by_contest.get(contest.id, []))
            results.append(
                ScopeResult(
                    result_type=ContestType.SPECIALTY,
                    scope_id=contest.id,
                    scope_name=contest.name,
                    ranking=ranking,
                    winners=specialty_winners(ranking),
                )
            )
        logger.debug("Specialty results computed for %d contests", len(results))
        return results
