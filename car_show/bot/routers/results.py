# bot/routers/results.py
from html import escape
from typing import Iterable
from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from car_show.db.enums import ContestType
from car_show.db.schemas.results import ScopeResult
from car_show.db.schemas.snapshot import SnapshotEntryRead
from car_show.db.schemas.user import UserRead
from car_show.bot.services.catalog import CatalogService
from car_show.bot.services.voting import VotingEngine
from car_show.bot.routers.utils import chunk_text, get_localizer_by_user


router = Router(name="results")


def _format_total(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".") or "0"


def render_scope(scope: ScopeResult, lz) -> str:
    """Live ranking of one class or contest, winners marked."""
    header = lz.get(f"results.header.{scope.result_type.value}", name=escape(scope.scope_name))
    if not scope.ranking:
        return f"{header}\n{lz.get('results.empty')}"

    winner_ids = {w.car_id for w in scope.winners}
    lines = [header]
    for entry in scope.ranking:
        lines.append(
            lz.get(
                f"results.row.{scope.result_type.value}",
                place=entry.place,
                voter_id=entry.voter_id,
                car=escape(entry.label),
                total=_format_total(entry.total),
                marker=lz.get("results.winner_marker") if entry.car_id in winner_ids else "",
            )
        )
    if scope.result_type == ContestType.SPECIALTY and scope.is_tied:
        lines.append(lz.get("results.tied"))
    return "\n".join(lines)


async def render_snapshot(result_type: ContestType, entries: Iterable[SnapshotEntryRead], lz) -> list[str]:
    catalog = CatalogService()
    names = await catalog.scope_names(result_type)
    blocks: dict = {}
    for entry in entries:
        car = await catalog.get_car(entry.car_id)
        car_text = f"#{car.voter_id} {escape(car.label)}" if car else str(entry.car_id)[:8]
        block = blocks.setdefault(
            entry.scope_id,
            [lz.get(f"results.header.{result_type.value}", name=escape(names.get(entry.scope_id, "?")))],
        )
        block.append(lz.get("results.published_row", place=entry.place, car=car_text, total=_format_total(entry.total)))
    return ["\n".join(lines) for lines in blocks.values()]


@router.message(Command("results"))
async def show_results(message: Message, current_user: UserRead, engine: VotingEngine) -> None:
    lz = await get_localizer_by_user(current_user)
    for result_type in ContestType:
        entries = await engine.get_published_snapshot(result_type)
        title = lz.get(f"results.title.{result_type.value}")
        blocks = await render_snapshot(result_type, entries, lz) or [lz.get("results.not_published")]
        for chunk in chunk_text([title, *blocks]):
            await message.answer(chunk)
