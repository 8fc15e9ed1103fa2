# bot/routers/admin_voting.py
import uuid
from html import escape
from typing import Iterable

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import StatesGroup, State
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton

from car_show.db.enums import ContestType, UserRole, VoteState
from car_show.db.schemas.judge_score import JudgeScoreDetail
from car_show.db.schemas.user import UserRead
from car_show.db.schemas.vehicle import CarRead
from car_show.bot.services.catalog import CatalogService
from car_show.bot.services.errors import NotEligible, NotFound, VotingError
from car_show.bot.services.user import UserService
from car_show.bot.services.vote_state import ALLOWED_TRANSITIONS
from car_show.bot.services.voting import VotingEngine
from car_show.bot.routers.judge import ask_question, question_data, read_answer
from car_show.bot.routers.results import render_scope
from car_show.bot.routers.utils import chunk_text, error_text, get_localizer_by_user, has_role, single_column_keyboard


router = Router(name="admin_voting")


def _is_admin(user: UserRead) -> bool:
    return has_role(user, UserRole.ADMIN)


def _state_label(lz, state: VoteState) -> str:
    return lz.get(f"states.{state.value}")


def build_state_panel(states: dict[ContestType, VoteState], lz) -> tuple[str, InlineKeyboardMarkup]:
    """Current state of both contests and one button per allowed transition."""
    lines = [lz.get("voting.panel.title")]
    rows: list[list[InlineKeyboardButton]] = []
    for contest_type, state in states.items():
        contest_name = lz.get(f"voting.contest.{contest_type.value}")
        lines.append(lz.get("voting.panel.line", contest=contest_name, state=_state_label(lz, state)))
        buttons = [
            InlineKeyboardButton(
                text=lz.get(f"voting.action.{target.value}", contest=contest_name),
                callback_data=f"vs:{contest_type.value}:{target.value}",
            )
            for target in sorted(ALLOWED_TRANSITIONS[state])
        ]
        rows.append(buttons)
    return "\n".join(lines), InlineKeyboardMarkup(inline_keyboard=rows)


@router.message(Command("voting"))
async def voting_panel(message: Message, current_user: UserRead, engine: VotingEngine) -> None:
    if not _is_admin(current_user):
        return
    lz = await get_localizer_by_user(current_user)
    text, keyboard = build_state_panel(await engine.list_contest_states(), lz)
    await message.answer(text, reply_markup=keyboard)


@router.callback_query(F.data.startswith("vs:"))
async def on_state_change(cq: CallbackQuery, current_user: UserRead, engine: VotingEngine) -> None:
    if not _is_admin(current_user):
        await cq.answer()
        return
    lz = await get_localizer_by_user(current_user)

    try:
        _, contest_raw, state_raw = cq.data.split(":")
        contest_type, new_state = ContestType(contest_raw), VoteState(state_raw)
    except ValueError:
        await cq.answer()
        return

    try:
        result = await engine.set_contest_state(contest_type, new_state, actor_id=current_user.id)
    except VotingError as exc:
        await cq.answer(error_text(lz, exc), show_alert=True)
        return

    contest_name = lz.get(f"voting.contest.{contest_type.value}")
    notice = lz.get("voting.changed", contest=contest_name, state=_state_label(lz, result.state))
    if result.publish is not None:
        notice += "\n" + lz.get(
            "voting.published",
            scopes=result.publish.scopes,
            entries=result.publish.entries,
        )

    text, keyboard = build_state_panel(await engine.list_contest_states(), lz)
    await cq.answer()
    await cq.message.edit_text(f"{notice}\n\n{text}", reply_markup=keyboard)


@router.message(Command("preview"))
async def preview(message: Message, current_user: UserRead, engine: VotingEngine) -> None:
    if not _is_admin(current_user):
        return
    lz = await get_localizer_by_user(current_user)
    for contest_type in ContestType:
        scopes = await engine.get_aggregated_results(contest_type)
        title = lz.get(f"results.title.{contest_type.value}")
        blocks = [render_scope(scope, lz) for scope in scopes] or [lz.get("results.no_scopes")]
        for chunk in chunk_text([title, *blocks]):
            await message.answer(chunk)


@router.message(Command("ballots"))
async def ballots_start(message: Message, current_user: UserRead) -> None:
    if not _is_admin(current_user):
        return
    lz = await get_localizer_by_user(current_user)
    contests = await CatalogService().list_contests()
    if not contests:
        await message.answer(lz.get("vote.no_contests"))
        return
    keyboard = single_column_keyboard([(c.name, f"admin.ballots:{c.id}") for c in contests])
    await message.answer(lz.get("voting.ballots.pick_contest"), reply_markup=keyboard)


async def _send_ballots(cq: CallbackQuery, engine: VotingEngine, contest_id: uuid.UUID, lz) -> None:
    ballots = await engine.list_ballots(contest_id)
    if not ballots:
        await cq.message.edit_text(lz.get("voting.ballots.empty"), reply_markup=None)
        return

    lines = [lz.get("voting.ballots.header", count=len(ballots))]
    buttons = []
    for ballot in ballots:
        lines.append(
            lz.get(
                "voting.ballots.row",
                voter=escape(ballot.voter_name),
                voter_id=ballot.car_voter_id,
                car=escape(ballot.car_label),
            )
        )
        buttons.append(
            (
                lz.get("voting.ballots.delete", voter=ballot.voter_name, voter_id=ballot.car_voter_id),
                f"admin.ballot.del:{ballot.id}",
            )
        )
    await cq.message.edit_text("\n".join(lines), reply_markup=single_column_keyboard(buttons))


@router.callback_query(F.data.startswith("admin.ballots:"))
async def on_ballots_contest(cq: CallbackQuery, current_user: UserRead, engine: VotingEngine) -> None:
    if not _is_admin(current_user):
        await cq.answer()
        return
    lz = await get_localizer_by_user(current_user)
    contest_id = uuid.UUID(cq.data.split(":", 1)[1])
    try:
        await _send_ballots(cq, engine, contest_id, lz)
    except VotingError as exc:
        await cq.answer(error_text(lz, exc), show_alert=True)
        return
    await cq.answer()


@router.callback_query(F.data.startswith("admin.ballot.del:"))
async def on_ballot_delete(cq: CallbackQuery, current_user: UserRead, engine: VotingEngine) -> None:
    if not _is_admin(current_user):
        await cq.answer()
        return
    lz = await get_localizer_by_user(current_user)
    ballot_id = uuid.UUID(cq.data.split(":", 1)[1])
    try:
        removed = await engine.delete_ballot(ballot_id, actor_id=current_user.id)
        await _send_ballots(cq, engine, removed.contest_id, lz)
    except VotingError as exc:
        await cq.answer(error_text(lz, exc), show_alert=True)
        return
    await cq.answer(lz.get("voting.ballots.deleted"))


class AdminRescoreFSM(StatesGroup):
    answering = State()


def group_scores_by_judge(rows: Iterable[JudgeScoreDetail]) -> dict[uuid.UUID, list[JudgeScoreDetail]]:
    grouped: dict[uuid.UUID, list[JudgeScoreDetail]] = {}
    for row in rows:
        grouped.setdefault(row.judge_id, []).append(row)
    return grouped


def rescored(
    rows: Iterable[JudgeScoreDetail],
    judge_id: uuid.UUID,
    entries: list[tuple[uuid.UUID, int]],
    question_ids: set[uuid.UUID],
) -> dict[uuid.UUID, list[tuple[uuid.UUID, int]]]:
    """
    The full per-judge mapping for an override that only changes `judge_id`.
    Other judges keep their stored scores; rows of retired questions are dropped
    since they can no longer be validated.
    """
    scores: dict[uuid.UUID, list[tuple[uuid.UUID, int]]] = {}
    for row in rows:
        if row.judge_id != judge_id and row.question_id in question_ids:
            scores.setdefault(row.judge_id, []).append((row.question_id, row.score))
    scores[judge_id] = list(entries)
    return scores


def render_judging_overview(cars: list[CarRead], scores: dict[uuid.UUID, list[JudgeScoreDetail]], lz) -> list[str]:
    lines = []
    for car in cars:
        rows = scores.get(car.id, [])
        if not rows:
            lines.append(lz.get("voting.judging.car_unscored", voter_id=car.voter_id, car=escape(car.label)))
            continue
        lines.append(
            lz.get(
                "voting.judging.car_line",
                voter_id=car.voter_id,
                car=escape(car.label),
                judges=len({r.judge_id for r in rows}),
                total=sum(r.score for r in rows),
            )
        )
    return lines


def render_car_scores(car: CarRead, rows: list[JudgeScoreDetail], lz) -> str:
    lines = [lz.get("voting.judging.car_header", voter_id=car.voter_id, car=escape(car.label))]
    grouped = group_scores_by_judge(rows)
    if not grouped:
        lines.append(lz.get("voting.judging.no_scores"))
    for judge_rows in grouped.values():
        lines.append(
            lz.get(
                "voting.judging.judge_line",
                judge=escape(judge_rows[0].judge_name),
                total=sum(r.score for r in judge_rows),
            )
        )
        lines.extend(
            lz.get("voting.judging.score_line", question=escape(r.question), score=r.score) for r in judge_rows
        )
    return "\n".join(lines)


@router.message(Command("judging"))
async def judging_overview(message: Message, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    if not _is_admin(current_user):
        return
    lz = await get_localizer_by_user(current_user)
    await state.clear()

    cars = await CatalogService().list_judgeable_cars()
    if not cars:
        await message.answer(lz.get("judge.no_cars"))
        return

    scores = {car.id: await engine.get_scores(car.id) for car in cars}
    lines = [lz.get("voting.judging.title"), *render_judging_overview(cars, scores, lz)]
    for chunk in chunk_text(lines, sep="\n"):
        await message.answer(chunk)

    items = [
        (
            lz.get("judge.car_button", voter_id=car.voter_id, car=car.label, marker="✅" if scores[car.id] else ""),
            f"adm.judging:{car.id}",
        )
        for car in cars
    ]
    await message.answer(lz.get("voting.judging.pick_car"), reply_markup=single_column_keyboard(items))


@router.callback_query(F.data.startswith("adm.judging:"))
async def on_judging_car(cq: CallbackQuery, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    if not _is_admin(current_user):
        await cq.answer()
        return
    lz = await get_localizer_by_user(current_user)
    car_id = uuid.UUID(cq.data.split(":", 1)[1])

    car = await CatalogService().get_car(car_id)
    if car is None:
        await cq.answer(error_text(lz, NotFound()), show_alert=True)
        return
    rows = await engine.get_scores(car_id)
    judges = await UserService().list_by_role(UserRole.JUDGE)

    await state.clear()
    await state.update_data(rescore_car=str(car_id))
    buttons = [
        (lz.get("voting.judging.rescore_button", judge=judge.display_name), f"adm.rescore:{judge.id}")
        for judge in judges
    ]
    await cq.answer()
    await cq.message.answer(render_car_scores(car, rows, lz), reply_markup=single_column_keyboard(buttons))


@router.callback_query(F.data.startswith("adm.rescore:"))
async def on_rescore_judge(cq: CallbackQuery, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    if not _is_admin(current_user):
        await cq.answer()
        return
    lz = await get_localizer_by_user(current_user)
    data = await state.get_data()
    if "rescore_car" not in data:
        await cq.answer()
        return
    car_id = uuid.UUID(data["rescore_car"])
    judge_id = uuid.UUID(cq.data.split(":", 1)[1])

    judge = next((j for j in await UserService().list_by_role(UserRole.JUDGE) if j.id == judge_id), None)
    if judge is None:
        await cq.answer(error_text(lz, NotEligible()), show_alert=True)
        return
    try:
        questions = await engine.list_questions_for_car(car_id)
    except VotingError as exc:
        await cq.answer(error_text(lz, exc), show_alert=True)
        return
    if not questions:
        await cq.answer(lz.get("judge.no_questions"), show_alert=True)
        return

    await state.set_state(AdminRescoreFSM.answering)
    await state.update_data(rescore_judge=str(judge_id), **question_data(questions))
    await cq.answer()
    await cq.message.edit_reply_markup(reply_markup=None)
    await cq.message.answer(lz.get("voting.judging.rescore_start", judge=escape(judge.display_name)))
    await ask_question(cq.message, state, lz)


@router.message(AdminRescoreFSM.answering, Command("cancel"))
async def rescore_cancel(message: Message, current_user: UserRead, state: FSMContext) -> None:
    lz = await get_localizer_by_user(current_user)
    await state.clear()
    await message.answer(lz.get("voting.judging.cancelled"))


@router.message(AdminRescoreFSM.answering, F.text)
async def on_rescore_answer(message: Message, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    if not _is_admin(current_user):
        await state.clear()
        return
    lz = await get_localizer_by_user(current_user)
    answers = await read_answer(message, state, lz)
    if answers is None:
        return

    data = await state.get_data()
    await state.clear()
    car_id, judge_id = uuid.UUID(data["rescore_car"]), uuid.UUID(data["rescore_judge"])
    try:
        question_ids = {q.id for q in await engine.list_questions_for_car(car_id)}
        scores = rescored(await engine.get_scores(car_id), judge_id, answers, question_ids)
        await engine.override_judge_scores(car_id, scores, actor_id=current_user.id)
        rows = await engine.get_scores(car_id)
    except VotingError as exc:
        await message.answer(error_text(lz, exc))
        return

    car = await CatalogService().get_car(car_id)
    await message.answer(f"{lz.get('voting.judging.saved')}\n\n{render_car_scores(car, rows, lz)}")
