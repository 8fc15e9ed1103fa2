# bot/routers/voter.py
import uuid
from html import escape

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import StatesGroup, State
from aiogram.types import Message, CallbackQuery

from car_show.db.enums import ContestType, VoteState
from car_show.db.schemas.user import UserRead
from car_show.bot.services.errors import NotOpen, VotingError
from car_show.bot.services.voting import VotingEngine
from car_show.bot.routers.utils import error_text, get_localizer_by_user, single_column_keyboard


router = Router(name="voter")


class VoteFSM(StatesGroup):
    picking_car = State()


@router.message(Command("vote"))
async def vote_start(message: Message, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    lz = await get_localizer_by_user(current_user)
    await state.clear()

    if await engine.get_contest_state(ContestType.SPECIALTY) != VoteState.OPEN:
        await message.answer(error_text(lz, NotOpen()))
        return

    contests = await engine.list_votable_contests(current_user.id)
    if not contests:
        await message.answer(lz.get("vote.no_contests"))
        return

    open_items = [(v.contest.name, f"vote.contest:{v.contest.id}") for v in contests if not v.has_voted]
    done = [escape(v.contest.name) for v in contests if v.has_voted]

    lines = [lz.get("vote.pick_contest") if open_items else lz.get("vote.all_done")]
    if done:
        lines.append(lz.get("vote.already_voted_in", contests=", ".join(done)))
    await message.answer(
        "\n\n".join(lines),
        reply_markup=single_column_keyboard(open_items) if open_items else None,
    )


@router.callback_query(F.data.startswith("vote.contest:"))
async def on_contest_pick(cq: CallbackQuery, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    lz = await get_localizer_by_user(current_user)
    contest_id = uuid.UUID(cq.data.split(":", 1)[1])

    try:
        cars = await engine.list_cars_for_contest(contest_id)
    except VotingError as exc:
        await cq.answer(error_text(lz, exc), show_alert=True)
        return
    if not cars:
        await cq.answer(lz.get("vote.no_cars"), show_alert=True)
        return

    await state.set_state(VoteFSM.picking_car)
    await state.update_data(vote_contest=str(contest_id))
    items = [(lz.get("vote.car_button", voter_id=car.voter_id, car=car.label), f"vote.car:{car.id}") for car in cars]
    await cq.answer()
    await cq.message.edit_text(lz.get("vote.pick_car"), reply_markup=single_column_keyboard(items))


@router.callback_query(VoteFSM.picking_car, F.data.startswith("vote.car:"))
async def on_car_pick(cq: CallbackQuery, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    lz = await get_localizer_by_user(current_user)
    data = await state.get_data()
    contest_raw = data.get("vote_contest")
    if not contest_raw:
        await cq.answer()
        return

    car_id = uuid.UUID(cq.data.split(":", 1)[1])
    await state.clear()
    try:
        await engine.cast_specialty_ballot(uuid.UUID(contest_raw), current_user.id, car_id)
    except VotingError as exc:
        await cq.answer(error_text(lz, exc), show_alert=True)
        await cq.message.edit_reply_markup(reply_markup=None)
        return

    await cq.answer()
    await cq.message.edit_text(lz.get("vote.cast"), reply_markup=None)
