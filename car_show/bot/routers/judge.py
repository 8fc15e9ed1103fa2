# bot/routers/judge.py
import uuid
from html import escape
from typing import Optional

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import StatesGroup, State
from aiogram.types import Message, CallbackQuery

from car_show.db.enums import ContestType, UserRole, VoteState
from car_show.db.schemas.judge_question import JudgeQuestionRead
from car_show.db.schemas.user import UserRead
from car_show.bot.services.catalog import CatalogService
from car_show.bot.services.errors import NotOpen, VotingError
from car_show.bot.services.voting import VotingEngine
from car_show.bot.routers.utils import error_text, get_localizer_by_user, has_role, single_column_keyboard


router = Router(name="judge")


class JudgeScoreFSM(StatesGroup):
    answering = State()


def _is_judge(user: UserRead) -> bool:
    return has_role(user, UserRole.JUDGE)


async def ask_question(message: Message, state: FSMContext, lz) -> None:
    data = await state.get_data()
    questions = data["judge_questions"]
    index = data["judge_index"]
    question = questions[index]
    await message.answer(
        lz.get(
            "judge.question",
            index=index + 1,
            count=len(questions),
            text=escape(question["text"]),
            min=question["min"],
            max=question["max"],
        )
    )


def question_data(questions: list[JudgeQuestionRead]) -> dict:
    """FSM data that walks through `questions` one answer at a time."""
    return {
        "judge_questions": [
            {"id": str(q.id), "text": q.text, "min": q.min_score, "max": q.max_score} for q in questions
        ],
        "judge_index": 0,
        "judge_answers": [],
    }


async def read_answer(message: Message, state: FSMContext, lz) -> Optional[list[tuple[uuid.UUID, int]]]:
    """
    Take the answer to the current question. Asks the next question and returns
    None until the last one is answered, then returns every (question_id, score).
    """
    data = await state.get_data()
    questions = data["judge_questions"]
    index = data["judge_index"]
    question = questions[index]

    try:
        value = int(message.text.strip())
    except ValueError:
        await message.answer(lz.get("judge.not_a_number"))
        return None
    if not question["min"] <= value <= question["max"]:
        await message.answer(lz.get("errors.out_of_range"))
        return None

    answers = data["judge_answers"] + [[question["id"], value]]
    if index + 1 < len(questions):
        await state.update_data(judge_index=index + 1, judge_answers=answers)
        await ask_question(message, state, lz)
        return None
    return [(uuid.UUID(qid), score) for qid, score in answers]


@router.message(Command("score"))
async def score_start(message: Message, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    if not _is_judge(current_user):
        return
    lz = await get_localizer_by_user(current_user)
    await state.clear()

    if await engine.get_contest_state(ContestType.JUDGE) != VoteState.OPEN:
        await message.answer(error_text(lz, NotOpen()))
        return

    cars = await CatalogService().list_judgeable_cars()
    if not cars:
        await message.answer(lz.get("judge.no_cars"))
        return

    scored = await engine.list_scored_car_ids(current_user.id)
    items = [
        (
            lz.get("judge.car_button", voter_id=car.voter_id, car=car.label, marker="✅" if car.id in scored else ""),
            f"judge.car:{car.id}",
        )
        for car in cars
    ]
    await message.answer(lz.get("judge.pick_car"), reply_markup=single_column_keyboard(items))


@router.callback_query(F.data.startswith("judge.car:"))
async def on_car_pick(cq: CallbackQuery, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    if not _is_judge(current_user):
        await cq.answer()
        return
    lz = await get_localizer_by_user(current_user)
    car_id = uuid.UUID(cq.data.split(":", 1)[1])

    try:
        questions = await engine.list_questions_for_car(car_id)
    except VotingError as exc:
        await cq.answer(error_text(lz, exc), show_alert=True)
        return
    if not questions:
        await cq.answer(lz.get("judge.no_questions"), show_alert=True)
        return

    await state.set_state(JudgeScoreFSM.answering)
    await state.update_data(judge_car=str(car_id), **question_data(questions))
    await cq.answer()
    await cq.message.edit_reply_markup(reply_markup=None)
    await ask_question(cq.message, state, lz)


@router.message(JudgeScoreFSM.answering, Command("cancel"))
async def score_cancel(message: Message, current_user: UserRead, state: FSMContext) -> None:
    lz = await get_localizer_by_user(current_user)
    await state.clear()
    await message.answer(lz.get("judge.cancelled"))


@router.message(JudgeScoreFSM.answering, F.text)
async def on_answer(message: Message, current_user: UserRead, engine: VotingEngine, state: FSMContext) -> None:
    lz = await get_localizer_by_user(current_user)
    answers = await read_answer(message, state, lz)
    if answers is None:
        return

    data = await state.get_data()
    await state.clear()
    try:
        written = await engine.submit_judge_scores(uuid.UUID(data["judge_car"]), current_user.id, answers)
    except VotingError as exc:
        await message.answer(error_text(lz, exc))
        return

    total = sum(row.score for row in written)
    await message.answer(lz.get("judge.submitted", count=len(written), total=total))
