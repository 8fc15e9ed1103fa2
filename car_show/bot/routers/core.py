# bot/routers/core.py
from aiogram import Router, F
from aiogram.filters import CommandStart, Command
from aiogram.types import Message, CallbackQuery
from car_show.db.schemas.user import UserRead
from car_show.db.enums import UserRole
from car_show.bot.services.user import UserService
from car_show.bot.routers.utils import get_localizer_by_user, single_column_keyboard

router = Router(name="core")

def render_help(user: UserRead, lz, is_whitelisted: bool) -> str:
    lines = [lz.get("core.greeting", name=user.display_name)]
    lines.append(lz.get(f"help.{user.role.value}"))
    if is_whitelisted:
        lines.append(lz.get("help.whitelist"))
    return "\n\n".join(lines)

@router.message(CommandStart())
async def start(message: Message, current_user: UserRead, is_whitelisted: bool) -> None:
    lz = await get_localizer_by_user(current_user)
    await message.answer(render_help(current_user, lz, is_whitelisted))

@router.message(Command("help"))
async def help(message: Message, current_user: UserRead, is_whitelisted: bool) -> None:
    lz = await get_localizer_by_user(current_user)
    await message.answer(render_help(current_user, lz, is_whitelisted))

@router.message(Command("switch_role"))
async def switch_role(message: Message, current_user: UserRead, is_whitelisted: bool) -> None:
    if not is_whitelisted:
        return

    lz = await get_localizer_by_user(current_user)
    keyboard = single_column_keyboard(
        [(lz.get(f"roles.{role.value}"), f"role_set:{role.value}") for role in UserRole]
    )
    await message.answer(text=lz.get("core.choose_role"), reply_markup=keyboard)

@router.callback_query(F.data.startswith("role_set:"))
async def on_role_set(cq: CallbackQuery, current_user: UserRead, is_whitelisted: bool) -> None:
    lz = await get_localizer_by_user(current_user)
    if not is_whitelisted:
        await cq.answer()
        return

    try:
        role = UserRole(cq.data.split(":", 1)[1])
    except ValueError:
        await cq.answer()
        return

    current_user = await UserService().change_role(current_user, role)
    role_name = lz.get(f"roles.{role.value}")
    await cq.answer(lz.get("core.role_changed", role=role_name))
    await cq.message.answer(render_help(current_user, lz, is_whitelisted))
