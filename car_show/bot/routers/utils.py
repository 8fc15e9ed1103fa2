# bot/routers/utils.py
from typing import Iterable, Optional
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from car_show.i18n import Localizer
from car_show.db.enums import UserRole
from car_show.db.schemas.user import UserRead
from car_show.bot.services.errors import VotingError

async def get_localizer_by_user(user: Optional[UserRead] = None) -> Localizer:
    # one locale per deployment; users carry no language preference
    return Localizer()

def has_role(user: UserRead, *roles: UserRole) -> bool:
    return user.role in roles

def error_text(lz: Localizer, exc: VotingError) -> str:
    key = f"errors.{exc.code}"
    return lz.get(key) if lz.has(key) else lz.get("errors.voting")

def single_column_keyboard(items: list[tuple[str, str]]) -> InlineKeyboardMarkup:
    """`items` are (label, callback_data) pairs."""
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text=label, callback_data=data)] for label, data in items]
    )

MESSAGE_LIMIT = 4096

def _split_block(block: str, limit: int) -> list[str]:
    if len(block) <= limit:
        return [block]
    pieces: list[str] = []
    current = ""
    for line in block.split("\n"):
        while len(line) > limit:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) <= limit:
            current = candidate
        else:
            pieces.append(current)
            current = line
    if current:
        pieces.append(current)
    return pieces

def chunk_text(blocks: Iterable[str], limit: int = MESSAGE_LIMIT, sep: str = "\n\n") -> list[str]:
    """
    Pack text blocks into as few messages as Telegram's length limit allows.
    Blocks stay whole unless one alone is too long; then it is cut at line breaks.
    """
    chunks: list[str] = []
    current = ""
    for block in blocks:
        for piece in _split_block(block, limit):
            candidate = f"{current}{sep}{piece}" if current else piece
            if len(candidate) <= limit:
                current = candidate
            else:
                chunks.append(current)
                current = piece
    if current:
        chunks.append(current)
    return chunks
