# bot/run_bot.py
import asyncio
import logging

from aiogram.client.session.aiohttp import AiohttpSession
from aiogram.client.telegram import TelegramAPIServer
from aiogram import Bot, Dispatcher
from aiogram.enums import ParseMode
from aiogram.client.default import DefaultBotProperties

from car_show.config import Settings
from car_show.bot.middlewares.audit import AuditMiddleware
from car_show.bot.middlewares.user import UserMiddleware
from car_show.bot.middlewares.whitelist import WhitelistMiddleware
from car_show.bot.routers.core import router as CoreRouter
from car_show.bot.routers.admin_voting import router as AdminVotingRouter
from car_show.bot.routers.judge import router as JudgeRouter
from car_show.bot.routers.voter import router as VoterRouter
from car_show.bot.routers.results import router as ResultsRouter
from car_show.bot.services.notifier import NotifierService, TelegramNotificationAdapter
from car_show.bot.services.voting import VotingEngine
from car_show.db.database import DataBase

logger = logging.getLogger(__name__)


def setup_dispatcher(dp: Dispatcher) -> None:
    dp.update.outer_middleware(UserMiddleware())
    dp.update.outer_middleware(WhitelistMiddleware())
    dp.message.middleware(AuditMiddleware())
    dp.callback_query.middleware(AuditMiddleware())

def setup_routers(dp: Dispatcher) -> None:
    dp.include_router(CoreRouter)
    dp.include_router(AdminVotingRouter)
    dp.include_router(JudgeRouter)
    dp.include_router(VoterRouter)
    dp.include_router(ResultsRouter)

def build_bot(settings: Settings) -> Bot:
    session = None
    if settings.telegram_api_server:
        session = AiohttpSession(api=TelegramAPIServer.from_base(settings.telegram_api_server, is_local=True))
    return Bot(
        settings.bot_token,
        session=session,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )

async def main() -> None:
    settings = Settings()
    logging.basicConfig(level=settings.log_level)

    if not settings.bot_token:
        raise RuntimeError("Bot token is not set.")

    bot = build_bot(settings)
    telegram_adapter = TelegramNotificationAdapter()
    telegram_adapter.bind_bot(bot)
    notifier = NotifierService([telegram_adapter])
    engine = VotingEngine(notifier=notifier)

    dp = Dispatcher(engine=engine)
    setup_dispatcher(dp)
    setup_routers(dp)

    await DataBase().create_all()

    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await notifier.drain()
        await DataBase().engine.dispose()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
