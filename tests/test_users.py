"""Tests for user resolution, roles and the bot middlewares."""

import uuid
from types import SimpleNamespace

import pytest
from aiogram import Dispatcher
from aiogram.types import CallbackQuery, User as TgUser

from car_show.bot.middlewares.audit import AuditMiddleware
from car_show.bot.run_bot import setup_dispatcher
from car_show.bot.middlewares.user import UserMiddleware
from car_show.bot.middlewares.whitelist import WhitelistMiddleware, is_whitelisted
from car_show.bot.services.audit_log import audit_logger
from car_show.bot.services.user import UserService
from car_show.config import Settings
from car_show.db.enums import UserRole
from car_show.db.schemas.user import UserUpdate


@pytest.fixture
def users(db) -> UserService:
    return UserService()


class TestUserService:
    async def test_autocreate_registers_a_plain_user(self, users):
        user = await users.get_user(tg_id=555, tg_username="ann", name="Ann", autocreate=True)
        assert user.role == UserRole.USER
        assert (user.tg_id, user.tg_username, user.name) == (555, "ann", "Ann")
        assert await users.get_user(tg_id=555) == user

    async def test_unknown_user_without_autocreate(self, users):
        assert await users.get_user(tg_id=556) is None

    async def test_changed_username_is_written_back(self, users, show):
        user = await users.get_user(tg_id=301, tg_username="@voter_one")
        assert user.id == show.voters[0].id
        assert user.tg_username == "voter_one"

    async def test_change_role_refreshes_the_cache(self, users, show):
        await users.get_user(tg_id=301)
        await users.change_role(show.voters[0], UserRole.JUDGE)
        cached = await users.get_user(tg_id=301)
        assert cached.role == UserRole.JUDGE
        assert show.voters[0].id in {u.id for u in await users.list_by_role(UserRole.JUDGE)}

    async def test_update_unknown_user(self, users):
        with pytest.raises(LookupError):
            await users.update_user(UserUpdate(id=uuid.uuid4(), name="Nobody"))

    def test_display_name(self, show):
        assert show.admin.display_name == "Admin"


class TestWhitelist:
    @pytest.fixture(autouse=True)
    def _whitelist(self, monkeypatch):
        monkeypatch.setattr(Settings(), "whitelist", {"boss"})

    @pytest.mark.parametrize("username,expected", [("boss", True), ("@boss", True), ("guest", False), (None, False)])
    def test_is_whitelisted(self, username, expected):
        assert is_whitelisted(username) is expected

    async def test_middleware_sets_flag(self, show):
        seen = {}

        async def handler(event, data):
            seen.update(data)

        await WhitelistMiddleware()(handler, object(), {"current_user": show.admin})
        assert seen["is_whitelisted"] is True


class TestUserMiddleware:
    async def test_registers_sender_and_binds_actor(self, db):
        seen = {}

        async def handler(event, data):
            seen["user"] = data["current_user"]
            seen["actor"] = audit_logger.current_actor()
            return "handled"

        tg_user = TgUser(id=777, is_bot=False, first_name="Dana", last_name="Lee", username="dana")
        result = await UserMiddleware()(handler, object(), {"event_from_user": tg_user})

        assert result == "handled"
        assert seen["user"].name == "Dana Lee"
        assert seen["actor"] == seen["user"].id
        assert audit_logger.current_actor() is None

    async def test_inactive_user_is_ignored(self, db, show):
        await db.update_user(UserUpdate(id=show.voters[0].id, is_active=False))
        called = []

        async def handler(event, data):
            called.append(True)

        tg_user = TgUser(id=301, is_bot=False, first_name="Voter")
        assert await UserMiddleware()(handler, object(), {"event_from_user": tg_user}) is None
        assert called == []


MODULE = __name__.rsplit(".", 1)[-1]


async def on_vote_pick(event, data):
    return "picked"


async def on_broken_button(event, data):
    raise RuntimeError("boom")


class TestAuditMiddleware:
    async def test_handled_button_is_audited(self, db, show):
        event = CallbackQuery(id="1", from_user=TgUser(id=301, is_bot=False, first_name="Voter"),
                              chat_instance="c", data="vote.car:42")
        data = {"current_user": show.voters[0], "handler": SimpleNamespace(callback=on_vote_pick)}

        assert await AuditMiddleware()(on_vote_pick, event, data) == "picked"

        [entry], _ = await db.list_audit_logs(action=f"bot.{MODULE}.on_vote_pick")
        assert entry.actor_id == show.voters[0].id
        assert entry.payload == {"data": "vote.car:42"}

    async def test_failing_handler_is_audited_as_error(self, db, show):
        data = {"current_user": show.admin, "handler": SimpleNamespace(callback=on_broken_button)}
        with pytest.raises(RuntimeError):
            await AuditMiddleware()(on_broken_button, object(), data)

        [entry], _ = await db.list_audit_logs(action=f"bot.{MODULE}.on_broken_button.error")
        assert entry.actor_id == show.admin.id
        assert "boom" in entry.payload["error"]

    async def test_registered_for_messages_and_buttons(self):
        dp = Dispatcher()
        setup_dispatcher(dp)
        assert any(isinstance(m, AuditMiddleware) for m in dp.message.middleware)
        assert any(isinstance(m, AuditMiddleware) for m in dp.callback_query.middleware)
