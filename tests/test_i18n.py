"""Tests for the locale files and the localizer."""

import pytest

from car_show.bot.routers.utils import error_text
from car_show.bot.services import errors
from car_show.bot.services.notifier import TRANSITION_EVENTS
from car_show.db.enums import ContestType, UserRole, VoteState
from car_show.i18n import Localizer, lang_code2language


@pytest.fixture
def lz() -> Localizer:
    return Localizer("english")


class TestLocalizer:
    def test_nested_key_with_arguments(self, lz):
        assert lz.get("voting.changed", contest="Judge voting", state="open") == "Judge voting is now open"

    def test_call_is_get(self, lz):
        assert lz("core.greeting", name="Ann") == "Hi, Ann!"

    @pytest.mark.parametrize("key", ["nope.key", "voting.nope", "voting.panel", "voting"])
    def test_missing_or_partial_key(self, lz, key):
        with pytest.raises(KeyError):
            lz.get(key)
        assert not lz.has(key)

    def test_unknown_language_falls_back(self):
        fallback = Localizer("klingon")
        assert fallback.lang == "english"
        assert fallback.get("roles.judge") == "Judge"

    @pytest.mark.parametrize("code,language", [("en", "english"), ("xx", "english"), (None, "english")])
    def test_language_codes(self, code, language):
        assert lang_code2language(code) == language


class TestLocaleCoverage:
    def test_every_error_code_has_a_message(self, lz):
        codes = {
            cls.code
            for cls in vars(errors).values()
            if isinstance(cls, type) and issubclass(cls, errors.VotingError)
        }
        assert {code for code in codes if not lz.has(f"errors.{code}")} == set()

    def test_every_transition_has_a_message(self, lz):
        assert all(lz.has(key) for _, key, _ in TRANSITION_EVENTS.values())

    def test_every_role_and_state_has_a_label(self, lz):
        assert all(lz.has(f"roles.{role.value}") for role in UserRole)
        assert all(lz.has(f"states.{state.value}") for state in VoteState)
        assert all(lz.has(f"voting.action.{state.value}") for state in VoteState)
        assert all(lz.has(f"voting.contest.{ct.value}") for ct in ContestType)


class TestErrorText:
    def test_known_code(self, lz):
        assert error_text(lz, errors.AlreadyVoted()) == "You have already voted in this contest."

    def test_unknown_code_uses_generic_message(self, lz):
        class Odd(errors.VotingError):
            code = "odd"

        assert error_text(lz, Odd()) == "Something went wrong, please try again."
