# bot/services/errors.py
"""Errors raised by the voting services. Routers render them through ``errors.<code>`` locale keys."""
from typing import Any


class VotingError(Exception):
    code = "voting"

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.code)
        self.details = details


class NotOpen(VotingError):
    """The contest type is not accepting writes (Closed or Locked)."""
    code = "not_open"


class AlreadyVoted(VotingError):
    code = "already_voted"


class NotEligible(VotingError):
    code = "not_eligible"


class OutOfRange(VotingError, ValueError):
    code = "out_of_range"


class DuplicateQuestion(VotingError, ValueError):
    code = "duplicate_question"


class NotFound(VotingError, LookupError):
    code = "not_found"


class InvalidTransition(VotingError):
    code = "invalid_transition"


class StorageError(VotingError):
    """Persistence failed; the wrapped SQLAlchemy error is the ``__cause__``."""
    code = "storage"
