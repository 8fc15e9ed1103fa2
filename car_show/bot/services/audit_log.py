# bot/services/audit_log.py
"""
Audit trail of the show: every state-changing engine call and every bot handler
run ends up as one ``audit_log`` row named ``<prefix>.<name>`` (``.error`` when it raised).
"""
from __future__ import annotations

import inspect
import logging
import uuid
from contextvars import ContextVar, Token
from datetime import date, datetime
from enum import Enum
from functools import wraps
from typing import Any, ClassVar, Iterable, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from car_show.db.database import DataBase
from car_show.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from car_show.db.schemas.user import UserRead

logger = logging.getLogger("car_show.audit")

_actor_ctx: ContextVar[Optional[uuid.UUID]] = ContextVar("audit_actor", default=None)


class AuditLogService:
    """Singleton writer of audit rows; the actor falls back to the one bound for the current update."""

    _instance: ClassVar[Optional["AuditLogService"]] = None

    def __new__(cls) -> "AuditLogService":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def log(
        self,
        *,
        action: str,
        actor: UserRead | uuid.UUID | None = None,
        payload: Any | None = None,
    ) -> Optional[AuditLogRead]:
        """
        Store one entry. A storage failure is logged and swallowed: the audited
        call has already happened and its outcome must not change.
        """
        actor_id = actor.id if isinstance(actor, UserRead) else actor
        if actor_id is None:
            actor_id = self.current_actor()

        data = self.serialize(payload) if payload is not None else {}
        if not isinstance(data, dict):
            data = {"value": data}

        try:
            entry = await DataBase().create_audit_log(AuditLogCreate(action=action, actor_id=actor_id, payload=data))
        except SQLAlchemyError:
            logger.exception("Failed to store audit entry action=%s", action)
            return None

        logger.info("AUDIT action=%s actor=%s entry=%s", action, actor_id or "-", entry.id)
        return entry

    # per-update actor, bound by UserMiddleware
    def bind_actor(self, actor_id: Optional[uuid.UUID]) -> Token:
        return _actor_ctx.set(actor_id)

    def unbind_actor(self, token: Token) -> None:
        _actor_ctx.reset(token)

    def current_actor(self) -> Optional[uuid.UUID]:
        return _actor_ctx.get()

    def serialize(self, value: Any) -> Any:
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if hasattr(value, "model_dump"):
            return value.model_dump(mode="json")
        if isinstance(value, Mapping):
            return {str(k): self.serialize(v) for k, v in value.items()}
        if isinstance(value, (Sequence, set, frozenset)) and not isinstance(value, (bytes, bytearray)):
            return [self.serialize(v) for v in value]
        return str(value)


audit_logger = AuditLogService()


def _resolve_actor(actor_fields: Iterable[str], bound: inspect.BoundArguments) -> UserRead | uuid.UUID | None:
    for field in actor_fields:
        candidate = bound.arguments.get(field)
        if candidate is not None:
            return candidate
    return None


def instrument_service_class(
    cls,
    *,
    prefix: str | None = None,
    exclude: Iterable[str] | None = None,
    actor_fields: Iterable[str] = (),
) -> None:
    """
    Wrap the public coroutine methods of `cls` so that every call is audited
    with its arguments and its result or error. The actor is the first non-empty
    argument named in `actor_fields`, otherwise the bound actor.
    """
    action_prefix = prefix or cls.__name__
    excluded = set(exclude or ())
    actor_fields = tuple(actor_fields)

    for name, fn in list(cls.__dict__.items()):
        if name.startswith("_") or name in excluded or not inspect.iscoroutinefunction(fn):
            continue
        setattr(cls, name, _audited(fn, f"{action_prefix}.{name}", actor_fields))


def _audited(fn, action: str, actor_fields: tuple[str, ...]):
    signature = inspect.signature(fn)

    @wraps(fn)
    async def wrapper(self, *args, **kwargs):
        bound = signature.bind(self, *args, **kwargs)
        actor = _resolve_actor(actor_fields, bound)
        payload: dict[str, Any] = {
            "args": {k: audit_logger.serialize(v) for k, v in bound.arguments.items() if k != "self"},
        }
        try:
            result = await fn(self, *args, **kwargs)
        except Exception as exc:
            payload["error"] = repr(exc)
            await audit_logger.log(action=f"{action}.error", actor=actor, payload=payload)
            raise
        payload["result"] = audit_logger.serialize(result)
        await audit_logger.log(action=action, actor=actor, payload=payload)
        return result

    return wrapper


__all__ = [
    "AuditLogService",
    "audit_logger",
    "instrument_service_class",
]
