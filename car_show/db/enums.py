# db/enums.py
import enum

class UserRole(enum.StrEnum):
    ADMIN = "admin"
    JUDGE = "judge"
    REGISTRAR = "registrar"
    USER = "user"

class ContestType(enum.StrEnum):
    JUDGE = "judge"
    SPECIALTY = "specialty"

class VoteState(enum.StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    LOCKED = "locked"

class Audience(enum.StrEnum):
    ALL = "all"
    ADMIN = "admin"
    JUDGE = "judge"
    REGISTRAR = "registrar"
    USER = "user"
