"""
Outcome types shared by the core services.

Expected rejections (slot already taken, illegal status change, bad input)
come back as a ``Result`` carrying a ``Failure``. Only storage faults raise,
as ``StorageFailure``, after the session has been rolled back.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    SLOT_UNAVAILABLE = "slot_unavailable"
    ILLEGAL_TRANSITION = "illegal_transition"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    NOT_ELIGIBLE = "not_eligible"


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Result:
    value: Any = None
    error: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def success(value=None) -> Result:
    return Result(value=value)


def failure(kind: ErrorKind, message: str, **details) -> Result:
    return Result(error=Failure(kind=kind, message=message, details=details))


class StorageFailure(RuntimeError):
    """A transaction could not be committed. Nothing from it was persisted."""
