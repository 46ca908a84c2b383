"""Retry-less "attempt and record outcome" wrapper.

Remote calls made during a run (one per classification batch plus the
insights call) never raise into the run loop. They are awaited through
:func:`attempt`, which returns an :class:`Outcome` tagged as a success or as
a failure of a given :class:`FailureKind`.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

# Substrings that identify rate limiting or an unavailable model
_CAPACITY_MARKERS = (
    "429",
    "quota",
    "503",
    "service unavailable",
    "model is overloaded",
)
_CAPACITY_STATUS_CODES = {429, 503}


class FailureKind(str, Enum):
    """Why a remote call failed, as far as the user is concerned."""

    CAPACITY = "capacity"  # rate limits, quota, service unavailable
    OTHER = "other"


def failure_kind(exc: BaseException) -> FailureKind:
    """Classify *exc* as a capacity/availability failure or anything else."""
    status = getattr(exc, "status_code", None)
    if status in _CAPACITY_STATUS_CODES:
        return FailureKind.CAPACITY
    message = str(exc).lower()
    if any(marker in message for marker in _CAPACITY_MARKERS):
        return FailureKind.CAPACITY
    return FailureKind.OTHER


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one attempted call: either ``value`` or ``error``."""

    value: Optional[T] = None
    error: Optional[BaseException] = None
    kind: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T]) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Outcome[T]":
        return cls(error=error, kind=failure_kind(error))

    def describe(self, limit: int = 100) -> str:
        """Short, user-presentable description of the error (empty on success)."""
        if self.error is None:
            return ""
        text = str(self.error) or type(self.error).__name__
        return text[:limit]


async def attempt(
    func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
) -> Outcome[T]:
    """Await ``func(*args, **kwargs)`` and record its outcome."""
    try:
        value = await func(*args, **kwargs)
    except Exception as exc:  # noqa: BLE001 – recorded in the outcome
        return Outcome.failure(exc)
    return Outcome.success(value)
