"""Result type returned by every mutating stream and recording operation.

Callers branch on `outcome` instead of checking for missing documents or
catching driver errors themselves.
"""

import functools
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Generic, ParamSpec, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict
from pymongo.errors import ConnectionFailure

T = TypeVar("T")
P = ParamSpec("P")


class OpOutcome(str, Enum):
    APPLIED = "applied"
    NOOP = "noop"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"
    DROPPED = "dropped"
    BACKEND_UNAVAILABLE = "backend_unavailable"

    def __str__(self) -> str:
        return self.value


class OpResult(BaseModel, Generic[T]):
    """Outcome of an operation plus the resulting entity, if any."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcome: OpOutcome
    value: T | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        """True when the entity ended up in the requested state (or the request was a deliberate skip)."""
        return self.outcome in {OpOutcome.APPLIED, OpOutcome.NOOP, OpOutcome.SKIPPED}

    @property
    def applied(self) -> bool:
        return self.outcome == OpOutcome.APPLIED

    @classmethod
    def apply(cls, value: Any = None, reason: str | None = None) -> "OpResult":
        return cls(outcome=OpOutcome.APPLIED, value=value, reason=reason)

    @classmethod
    def noop(cls, value: Any = None, reason: str | None = None) -> "OpResult":
        return cls(outcome=OpOutcome.NOOP, value=value, reason=reason)

    @classmethod
    def conflict(cls, reason: str, value: Any = None) -> "OpResult":
        return cls(outcome=OpOutcome.CONFLICT, value=value, reason=reason)

    @classmethod
    def not_found(cls, reason: str | None = None) -> "OpResult":
        return cls(outcome=OpOutcome.NOT_FOUND, reason=reason)

    @classmethod
    def skipped(cls, reason: str, value: Any = None) -> "OpResult":
        return cls(outcome=OpOutcome.SKIPPED, value=value, reason=reason)

    @classmethod
    def dropped(cls, reason: str) -> "OpResult":
        return cls(outcome=OpOutcome.DROPPED, reason=reason)

    @classmethod
    def backend_unavailable(cls, reason: str | None = None) -> "OpResult":
        return cls(outcome=OpOutcome.BACKEND_UNAVAILABLE, reason=reason)


def guard_backend(
    func: Callable[P, Awaitable[OpResult]],
) -> Callable[P, Awaitable[OpResult]]:
    """Turn store connectivity failures into a `backend_unavailable` result."""

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> OpResult:
        try:
            return await func(*args, **kwargs)
        except ConnectionFailure as exc:
            logger.error(f"Backend unavailable in {func.__qualname__}: {exc}")
            return OpResult.backend_unavailable(reason=str(exc))

    return wrapper


__all__ = ["OpOutcome", "OpResult", "guard_backend"]
