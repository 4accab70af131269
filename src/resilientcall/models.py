"""Attempt, outcome and operation models shared by the executor."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from typing_extensions import TypedDict

T = TypeVar("T")


class ErrorKind(str, Enum):
    THROTTLING = "throttling"
    TRANSIENT = "transient"
    RESOURCE_CONFLICT = "resource_conflict"
    INVALID_INPUT = "invalid_input"
    UNKNOWN = "unknown"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True)
class Outcome:
    status: OutcomeStatus
    kind: ErrorKind | None = None
    message: str = ""
    value: Any = None

    @classmethod
    def success(cls, value: Any = None) -> Outcome:
        return cls(OutcomeStatus.SUCCESS, value=value)

    @classmethod
    def retryable(cls, kind: ErrorKind, message: str) -> Outcome:
        return cls(OutcomeStatus.RETRYABLE_FAILURE, kind, message)

    @classmethod
    def fatal(cls, kind: ErrorKind, message: str) -> Outcome:
        return cls(OutcomeStatus.FATAL_FAILURE, kind, message)

    @property
    def is_success(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def is_fatal(self) -> bool:
        return self.status is OutcomeStatus.FATAL_FAILURE


class AttemptPayload(TypedDict):
    attempt: int
    started_at: str
    status: str
    kind: str | None
    message: str
    delay_before_next: float | None


@dataclass(frozen=True)
class AttemptRecord:
    attempt: int
    started_at: datetime
    outcome: Outcome
    delay_before_next: float | None = None

    def to_dict(self) -> AttemptPayload:
        return AttemptPayload(
            attempt=self.attempt,
            started_at=self.started_at.isoformat(),
            status=self.outcome.status.value,
            kind=self.outcome.kind.value if self.outcome.kind is not None else None,
            message=self.outcome.message,
            delay_before_next=self.delay_before_next,
        )


@dataclass(frozen=True)
class Operation(Generic[T]):
    """A single remote call the executor may invoke more than once.

    Non-idempotent operations are never retried, whatever the error kind.
    """

    call: Callable[[], Any]
    name: str = "operation"
    idempotent: bool = True

    def __call__(self) -> Any:
        return self.call()


def as_operation(target: Operation[T] | Callable[[], Any]) -> Operation[T]:
    if isinstance(target, Operation):
        return target
    name = getattr(target, "__name__", "") or type(target).__name__
    return Operation(call=target, name=name)


def parse_error_kinds(values: object) -> frozenset[ErrorKind]:
    """Parse kind names, ignoring blanks and raising ``ValueError`` on unknown names."""
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, (list, tuple, set, frozenset)):
        raise ValueError(f"Expected a list of error kinds, got {type(values).__name__}")
    kinds: set[ErrorKind] = set()
    for item in values:
        if isinstance(item, ErrorKind):
            kinds.add(item)
            continue
        if not isinstance(item, str):
            raise ValueError(f"Invalid error kind: {item!r}")
        normalized = item.strip().lower().replace("-", "_")
        if not normalized:
            continue
        try:
            kinds.add(ErrorKind(normalized))
        except ValueError as exc:
            raise ValueError(f"Invalid error kind: {item}") from exc
    return frozenset(kinds)
