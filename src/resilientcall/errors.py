"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from resilientcall.models import AttemptRecord, ErrorKind


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    REMOTE_ERROR = 5
    VALIDATION_ERROR = 7
    CANCELLED = 130


class TerminationReason(str, Enum):
    FATAL = "fatal"
    EXHAUSTED = "exhausted"
    NOT_IDEMPOTENT = "not_idempotent"
    CANCELLED = "cancelled"


@dataclass
class ResilientCallError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


@dataclass
class ExecutorError(ResilientCallError):
    """Terminal failure of one ``execute`` call.

    ``kind`` is the classification of the last failed attempt and
    ``attempts`` is the full trail, oldest first.
    """

    kind: ErrorKind | None = None
    operation: str = ""
    reason: TerminationReason = TerminationReason.FATAL
    attempts: tuple[AttemptRecord, ...] = field(default_factory=tuple)
    code: ExitCode = ExitCode.REMOTE_ERROR

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def __str__(self) -> str:
        kind = self.kind.value if self.kind is not None else "none"
        prefix = f"{self.operation}: " if self.operation else ""
        base = f"{prefix}{self.message} (kind={kind}, reason={self.reason.value}, attempts={self.attempt_count})"
        if self.hint:
            return f"{base} Hint: {self.hint}"
        return base


@dataclass
class ExecutionCancelled(ExecutorError):
    reason: TerminationReason = TerminationReason.CANCELLED
    code: ExitCode = ExitCode.CANCELLED


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
