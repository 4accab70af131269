"""Resilient remote call executor.

Wraps one remote operation with error classification, exponential backoff
with optional full jitter, and a bounded retry budget. Attempts for a single
call are strictly sequential; the only suspension point is the sleep between
attempts. Every call returns an ``ExecutionResult`` or raises a typed
``ExecutorError`` carrying the attempt trail.
"""

from __future__ import annotations

import asyncio
import inspect
import logging as py_logging
import random
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from resilientcall.classifiers import Classifier, classify_error
from resilientcall.errors import ExecutionCancelled, ExecutorError, TerminationReason
from resilientcall.models import (
    AttemptRecord,
    ErrorKind,
    Operation,
    Outcome,
    as_operation,
)
from resilientcall.policy import RetryPolicy, compute_delay

logger = py_logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], None]
AsyncSleeper = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]

_HINTS = {
    TerminationReason.EXHAUSTED: "Retry budget exhausted; raise max_attempts or try again later.",
    TerminationReason.NOT_IDEMPOTENT: "Operation is not idempotent and was not retried automatically.",
    TerminationReason.CANCELLED: "Execution was cancelled between attempts.",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CancellationToken:
    """Thread-safe cancellation flag for synchronous callers."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)


@dataclass(frozen=True)
class ExecutionResult(Generic[T]):
    value: T
    attempts: tuple[AttemptRecord, ...]

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


def _describe(error: BaseException) -> str:
    text = str(error).strip()
    return text or type(error).__name__


def _safe_classify(classify: Classifier, error: BaseException) -> ErrorKind:
    try:
        kind = classify(error)
    except Exception:
        logger.debug("Classifier raised for %s; treating as unknown", type(error).__name__, exc_info=True)
        return ErrorKind.UNKNOWN
    if isinstance(kind, ErrorKind):
        return kind
    try:
        return ErrorKind(kind)
    except ValueError:
        return ErrorKind.UNKNOWN


class _AttemptLoop:
    """Book-keeping for one logical call, shared by the sync and async paths."""

    def __init__(
        self,
        operation: Operation[Any],
        policy: RetryPolicy,
        *,
        classify: Classifier,
        rng: random.Random | None,
    ) -> None:
        self.operation = operation
        self.policy = policy
        self.classify = classify
        self.rng = rng
        self.attempt = 1
        self.records: list[AttemptRecord] = []

    def succeeded(self, started_at: datetime, value: Any) -> ExecutionResult[Any]:
        self.records.append(AttemptRecord(self.attempt, started_at, Outcome.success()))
        logger.debug("%s succeeded on attempt %d", self.operation.name, self.attempt)
        return ExecutionResult(value=value, attempts=tuple(self.records))

    def failed_with_error(self, started_at: datetime, error: BaseException) -> float:
        kind = _safe_classify(self.classify, error)
        return self._failed(started_at, kind, _describe(error), cause=error)

    def failed_with_outcome(self, started_at: datetime, outcome: Outcome) -> float:
        kind = outcome.kind or ErrorKind.UNKNOWN
        message = outcome.message or kind.value
        return self._failed(started_at, kind, message, force_fatal=outcome.is_fatal)

    def _failed(
        self,
        started_at: datetime,
        kind: ErrorKind,
        message: str,
        *,
        cause: BaseException | None = None,
        force_fatal: bool = False,
    ) -> float:
        retryable = not force_fatal and self.policy.is_retryable(kind)
        outcome = Outcome.retryable(kind, message) if retryable else Outcome.fatal(kind, message)

        reason: TerminationReason | None = None
        if not retryable:
            reason = TerminationReason.FATAL
        elif self.attempt >= self.policy.max_attempts:
            reason = TerminationReason.EXHAUSTED
        elif not self.operation.idempotent:
            reason = TerminationReason.NOT_IDEMPOTENT

        if reason is not None:
            self.records.append(AttemptRecord(self.attempt, started_at, outcome))
            logger.debug(
                "%s stopped after attempt %d (%s, %s)",
                self.operation.name,
                self.attempt,
                kind.value,
                reason.value,
            )
            error = ExecutorError(
                message,
                hint=_HINTS.get(reason, ""),
                kind=kind,
                operation=self.operation.name,
                reason=reason,
                attempts=tuple(self.records),
            )
            if cause is not None:
                raise error from cause
            raise error

        delay = compute_delay(self.policy, self.attempt, rng=self.rng)
        self.records.append(AttemptRecord(self.attempt, started_at, outcome, delay_before_next=delay))
        logger.debug(
            "%s attempt %d failed (%s); retrying in %.3fs",
            self.operation.name,
            self.attempt,
            kind.value,
            delay,
        )
        return delay

    def cancelled(self) -> ExecutionCancelled:
        last = self.records[-1].outcome if self.records else None
        return ExecutionCancelled(
            last.message if last is not None else "cancelled before first attempt",
            hint=_HINTS[TerminationReason.CANCELLED],
            kind=last.kind if last is not None else None,
            operation=self.operation.name,
            attempts=tuple(self.records),
        )

    def advance(self) -> None:
        self.attempt += 1


def execute(
    operation: Operation[T] | Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    classify: Classifier = classify_error,
    sleep: Sleeper | None = None,
    cancel: CancellationToken | None = None,
    clock: Clock = _utcnow,
    rng: random.Random | None = None,
) -> ExecutionResult[T]:
    """Run ``operation`` until it succeeds or the policy says stop.

    Args:
        operation: ``Operation`` or zero-argument callable. A returned failure
            ``Outcome`` is handled like a raised error of that kind; a returned
            success ``Outcome`` is unwrapped to its ``value``.
        policy: Retry policy; defaults to ``RetryPolicy()``.
        classify: Maps raised errors onto ``ErrorKind``. Errors raised by the
            classifier itself count as ``UNKNOWN``.
        sleep: Suspension primitive. Defaults to ``cancel.wait`` when a token
            is given, otherwise ``time.sleep``.
        cancel: Token checked before each attempt and after every sleep.

    Raises:
        ExecutorError: fatal kind, exhausted budget or non-idempotent operation.
        ExecutionCancelled: ``cancel`` was triggered; no further attempt runs.
    """
    op = as_operation(operation)
    loop = _AttemptLoop(op, policy or RetryPolicy(), classify=classify, rng=rng)
    if sleep is not None:
        suspend = sleep
    elif cancel is not None:
        suspend = cancel.wait
    else:
        suspend = time.sleep

    while True:
        if cancel is not None and cancel.cancelled:
            raise loop.cancelled()
        started_at = clock()
        try:
            value = op()
        except Exception as error:
            delay = loop.failed_with_error(started_at, error)
        else:
            if isinstance(value, Outcome):
                if value.is_success:
                    return loop.succeeded(started_at, value.value)
                delay = loop.failed_with_outcome(started_at, value)
            else:
                return loop.succeeded(started_at, value)

        suspend(delay)
        if cancel is not None and cancel.cancelled:
            raise loop.cancelled()
        loop.advance()


async def execute_async(
    operation: Operation[T] | Callable[[], Any],
    policy: RetryPolicy | None = None,
    *,
    classify: Classifier = classify_error,
    sleep: AsyncSleeper = asyncio.sleep,
    clock: Clock = _utcnow,
    rng: random.Random | None = None,
) -> ExecutionResult[Any]:
    """Cooperative variant of :func:`execute`.

    The operation may return an awaitable. Task cancellation while awaiting
    the operation or the backoff propagates as ``asyncio.CancelledError``.
    """
    op = as_operation(operation)
    loop = _AttemptLoop(op, policy or RetryPolicy(), classify=classify, rng=rng)

    while True:
        started_at = clock()
        try:
            value = op()
            if inspect.isawaitable(value):
                value = await value
        except Exception as error:
            delay = loop.failed_with_error(started_at, error)
        else:
            if isinstance(value, Outcome):
                if value.is_success:
                    return loop.succeeded(started_at, value.value)
                delay = loop.failed_with_outcome(started_at, value)
            else:
                return loop.succeeded(started_at, value)

        await sleep(delay)
        loop.advance()


class ResilientExecutor:
    """Binds a policy and classifier so call sites only pass the operation."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        classify: Classifier = classify_error,
        sleep: Sleeper | None = None,
        async_sleep: AsyncSleeper = asyncio.sleep,
        clock: Clock = _utcnow,
        rng: random.Random | None = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.classify = classify
        self.sleep = sleep
        self.async_sleep = async_sleep
        self.clock = clock
        self.rng = rng

    def run(
        self,
        operation: Operation[T] | Callable[[], T],
        *,
        cancel: CancellationToken | None = None,
    ) -> ExecutionResult[T]:
        return execute(
            operation,
            self.policy,
            classify=self.classify,
            sleep=self.sleep,
            cancel=cancel,
            clock=self.clock,
            rng=self.rng,
        )

    async def run_async(self, operation: Operation[T] | Callable[[], Any]) -> ExecutionResult[Any]:
        return await execute_async(
            operation,
            self.policy,
            classify=self.classify,
            sleep=self.async_sleep,
            clock=self.clock,
            rng=self.rng,
        )

    def call(self, operation: Operation[T] | Callable[[], T], *, cancel: CancellationToken | None = None) -> T:
        return self.run(operation, cancel=cancel).value
