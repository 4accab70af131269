"""Retry policy and backoff math."""

from __future__ import annotations

import math
import random
from collections.abc import Iterable
from dataclasses import dataclass, field

from resilientcall.errors import ExitCode, ResilientCallError
from resilientcall.models import ErrorKind

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 60.0
DEFAULT_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset({ErrorKind.THROTTLING, ErrorKind.TRANSIENT})

# 2.0 ** 1024 no longer fits in a float.
_MAX_EXPONENT = 1023


@dataclass(frozen=True)
class RetryPolicy:
    """Read-only retry configuration, safe to share between concurrent calls.

    ``max_attempts`` counts every invocation, the first one included.
    Delays are in seconds.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    jitter: bool = True
    retryable_kinds: frozenset[ErrorKind] = field(default=DEFAULT_RETRYABLE_KINDS)

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ResilientCallError(
                f"Invalid max_attempts: {self.max_attempts!r}",
                code=ExitCode.VALIDATION_ERROR,
                hint="max_attempts must be an integer.",
            )
        if self.max_attempts < 1:
            raise ResilientCallError(
                f"Invalid max_attempts: {self.max_attempts}",
                code=ExitCode.VALIDATION_ERROR,
                hint="max_attempts must be at least 1.",
            )
        for name in ("base_delay", "max_delay"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
                raise ResilientCallError(
                    f"Invalid {name}: {value!r}",
                    code=ExitCode.VALIDATION_ERROR,
                    hint=f"{name} must be a number of seconds.",
                )
        if not isinstance(self.jitter, bool):
            raise ResilientCallError(
                f"Invalid jitter: {self.jitter!r}",
                code=ExitCode.VALIDATION_ERROR,
                hint="jitter must be true or false.",
            )
        if not isinstance(self.retryable_kinds, frozenset):
            object.__setattr__(self, "retryable_kinds", frozenset(self.retryable_kinds))

    def is_retryable(self, kind: ErrorKind) -> bool:
        return kind in self.retryable_kinds

    def with_retryable(self, kinds: Iterable[ErrorKind]) -> RetryPolicy:
        """Return a copy that also retries ``kinds``."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
            retryable_kinds=self.retryable_kinds | frozenset(kinds),
        )


def base_delay_for(policy: RetryPolicy, attempt: int) -> float:
    """Un-jittered delay scheduled after failed attempt ``attempt`` (1-based)."""
    if attempt < 1:
        raise ValueError(f"Attempt numbers start at 1, got {attempt}")
    exponent = min(attempt - 1, _MAX_EXPONENT)
    delay = min(policy.max_delay, policy.base_delay * 2.0**exponent)
    return max(0.0, delay)


def compute_delay(
    policy: RetryPolicy,
    attempt: int,
    *,
    rng: random.Random | None = None,
) -> float:
    delay = base_delay_for(policy, attempt)
    if policy.jitter and delay > 0:
        delay = rng.uniform(0.0, delay) if rng is not None else random.uniform(0.0, delay)
    return max(0.0, delay)


def backoff_schedule(policy: RetryPolicy) -> list[float]:
    return [base_delay_for(policy, attempt) for attempt in range(1, policy.max_attempts)]
