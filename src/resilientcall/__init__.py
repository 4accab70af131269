"""Retry remote calls on classified transient errors with exponential backoff."""

from .classifiers import (
    chain_classifiers,
    classify_aws_error,
    classify_error,
    classify_http_error,
    classify_http_status,
)
from .errors import ExecutionCancelled, ExecutorError, ResilientCallError, TerminationReason
from .executor import (
    CancellationToken,
    ExecutionResult,
    ResilientExecutor,
    execute,
    execute_async,
)
from .models import AttemptRecord, ErrorKind, Operation, Outcome, OutcomeStatus
from .policy import RetryPolicy, backoff_schedule, compute_delay

__version__ = "0.1.0"

__all__ = [
    "AttemptRecord",
    "CancellationToken",
    "ErrorKind",
    "ExecutionCancelled",
    "ExecutionResult",
    "ExecutorError",
    "Operation",
    "Outcome",
    "OutcomeStatus",
    "ResilientCallError",
    "ResilientExecutor",
    "RetryPolicy",
    "TerminationReason",
    "backoff_schedule",
    "chain_classifiers",
    "classify_aws_error",
    "classify_error",
    "classify_http_error",
    "classify_http_status",
    "compute_delay",
    "execute",
    "execute_async",
]
