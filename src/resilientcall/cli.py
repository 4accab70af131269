"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TextIO

from .config import AppConfig, load_config
from .errors import ExecutorError, ExitCode, ResilientCallError, user_facing_error
from .executor import execute
from .logging import configure_logging, default_log_path, log_attempt_trail
from .models import ErrorKind, parse_error_kinds
from .policy import RetryPolicy, backoff_schedule
from .transport import HttpRequester, http_operation

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
_KIND_CHOICES = tuple(kind.value for kind in ErrorKind)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--max-attempts must be an integer") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("--max-attempts must be at least 1")
    return number


def _delay_type(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("delays must be numbers of seconds") from exc
    if seconds < 0:
        raise argparse.ArgumentTypeError("delays cannot be negative")
    return seconds


def _kind_type(value: str) -> ErrorKind:
    try:
        (kind,) = parse_error_kinds([value])
    except ValueError as exc:
        accepted = ", ".join(_KIND_CHOICES)
        raise argparse.ArgumentTypeError(f"--retry-on must be one of: {accepted}") from exc
    return kind


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resilientcall",
        description="Call a remote endpoint with classified retries and exponential backoff.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument("--url", default=None, help="GET this URL through the retry executor")
    parser.add_argument("--max-attempts", type=_positive_int, default=None)
    parser.add_argument("--base-delay", type=_delay_type, default=None, help="Seconds before the first retry")
    parser.add_argument("--max-delay", type=_delay_type, default=None, help="Upper bound for any single delay")
    parser.add_argument("--no-jitter", action="store_true", help="Disable full jitter")
    parser.add_argument(
        "--retry-on",
        type=_kind_type,
        action="append",
        default=None,
        metavar="KIND",
        help=f"Retryable error kind, repeatable ({', '.join(_KIND_CHOICES)})",
    )
    parser.add_argument(
        "--show-schedule",
        action="store_true",
        help="Print the effective policy and its un-jittered delay schedule",
    )
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def resolve_policy(namespace: argparse.Namespace, config: AppConfig) -> RetryPolicy:
    base = config.to_policy()
    return RetryPolicy(
        max_attempts=namespace.max_attempts if namespace.max_attempts is not None else base.max_attempts,
        base_delay=namespace.base_delay if namespace.base_delay is not None else base.base_delay,
        max_delay=namespace.max_delay if namespace.max_delay is not None else base.max_delay,
        jitter=False if namespace.no_jitter else base.jitter,
        retryable_kinds=frozenset(namespace.retry_on) if namespace.retry_on else base.retryable_kinds,
    )


def render_schedule(policy: RetryPolicy) -> str:
    kinds = ", ".join(sorted(kind.value for kind in policy.retryable_kinds)) or "-"
    lines = [
        f"max_attempts: {policy.max_attempts}",
        f"base_delay: {policy.base_delay:g}s",
        f"max_delay: {policy.max_delay:g}s",
        f"jitter: {'on' if policy.jitter else 'off'}",
        f"retryable_kinds: {kinds}",
    ]
    for attempt, delay in enumerate(backoff_schedule(policy), start=2):
        suffix = " (upper bound)" if policy.jitter else ""
        lines.append(f"before attempt {attempt}: {delay:g}s{suffix}")
    return "\n".join(lines)


def run_probe(
    url: str,
    policy: RetryPolicy,
    *,
    requester: HttpRequester | None = None,
    sleep: Callable[[float], None] | None = None,
    out: TextIO | None = None,
) -> int:
    logger = py_logging.getLogger("resilientcall")
    operation = http_operation(url, requester=requester)
    try:
        result = execute(operation, policy, sleep=sleep)
    except ExecutorError as exc:
        log_attempt_trail(exc.attempts, logger, operation=operation.name)
        raise
    log_attempt_trail(result.attempts, logger, operation=operation.name)
    print(result.value.body, file=out or sys.stdout)
    return int(ExitCode.SUCCESS)


def run_cli_flow(
    namespace: argparse.Namespace,
    config: AppConfig,
    *,
    requester: HttpRequester | None = None,
    sleep: Callable[[float], None] | None = None,
) -> int:
    policy = resolve_policy(namespace, config)
    if namespace.show_schedule or not namespace.url:
        print(render_schedule(policy))
    if namespace.url:
        return run_probe(namespace.url, policy, requester=requester, sleep=sleep)
    return int(ExitCode.SUCCESS)


def main(
    argv: Sequence[str] | None = None,
    *,
    requester: HttpRequester | None = None,
    sleep: Callable[[float], None] | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    config = load_config(namespace.config)
    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level or config.log_level, log_file=log_path)

    try:
        logger.debug("Starting CLI flow")
        return run_cli_flow(namespace, config, requester=requester, sleep=sleep)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        print(user_facing_error("Interrupted"), file=sys.stderr)
        return int(ExitCode.CANCELLED)
    except ExecutorError as exc:
        logger.error(
            "Remote call failed (kind=%s, reason=%s, attempts=%d): %s",
            exc.kind.value if exc.kind is not None else "none",
            exc.reason.value,
            exc.attempt_count,
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(f"{exc.operation}: {exc.message}", hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except ResilientCallError as exc:
        logger.error(
            "Handled ResilientCallError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        try:
            hint = f"Inspect logs: {log_path}"
            print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        except Exception:
            pass
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
