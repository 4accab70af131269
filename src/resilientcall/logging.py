"""Application logging helpers."""

from __future__ import annotations

import logging as py_logging
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from resilientcall.models import AttemptRecord, OutcomeStatus

LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
LOGGER_NAME = "resilientcall"
DEFAULT_LOG_PATH = Path("~/.config/resilientcall/logs/resilientcall.log")
_FALLBACK_LOG_PATH = Path(".resilientcall/logs/resilientcall.log")
_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"


def default_log_path() -> Path:
    try:
        resolved = DEFAULT_LOG_PATH.expanduser()
    except RuntimeError:
        resolved = (Path.cwd() / _FALLBACK_LOG_PATH).resolve()
    else:
        if not resolved.is_absolute():
            resolved = resolved.resolve()
    return resolved


def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    normalized = level.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    resolved = LOG_LEVELS.get(normalized, py_logging.INFO)

    logger = py_logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolved)
    for existing in list(logger.handlers):
        existing.close()
    logger.handlers.clear()
    formatter = py_logging.Formatter(_FORMAT)

    handler = py_logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if log_file:
        try:
            log_path = Path(log_file).expanduser()
        except RuntimeError:
            log_path = Path(log_file)
        if not log_path.is_absolute():
            log_path = log_path.resolve()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = py_logging.FileHandler(log_path, encoding="utf-8")
        except OSError:
            pass
        else:
            file_handler.setLevel(py_logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
            # File handler records DEBUG even when the console is quieter.
            logger.setLevel(min(resolved, py_logging.DEBUG))

    logger.propagate = False
    return logger


def log_attempt_trail(
    attempts: Iterable[AttemptRecord],
    logger: py_logging.Logger | None = None,
    *,
    operation: str = "",
) -> None:
    """Write one line per attempt; failures at WARNING, successes at INFO."""
    target = logger or py_logging.getLogger(LOGGER_NAME)
    label = operation or "operation"
    for record in attempts:
        outcome = record.outcome
        if outcome.status is OutcomeStatus.SUCCESS:
            target.info("%s attempt %d succeeded", label, record.attempt)
            continue
        kind = outcome.kind.value if outcome.kind is not None else "unknown"
        if record.delay_before_next is None:
            target.warning(
                "%s attempt %d failed (%s, %s): %s",
                label,
                record.attempt,
                kind,
                outcome.status.value,
                outcome.message,
            )
        else:
            target.warning(
                "%s attempt %d failed (%s, %s): %s; next attempt in %.3fs",
                label,
                record.attempt,
                kind,
                outcome.status.value,
                outcome.message,
                record.delay_before_next,
            )
