"""XDG config loading/saving for retry settings."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from contextlib import suppress
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from resilientcall.models import ErrorKind, parse_error_kinds
from resilientcall.policy import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    DEFAULT_RETRYABLE_KINDS,
    RetryPolicy,
)

DEFAULT_CONFIG_PATH = Path("~/.config/resilientcall/config.toml").expanduser()
DEFAULT_LOG_LEVEL = "INFO"
ENV_PREFIX = "RESILIENTCALL_"

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "ERROR"}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class RetrySettings(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    base_delay: float = Field(default=DEFAULT_BASE_DELAY, ge=0.0)
    max_delay: float = Field(default=DEFAULT_MAX_DELAY, ge=0.0)
    jitter: bool = True
    retryable_kinds: frozenset[ErrorKind] = Field(default=DEFAULT_RETRYABLE_KINDS)

    @field_validator("retryable_kinds", mode="before")
    @classmethod
    def _validate_kinds(cls, value: object) -> frozenset[ErrorKind]:
        return parse_error_kinds(value)

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
            retryable_kinds=self.retryable_kinds,
        )


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    log_level: str = DEFAULT_LOG_LEVEL
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized == "WARNING":
            normalized = "WARN"
        if normalized not in _VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}")
        return normalized

    def to_policy(self) -> RetryPolicy:
        return self.retry.to_policy()


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _toml_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(value, list):
        return "[" + ", ".join(_toml_scalar(item) for item in value) + "]"
    raise TypeError(f"Unsupported TOML scalar type: {type(value)!r}")


def _as_number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _sanitize_retry(raw: object) -> RetrySettings:
    settings = RetrySettings()
    if not isinstance(raw, Mapping):
        return settings

    max_attempts = raw.get("max_attempts", settings.max_attempts)
    if isinstance(max_attempts, int) and not isinstance(max_attempts, bool) and max_attempts >= 1:
        settings.max_attempts = max_attempts

    base_delay = _as_number(raw.get("base_delay"))
    if base_delay is not None and base_delay >= 0:
        settings.base_delay = base_delay

    max_delay = _as_number(raw.get("max_delay"))
    if max_delay is not None and max_delay >= 0:
        settings.max_delay = max_delay

    jitter = raw.get("jitter", settings.jitter)
    if isinstance(jitter, bool):
        settings.jitter = jitter

    kinds = raw.get("retryable_kinds")
    if kinds is not None:
        with suppress(ValueError):
            settings.retryable_kinds = parse_error_kinds(kinds)

    return settings


def _sanitize(raw: Mapping[str, object]) -> AppConfig:
    cfg = AppConfig()

    log_level = raw.get("log_level", cfg.log_level)
    if isinstance(log_level, str):
        with suppress(ValueError):
            cfg.log_level = log_level

    cfg.retry = _sanitize_retry(raw.get("retry", {}))
    return cfg


def _parse_bool(value: str) -> bool | None:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


def apply_env_overrides(config: AppConfig, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Override retry settings from ``RESILIENTCALL_*`` variables; bad values are ignored."""
    env = os.environ if environ is None else environ
    retry = config.retry

    raw_attempts = env.get(f"{ENV_PREFIX}MAX_ATTEMPTS", "").strip()
    if raw_attempts:
        with suppress(ValueError):
            retry.max_attempts = int(raw_attempts)

    for name in ("base_delay", "max_delay"):
        raw_delay = env.get(f"{ENV_PREFIX}{name.upper()}", "").strip()
        if raw_delay:
            with suppress(ValueError):
                setattr(retry, name, float(raw_delay))

    raw_jitter = env.get(f"{ENV_PREFIX}JITTER", "")
    jitter = _parse_bool(raw_jitter) if raw_jitter else None
    if jitter is not None:
        retry.jitter = jitter

    raw_kinds = env.get(f"{ENV_PREFIX}RETRYABLE_KINDS")
    if raw_kinds is not None:
        with suppress(ValueError):
            retry.retryable_kinds = parse_error_kinds(raw_kinds)

    raw_level = env.get(f"{ENV_PREFIX}LOG_LEVEL", "").strip()
    if raw_level:
        with suppress(ValueError):
            config.log_level = raw_level

    return config


def load_config(path: str | Path | None = None, *, environ: Mapping[str, str] | None = None) -> AppConfig:
    resolved = get_config_path(path)
    cfg = AppConfig()
    if resolved.exists():
        try:
            with resolved.open("rb") as handle:
                raw = tomllib.load(handle)
        except (tomllib.TOMLDecodeError, OSError):
            raw = {}
        if isinstance(raw, dict):
            cfg = _sanitize(raw)
    return apply_env_overrides(cfg, environ)


def save_config(config: AppConfig, path: str | Path | None = None) -> Path:
    resolved = get_config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    retry = config.retry
    kinds = sorted(kind.value for kind in retry.retryable_kinds)

    lines = [
        f"log_level = {_toml_scalar(config.log_level)}",
        "",
        "[retry]",
        f"max_attempts = {_toml_scalar(retry.max_attempts)}",
        f"base_delay = {_toml_scalar(float(retry.base_delay))}",
        f"max_delay = {_toml_scalar(float(retry.max_delay))}",
        f"jitter = {_toml_scalar(retry.jitter)}",
        f"retryable_kinds = {_toml_scalar(kinds)}",
    ]

    resolved.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o600)
    return resolved
