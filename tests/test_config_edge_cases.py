"""Config module edge case tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from resilientcall.config import AppConfig, RetrySettings, get_config_path, load_config
from resilientcall.models import ErrorKind


def test_malformed_toml_returns_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[retry\nmax_attempts = ", encoding="utf-8")

    cfg = load_config(path, environ={})

    assert cfg == AppConfig()


def test_invalid_values_are_dropped_field_by_field(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                'log_level = "chatty"',
                "[retry]",
                "max_attempts = 0",
                "base_delay = -1.0",
                'max_delay = "soon"',
                'jitter = "yes"',
                'retryable_kinds = ["throttling", "gremlins"]',
            ]
        ),
        encoding="utf-8",
    )

    cfg = load_config(path, environ={})

    assert cfg.log_level == "INFO"
    assert cfg.retry == RetrySettings()


def test_boolean_max_attempts_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[retry]\nmax_attempts = true\nbase_delay = 2\n", encoding="utf-8")

    cfg = load_config(path, environ={})

    assert cfg.retry.max_attempts == 3
    assert cfg.retry.base_delay == 2.0


def test_retry_section_of_wrong_type_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('retry = "fast"\n', encoding="utf-8")

    assert load_config(path, environ={}).retry == RetrySettings()


def test_empty_retryable_kinds_disables_retries(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[retry]\nretryable_kinds = []\n", encoding="utf-8")

    cfg = load_config(path, environ={})

    assert cfg.retry.retryable_kinds == frozenset()
    assert not cfg.to_policy().is_retryable(ErrorKind.THROTTLING)


def test_invalid_env_values_are_ignored(tmp_path: Path) -> None:
    cfg = load_config(
        tmp_path / "missing.toml",
        environ={
            "RESILIENTCALL_MAX_ATTEMPTS": "zero",
            "RESILIENTCALL_BASE_DELAY": "-3",
            "RESILIENTCALL_JITTER": "maybe",
            "RESILIENTCALL_RETRYABLE_KINDS": "gremlins",
        },
    )

    assert cfg.retry == RetrySettings()


def test_settings_validate_assignment() -> None:
    settings = RetrySettings()

    with pytest.raises(ValidationError):
        settings.max_attempts = 0


def test_get_config_path_expands_user(tmp_path: Path) -> None:
    assert get_config_path(tmp_path / "x.toml") == tmp_path / "x.toml"
    assert get_config_path().name == "config.toml"
