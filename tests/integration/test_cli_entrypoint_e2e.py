from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path


def _env_with_pythonpath(home: Path) -> dict[str, str]:
    env = {key: value for key, value in os.environ.items() if not key.startswith("RESILIENTCALL_")}
    existing = env.get("PYTHONPATH", "")
    src_path = str(Path("src").resolve())
    env["PYTHONPATH"] = f"{src_path}{os.pathsep}{existing}" if existing else src_path
    env["HOME"] = str(home)
    return env


def test_cli_module_reports_invalid_args_via_exit_code(tmp_path: Path) -> None:
    completed = subprocess.run(
        [sys.executable, "-m", "resilientcall", "--max-attempts", "0", "--log-file", str(tmp_path / "rc.log")],
        capture_output=True,
        text=True,
        check=False,
        env=_env_with_pythonpath(tmp_path),
    )

    assert completed.returncode == 2
    assert "--max-attempts must be at least 1" in completed.stderr


def test_cli_module_prints_schedule(tmp_path: Path) -> None:
    completed = subprocess.run(
        [
            sys.executable,
            "-m",
            "resilientcall",
            "--show-schedule",
            "--max-attempts",
            "3",
            "--base-delay",
            "0.1",
            "--no-jitter",
            "--log-level",
            "warning",
            "--config",
            str(tmp_path / "config.toml"),
            "--log-file",
            str(tmp_path / "rc.log"),
        ],
        capture_output=True,
        text=True,
        check=False,
        env=_env_with_pythonpath(tmp_path),
    )

    assert completed.returncode == 0
    assert "before attempt 3: 0.2s" in completed.stdout
