"""Shared test fixtures."""

from __future__ import annotations

import json
import os
import stat
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

_FAKE_RELAY_TEMPLATE = """
import json
import sys
import time
from pathlib import Path

calls_path = Path({calls_path!r})
plan = {plan!r}
with calls_path.open("a", encoding="utf-8") as handle:
    handle.write(json.dumps(sys.argv[1:]) + "\\n")
attempt = len(calls_path.read_text("utf-8").splitlines()) - 1
exit_code, message = plan[min(attempt, len(plan) - 1)]
if message:
    sys.stderr.write(message + "\\n")
    sys.stderr.flush()
if exit_code is None:
    time.sleep(60)
    raise SystemExit(0)
raise SystemExit(exit_code)
"""


@dataclass(slots=True)
class FakeRelay:
    """Fake ffmpeg executable that follows a scripted plan per attempt."""

    executable: Path
    calls_path: Path

    @property
    def calls(self) -> list[list[str]]:
        if not self.calls_path.exists():
            return []
        return [json.loads(line) for line in self.calls_path.read_text("utf-8").splitlines()]


def write_fake_relay(
    bin_dir: Path,
    plan: list[tuple[int | None, str]],
    name: str = "ffmpeg",
) -> FakeRelay:
    """Write a fake relay tool.

    Each plan entry is ``(exit_code, stderr_text)`` for one attempt; the last entry repeats.
    An exit code of ``None`` keeps the process running until it is killed.
    """

    bin_dir.mkdir(parents=True, exist_ok=True)
    calls_path = bin_dir / f"{name}_calls.jsonl"
    implementation = bin_dir / f"{name}_impl.py"
    implementation.write_text(
        _FAKE_RELAY_TEMPLATE.format(calls_path=str(calls_path), plan=plan).strip() + "\n",
        "utf-8",
    )
    launcher = bin_dir / name
    launcher.write_text(
        f'#!/usr/bin/env sh\nexec "{sys.executable}" "{implementation}" "$@"\n',
        "utf-8",
    )
    launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR)
    return FakeRelay(executable=launcher, calls_path=calls_path)


@pytest.fixture()
def fake_relay(tmp_path: Path):
    """Factory for scripted fake ffmpeg executables."""

    if os.name == "nt":
        pytest.skip("fake relay launcher requires a POSIX shell")

    def _factory(plan: list[tuple[int | None, str]], name: str = "ffmpeg") -> FakeRelay:
        return write_fake_relay(tmp_path / "bin", plan, name)

    return _factory


@pytest.fixture()
def quiet_relay_env(monkeypatch):
    """Keep relay stderr out of the test output and retries instant."""

    monkeypatch.setenv("STREAM_RELAY_ECHO_OUTPUT", "0")
    monkeypatch.setenv("STREAM_RELAY_RETRY_DELAY_SECONDS", "0")
    monkeypatch.setenv("STREAM_RELAY_POLL_INTERVAL_SECONDS", "0.02")
