"""Subprocess runner for a single relay attempt."""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections import deque
from typing import TextIO

from stream_relay.cancellation import CancellationToken
from stream_relay.models import Attempt, FailureClass
from stream_relay.relay_command import DEFAULT_RELAY_EXECUTABLE

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 0.1
DEFAULT_DIAGNOSTIC_TAIL_LINES = 500
_DRAIN_JOIN_SECONDS = 2.0


class RelayRunError(RuntimeError):
    """Relay failure surfaced to the caller, tagged with its failure class."""

    def __init__(self, message: str, *, failure_class: FailureClass, attempts: int) -> None:
        super().__init__(message)
        self.failure_class = failure_class
        self.attempts = attempts


class RelayLaunchError(RelayRunError):
    """Relay executable could not be started."""


class RelayRunner:
    """Launch the relay tool, capture its stderr tail and wait for exit."""

    def __init__(
        self,
        *,
        executable: str = DEFAULT_RELAY_EXECUTABLE,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        diagnostic_tail_lines: int = DEFAULT_DIAGNOSTIC_TAIL_LINES,
        echo_stream: TextIO | None = None,
    ) -> None:
        self.executable = executable
        self.poll_interval_seconds = poll_interval_seconds
        self.diagnostic_tail_lines = diagnostic_tail_lines
        self.echo_stream = echo_stream

    def run(
        self,
        args: list[str],
        *,
        ordinal: int,
        cancel: CancellationToken | None = None,
    ) -> Attempt:
        """Run one attempt to completion or cancellation."""

        try:
            process = subprocess.Popen(  # noqa: S603
                [self.executable, *args],
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as error:
            raise RelayLaunchError(
                f"Relay tool failed to start ({self.executable}): {error}",
                failure_class=FailureClass.UNCLASSIFIED,
                attempts=ordinal,
            ) from error

        tail: deque[str] = deque(maxlen=self.diagnostic_tail_lines)
        drain = threading.Thread(
            target=_drain_stderr,
            args=(process.stderr, tail, self.echo_stream),
            name=f"relay-stderr-{ordinal}",
            daemon=True,
        )
        drain.start()
        try:
            exit_code, cancelled = self._wait(process, cancel)
        finally:
            drain.join(timeout=_DRAIN_JOIN_SECONDS)
            if drain.is_alive():
                logger.debug("Relay stderr drain did not finish within %.1fs", _DRAIN_JOIN_SECONDS)

        return Attempt(
            ordinal=ordinal,
            exit_code=exit_code,
            diagnostic_text="".join(tail),
            cancelled=cancelled,
        )

    def _wait(
        self,
        process: subprocess.Popen[str],
        cancel: CancellationToken | None,
    ) -> tuple[int, bool]:
        while True:
            returncode = process.poll()
            if returncode is not None:
                return returncode, False

            if cancel is not None and cancel.is_cancelled():
                return _kill_process(process), True

            if cancel is not None:
                cancel.wait(self.poll_interval_seconds)
            else:
                time.sleep(self.poll_interval_seconds)


def _kill_process(process: subprocess.Popen[str]) -> int:
    logger.info("Stopping relay process (pid %d)...", process.pid)
    try:
        process.kill()
    except OSError:
        pass
    return process.wait()


def _drain_stderr(stream: TextIO | None, tail: deque[str], echo: TextIO | None) -> None:
    if stream is None:
        return
    with stream:
        for line in stream:
            tail.append(line)
            if echo is None:
                continue
            try:
                echo.write(line)
                echo.flush()
            except (OSError, ValueError):
                # Operator stream went away; keep draining so the relay never blocks.
                echo = None
