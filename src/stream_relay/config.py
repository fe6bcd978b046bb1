"""Runtime configuration for the stream relay supervisor."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from stream_relay.models import RetryPolicy

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True)
class RelaySettings:
    """Supervisor, preflight and relay-tool settings."""

    ffmpeg_executable: str = "ffmpeg"
    max_retries: int = 5
    retry_delay_seconds: float = 5.0
    check_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 0.1
    diagnostic_tail_lines: int = 500
    echo_relay_output: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> RelaySettings:
        """Load settings from environment with defaults matching the relay contract."""

        return cls(
            ffmpeg_executable=os.getenv("STREAM_RELAY_FFMPEG", "ffmpeg"),
            max_retries=int(os.getenv("STREAM_RELAY_MAX_RETRIES", "5")),
            retry_delay_seconds=float(os.getenv("STREAM_RELAY_RETRY_DELAY_SECONDS", "5.0")),
            check_timeout_seconds=float(
                os.getenv("STREAM_RELAY_CHECK_TIMEOUT_SECONDS", "10.0"),
            ),
            poll_interval_seconds=float(
                os.getenv("STREAM_RELAY_POLL_INTERVAL_SECONDS", "0.1"),
            ),
            diagnostic_tail_lines=int(os.getenv("STREAM_RELAY_DIAGNOSTIC_TAIL_LINES", "500")),
            echo_relay_output=_env_bool("STREAM_RELAY_ECHO_OUTPUT", default=True),
            log_level=os.getenv("STREAM_RELAY_LOG_LEVEL", "INFO").strip().upper(),
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            retry_delay_seconds=self.retry_delay_seconds,
        )

    @property
    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level)

    def validate(self) -> None:
        """Raise configuration error if any setting is out of range."""

        if not self.ffmpeg_executable.strip():
            raise ValueError("STREAM_RELAY_FFMPEG must not be empty.")
        if self.max_retries < 0:
            raise ValueError("STREAM_RELAY_MAX_RETRIES must be >= 0.")
        if self.retry_delay_seconds < 0:
            raise ValueError("STREAM_RELAY_RETRY_DELAY_SECONDS must be >= 0.")
        if self.check_timeout_seconds <= 0:
            raise ValueError("STREAM_RELAY_CHECK_TIMEOUT_SECONDS must be > 0.")
        if self.poll_interval_seconds <= 0:
            raise ValueError("STREAM_RELAY_POLL_INTERVAL_SECONDS must be > 0.")
        if self.diagnostic_tail_lines <= 0:
            raise ValueError("STREAM_RELAY_DIAGNOSTIC_TAIL_LINES must be a positive integer.")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"STREAM_RELAY_LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}: "
                f"{self.log_level!r}",
            )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
