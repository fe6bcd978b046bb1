"""Controller behind the stream-relay CLI."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, replace
from typing import TextIO

from stream_relay.cancellation import CancellationListener, CancellationToken
from stream_relay.config import RelaySettings
from stream_relay.models import FailureClass, Locator, RelayEvent, RelayEventKind, StreamJob
from stream_relay.preflight import (
    PreflightCancelledError,
    PreflightError,
    PreflightInfo,
    PreflightValidator,
    parse_locator,
)
from stream_relay.runner import RelayRunError, RelayRunner
from stream_relay.suggestions import remediation_hints
from stream_relay.supervisor import RelaySupervisor

logger = logging.getLogger(__name__)

_EVENT_LEVELS: dict[RelayEventKind, int] = {
    RelayEventKind.LAUNCH_FAILED: logging.ERROR,
    RelayEventKind.ATTEMPT_FAILED: logging.WARNING,
    RelayEventKind.TERMINATED: logging.ERROR,
    RelayEventKind.CANCELLED: logging.WARNING,
}


@dataclass(slots=True)
class RelayCommand:
    """CLI input for one relay run or check."""

    input_url: str
    output_url: str
    check_only: bool = False
    ffmpeg: str | None = None
    max_retries: int | None = None
    retry_delay_seconds: float | None = None


@dataclass(slots=True)
class RelayRunResult:
    """Run report to render in CLI."""

    lines: list[str]
    success: bool
    error_message: str | None = None


class RelayCliController:
    """Wires preflight, supervisor and cancellation for the CLI."""

    def __init__(self, *, validator: PreflightValidator | None = None) -> None:
        self._validator = validator

    def run(
        self,
        command: RelayCommand,
        *,
        settings: RelaySettings | None = None,
        cancel: CancellationToken | None = None,
        echo_stream: TextIO | None = None,
    ) -> RelayRunResult:
        try:
            settings = _apply_overrides(settings or RelaySettings.from_env(), command)
            settings.validate()
        except ValueError as error:
            return RelayRunResult(
                lines=[f"Invalid configuration: {error}"],
                success=False,
                error_message="Invalid configuration.",
            )

        token = cancel or CancellationToken()
        validator = self._validator or PreflightValidator(
            timeout_seconds=settings.check_timeout_seconds,
        )
        with CancellationListener(token):
            logger.info("Starting preflight checks...")
            try:
                source = self._check_source(validator, command, token)
            except PreflightCancelledError:
                return _cancelled_before_start()
            if source is None and command.check_only:
                return RelayRunResult(
                    lines=["Source check failed."],
                    success=False,
                    error_message="Preflight check failed.",
                )
            try:
                destination = validator.validate_destination(command.output_url)
            except PreflightError as error:
                logger.error("RTMP destination check failed: %s", error)
                return RelayRunResult(
                    lines=remediation_hints(error.failure_class, str(error)),
                    success=False,
                    error_message="Preflight check failed.",
                )

            if command.check_only:
                return RelayRunResult(
                    lines=["All checks passed, connection looks good!"],
                    success=True,
                )
            if token.is_cancelled():
                return _cancelled_before_start()

            logger.info("Preflight complete, starting relay...")
            return self._relay(
                settings=settings,
                source=(
                    source.locator if source is not None else _fallback_locator(command.input_url)
                ),
                destination=destination,
                token=token,
                echo_stream=_echo_stream(settings, echo_stream),
            )

    def _check_source(
        self,
        validator: PreflightValidator,
        command: RelayCommand,
        token: CancellationToken,
    ) -> PreflightInfo | None:
        try:
            return validator.validate_source(command.input_url, cancel=token)
        except PreflightError as error:
            logger.error("Source check failed: %s", error)
            _log_lines(remediation_hints(error.failure_class, str(error)))
            if not command.check_only:
                logger.warning("Source looks unhealthy, relaying anyway...")
            return None

    def _relay(  # noqa: PLR0913
        self,
        *,
        settings: RelaySettings,
        source: Locator,
        destination: PreflightInfo,
        token: CancellationToken,
        echo_stream: TextIO | None,
    ) -> RelayRunResult:
        job = StreamJob(
            source=source,
            destination=destination.locator,
            policy=settings.retry_policy,
        )
        runner = RelayRunner(
            executable=settings.ffmpeg_executable,
            poll_interval_seconds=settings.poll_interval_seconds,
            diagnostic_tail_lines=settings.diagnostic_tail_lines,
            echo_stream=echo_stream,
        )
        renderer = _EventRenderer()
        supervisor = RelaySupervisor(
            job=job,
            runner=runner,
            cancel=token,
            event_sink=renderer,
        )
        logger.info("Relaying %s -> %s", job.source.raw, job.destination.raw)
        logger.info("Press Ctrl+C to stop")
        try:
            outcome = supervisor.run()
        except RelayRunError as error:
            return RelayRunResult(
                lines=[
                    f"Relay failed: {error}",
                    *remediation_hints(
                        error.failure_class,
                        renderer.last_diagnostic_text,
                        source_host=job.source.host or None,
                        destination_host=job.destination.host or None,
                    ),
                ],
                success=False,
                error_message="Stream relay failed.",
            )

        if outcome.cancelled:
            return RelayRunResult(
                lines=[f"Relay stopped after {outcome.attempts} attempt(s)."],
                success=True,
            )
        return RelayRunResult(lines=["Relay task complete."], success=True)


class _EventRenderer:
    """Logs supervisor events and remembers the last diagnostic text."""

    def __init__(self) -> None:
        self.last_diagnostic_text = ""

    def __call__(self, event: RelayEvent) -> None:
        if event.kind == RelayEventKind.CLASSIFIED:
            self.last_diagnostic_text = str(event.details.get("diagnostic_text", ""))
        level = _EVENT_LEVELS.get(event.kind, logging.INFO)
        logger.log(level, event.message)
        if event.kind == RelayEventKind.ATTEMPT_STARTED:
            logger.info("ffmpeg command: %s", event.details.get("command"))


def _cancelled_before_start() -> RelayRunResult:
    logger.warning("Cancelled during preflight, relay not started")
    return RelayRunResult(lines=["Relay cancelled before start."], success=True)


def _fallback_locator(raw: str) -> Locator:
    try:
        return parse_locator(raw, failure_class=FailureClass.SOURCE_UNAVAILABLE)
    except PreflightError:
        return Locator(raw=raw.strip(), scheme="", host="", path=raw.strip())


def _apply_overrides(settings: RelaySettings, command: RelayCommand) -> RelaySettings:
    if command.ffmpeg is not None:
        settings = replace(settings, ffmpeg_executable=command.ffmpeg)
    if command.max_retries is not None:
        settings = replace(settings, max_retries=command.max_retries)
    if command.retry_delay_seconds is not None:
        settings = replace(settings, retry_delay_seconds=command.retry_delay_seconds)
    return settings


def _echo_stream(settings: RelaySettings, override: TextIO | None) -> TextIO | None:
    if override is not None:
        return override
    return sys.stderr if settings.echo_relay_output else None


def _log_lines(lines: list[str]) -> None:
    for line in lines:
        logger.info(line)
