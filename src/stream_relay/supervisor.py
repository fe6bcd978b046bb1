"""Bounded-retry supervisor for one stream relay job."""

from __future__ import annotations

import logging
from collections.abc import Callable

from stream_relay.cancellation import CancellationToken
from stream_relay.failure_classifier import classify_relay_failure
from stream_relay.models import (
    Attempt,
    FailureClass,
    RelayEvent,
    RelayEventKind,
    RelayOutcome,
    StreamJob,
    SupervisorState,
)
from stream_relay.relay_command import build_relay_args, render_command_line
from stream_relay.runner import RelayLaunchError, RelayRunError, RelayRunner

logger = logging.getLogger(__name__)

EventSink = Callable[[RelayEvent], None]


class SourceUnavailableError(RelayRunError):
    """Source-side failure; further attempts are pointless."""


class RetryExhaustedError(RelayRunError):
    """Every allowed attempt failed."""


class RelaySupervisor:
    """Owns the attempt loop for a single StreamJob."""

    def __init__(
        self,
        *,
        job: StreamJob,
        runner: RelayRunner,
        cancel: CancellationToken | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self.job = job
        self.runner = runner
        self.cancel = cancel or CancellationToken()
        self.event_sink = event_sink
        self.state = SupervisorState.IDLE
        self.history: list[SupervisorState] = [SupervisorState.IDLE]
        self._last_failure_class = FailureClass.UNCLASSIFIED

    def run(self) -> RelayOutcome:
        """Run attempts until clean exit, cancellation or an unrecoverable failure.

        Raises:
            SourceUnavailableError: an attempt failed with a source-side marker.
            RetryExhaustedError: ``max_retries + 1`` attempts failed.
        """

        policy = self.job.policy
        args = build_relay_args(self.job.source.raw, self.job.destination.raw)

        while self.job.attempt < policy.max_starts:
            if self.cancel.is_cancelled():
                return self._cancelled(last_exit_code=None)

            attempt = self._start(args)
            if attempt is not None and attempt.cancelled:
                return self._cancelled(last_exit_code=attempt.exit_code)
            if attempt is not None and attempt.succeeded:
                self._transition(SupervisorState.EXITED_CLEAN)
                self._emit(
                    RelayEventKind.ATTEMPT_SUCCEEDED,
                    "Relay finished normally",
                    attempt=self.job.attempt,
                )
                return RelayOutcome(
                    state=self.state,
                    attempts=self.job.attempt,
                    last_exit_code=attempt.exit_code,
                )

            failure_class = self._classify(attempt)
            if failure_class == FailureClass.SOURCE_UNAVAILABLE:
                self._terminate("Source stream error, not retrying")
                raise SourceUnavailableError(
                    f"Source stream error after attempt {self.job.attempt}, not retrying",
                    failure_class=failure_class,
                    attempts=self.job.attempt,
                )

            if self.job.attempt > policy.max_retries:
                break

            self._transition(SupervisorState.RETRYING)
            self._emit(
                RelayEventKind.RETRY_SCHEDULED,
                f"Reconnect {self.job.attempt}/{policy.max_retries}, "
                f"waiting {policy.retry_delay_seconds:g}s...",
                retry=self.job.attempt,
                max_retries=policy.max_retries,
                delay_seconds=policy.retry_delay_seconds,
                failure_class=failure_class.value,
            )
            if self.cancel.wait(policy.retry_delay_seconds):
                return self._cancelled(last_exit_code=None)

        self._terminate(f"Reached max retries ({policy.max_retries}), giving up")
        raise RetryExhaustedError(
            f"Reached max retries ({policy.max_retries}), giving up",
            failure_class=self._last_failure_class,
            attempts=self.job.attempt,
        )

    def _start(self, args: list[str]) -> Attempt | None:
        self._transition(SupervisorState.STARTING)
        self.job.attempt += 1
        ordinal = self.job.attempt
        self._emit(
            RelayEventKind.ATTEMPT_STARTED,
            f"Starting relay (attempt {ordinal}/{self.job.policy.max_starts})",
            attempt=ordinal,
            max_attempts=self.job.policy.max_starts,
            command=render_command_line(self.runner.executable, args),
        )
        try:
            self._transition(SupervisorState.RUNNING)
            attempt = self.runner.run(args, ordinal=ordinal, cancel=self.cancel)
        except RelayLaunchError as error:
            self._transition(SupervisorState.EXITED_WITH_ERROR)
            self._emit(RelayEventKind.LAUNCH_FAILED, str(error), attempt=ordinal)
            return None

        if attempt.succeeded or attempt.cancelled:
            return attempt
        self._transition(SupervisorState.EXITED_WITH_ERROR)
        self._emit(
            RelayEventKind.ATTEMPT_FAILED,
            f"Relay interrupted (exit code {attempt.exit_code})",
            attempt=ordinal,
            exit_code=attempt.exit_code,
        )
        return attempt

    def _classify(self, attempt: Attempt | None) -> FailureClass:
        # Launch failures never produced diagnostic text.
        diagnostic_text = attempt.diagnostic_text if attempt is not None else ""
        classification = classify_relay_failure(diagnostic_text)
        self._last_failure_class = classification.failure_class
        self._emit(
            RelayEventKind.CLASSIFIED,
            f"Failure classified as {classification.failure_class.value}",
            attempt=self.job.attempt,
            diagnostic_text=diagnostic_text,
            **classification.to_event_details(),
        )
        return classification.failure_class

    def _terminate(self, message: str) -> None:
        self._transition(SupervisorState.TERMINATED)
        self._emit(
            RelayEventKind.TERMINATED,
            message,
            attempts=self.job.attempt,
            failure_class=self._last_failure_class.value,
        )

    def _cancelled(self, *, last_exit_code: int | None) -> RelayOutcome:
        self._transition(SupervisorState.TERMINATED)
        self._emit(
            RelayEventKind.CANCELLED,
            "Relay stopped on operator request",
            attempts=self.job.attempt,
            reason=self.cancel.reason,
        )
        return RelayOutcome(
            state=self.state,
            attempts=self.job.attempt,
            cancelled=True,
            last_exit_code=last_exit_code,
        )

    def _transition(self, state: SupervisorState) -> None:
        logger.debug("Supervisor state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _emit(self, kind: RelayEventKind, message: str, **details: object) -> None:
        if self.event_sink is not None:
            self.event_sink(RelayEvent(kind=kind, message=message, details=details))
