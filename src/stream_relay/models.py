"""Domain models shared by preflight, classifier and supervisor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class FailureClass(str, Enum):
    """Normalized relay failure classes used by retry policy."""

    SOURCE_UNAVAILABLE = "source_unavailable"
    DESTINATION_REJECTED = "destination_rejected"
    FORMAT_INCOMPATIBLE = "format_incompatible"
    UNCLASSIFIED = "unclassified"


class SupervisorState(str, Enum):
    """Relay supervisor lifecycle states."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    EXITED_CLEAN = "exited_clean"
    EXITED_WITH_ERROR = "exited_with_error"
    RETRYING = "retrying"
    TERMINATED = "terminated"


class RelayEventKind(str, Enum):
    """Decision points exposed to the caller for rendering."""

    ATTEMPT_STARTED = "attempt_started"
    LAUNCH_FAILED = "launch_failed"
    ATTEMPT_SUCCEEDED = "attempt_succeeded"
    ATTEMPT_FAILED = "attempt_failed"
    CLASSIFIED = "classified"
    RETRY_SCHEDULED = "retry_scheduled"
    TERMINATED = "terminated"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class Locator:
    """Parsed endpoint address."""

    raw: str
    scheme: str
    host: str
    path: str


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retry budget with a fixed inter-attempt delay."""

    max_retries: int = 5
    retry_delay_seconds: float = 5.0

    @property
    def max_starts(self) -> int:
        return self.max_retries + 1


@dataclass(slots=True)
class StreamJob:
    """One relay run: endpoints, retry policy and the attempt counter."""

    source: Locator
    destination: Locator
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    attempt: int = 0


@dataclass(slots=True)
class Attempt:
    """Outcome of a single relay process launch-to-exit cycle."""

    ordinal: int
    exit_code: int | None
    diagnostic_text: str
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.cancelled and self.exit_code == 0


@dataclass(slots=True)
class RelayEvent:
    """Structured supervisor decision point."""

    kind: RelayEventKind
    message: str
    details: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class RelayOutcome:
    """Final supervisor result for runs that did not fail."""

    state: SupervisorState
    attempts: int
    cancelled: bool = False
    last_exit_code: int | None = None
