"""Deterministic relay failure classification for supervisor retry policy."""

from __future__ import annotations

from dataclasses import dataclass

from stream_relay.models import FailureClass

RELAY_FAILURE_CLASSIFIER_VERSION = 1

_SOURCE_MARKERS: tuple[str, ...] = (
    "HTTP error 502",
    "HTTP error 404",
    "HTTP error 500",
    "Connection refused",
    "No route to host",
    "Error opening input file",
    "Server returned 5XX",
    "Invalid data found when processing input",
)
_DESTINATION_MARKERS: tuple[str, ...] = (
    "Broken pipe",
    "Connection reset by peer",
    "RTMP_SendPacket",
    "Failed to connect",
    "Handshake failed",
    "Authentication failed",
)
_FORMAT_MARKERS: tuple[str, ...] = (
    "not compatible with flv",
    "codec not supported",
    "Conversion failed",
    "Encoder not found",
)

# Evaluated top to bottom; the first class with a matching marker wins.
FAILURE_MARKERS: tuple[tuple[FailureClass, str, tuple[str, ...]], ...] = (
    (FailureClass.SOURCE_UNAVAILABLE, "source_markers", _SOURCE_MARKERS),
    (FailureClass.DESTINATION_REJECTED, "destination_markers", _DESTINATION_MARKERS),
    (FailureClass.FORMAT_INCOMPATIBLE, "format_markers", _FORMAT_MARKERS),
)


@dataclass(frozen=True, slots=True)
class RelayFailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    matched_rule: str
    matched_pattern: str | None

    def to_event_details(self) -> dict[str, object]:
        """Serialize classifier diagnostics for supervisor events."""

        return {
            "classifier_version": RELAY_FAILURE_CLASSIFIER_VERSION,
            "failure_class": self.failure_class.value,
            "matched_rule": self.matched_rule,
            "matched_pattern": self.matched_pattern,
        }


def classify_relay_failure(diagnostic_text: str) -> RelayFailureClassification:
    """Classify captured relay stderr into a deterministic failure class."""

    for failure_class, rule, markers in FAILURE_MARKERS:
        pattern = _first_match(diagnostic_text, markers)
        if pattern is not None:
            return RelayFailureClassification(
                failure_class=failure_class,
                matched_rule=rule,
                matched_pattern=pattern,
            )

    return RelayFailureClassification(
        failure_class=FailureClass.UNCLASSIFIED,
        matched_rule="fallback_unclassified",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
