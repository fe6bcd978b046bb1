"""Operator-facing remediation hints per failure class."""

from __future__ import annotations

from stream_relay.models import FailureClass

RTMP_DEFAULT_PORT = 1935


def remediation_hints(
    failure_class: FailureClass,
    diagnostic_text: str = "",
    *,
    source_host: str | None = None,
    destination_host: str | None = None,
) -> list[str]:
    """Return numbered remediation hints for one failure class."""

    if failure_class == FailureClass.SOURCE_UNAVAILABLE:
        title = "Source stream troubleshooting:"
        hints = [
            f"Check that the source device is online: ping {source_host or '<source host>'}",
            "Confirm the upstream streaming service is running",
            "Try opening the source URL in a browser",
            "Check the network connection",
        ]
        if "502" in diagnostic_text:
            hints.append(
                "A 502 usually means the upstream device failed internally; restart it",
            )
    elif failure_class == FailureClass.DESTINATION_REJECTED:
        host = _strip_port(destination_host) if destination_host else "<ingest host>"
        title = "Destination (RTMP) troubleshooting:"
        hints = [
            "Check that the live room is open on the streaming platform",
            "Confirm the stream key is correct",
            f"Check the RTMP server is reachable: telnet {host} {RTMP_DEFAULT_PORT}",
            "The stream key may have expired; request a new one",
        ]
        if "Broken pipe" in diagnostic_text:
            hints.append("'Broken pipe' usually means the server closed the connection")
            hints.append("The platform may enforce a session limit or reject the stream key")
    elif failure_class == FailureClass.FORMAT_INCOMPATIBLE:
        title = "Encoding troubleshooting:"
        hints = [
            "Try different encoder parameters",
            "Check that ffmpeg was built with the required codecs",
            "The source format may be incompatible with FLV output",
        ]
    else:
        title = "General troubleshooting:"
        hints = [
            "Check the network connection",
            "Confirm all involved services are running",
            "Review the full ffmpeg output above",
        ]

    return [title, *(f"  {index}. {hint}" for index, hint in enumerate(hints, start=1))]


def _strip_port(host: str) -> str:
    if host.startswith("["):
        return host.split("]", 1)[0] + "]"
    return host.rsplit(":", 1)[0] if host.count(":") == 1 else host
