"""Pre-flight validation of source and destination locators."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from stream_relay.cancellation import CancellationToken
from stream_relay.models import FailureClass, Locator

logger = logging.getLogger(__name__)

OUTPUT_PROTOCOL = "rtmp"
HTTP_SOURCE_SCHEMES = frozenset({"http", "https"})
DEFAULT_CHECK_TIMEOUT_SECONDS = 10.0
_CANCEL_POLL_SECONDS = 0.1


class PreflightError(ValueError):
    """Locator validation failure with the failure class whose hints apply."""

    def __init__(self, message: str, *, failure_class: FailureClass) -> None:
        super().__init__(message)
        self.failure_class = failure_class


class MalformedLocatorError(PreflightError):
    """Locator cannot be decomposed into scheme, host and path."""


class InvalidDestinationSchemeError(PreflightError):
    """Destination scheme is not the accepted output protocol."""

    def __init__(self, message: str, *, scheme: str) -> None:
        super().__init__(message, failure_class=FailureClass.DESTINATION_REJECTED)
        self.scheme = scheme


class SourceUnreachableError(PreflightError):
    """HEAD request against the source failed or returned an error status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        cause: str | None = None,
    ) -> None:
        super().__init__(message, failure_class=FailureClass.SOURCE_UNAVAILABLE)
        self.status_code = status_code
        self.cause = cause


class PreflightCancelledError(Exception):
    """Preflight was interrupted by an operator cancellation request."""


@dataclass(slots=True)
class PreflightInfo:
    """Successful validation result for one locator."""

    locator: Locator
    head_checked: bool = False
    status_code: int | None = None
    content_type: str | None = None


def parse_locator(raw: str, *, failure_class: FailureClass) -> Locator:
    """Split a locator into scheme, host and path."""

    stripped = raw.strip()
    if not stripped:
        raise MalformedLocatorError("Locator is empty.", failure_class=failure_class)
    try:
        parts = urlsplit(stripped)
        # Accessing port validates it; urlsplit itself is lazy about it.
        _ = parts.port
    except ValueError as error:
        raise MalformedLocatorError(
            f"Malformed locator {raw!r}: {error}",
            failure_class=failure_class,
        ) from error
    return Locator(
        raw=stripped,
        scheme=parts.scheme.lower(),
        host=parts.netloc,
        path=parts.path,
    )


class PreflightValidator:
    """Validates endpoints before any relay attempt is launched."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_CHECK_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    def validate_source(
        self,
        raw: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> PreflightInfo:
        """Parse the source and send it a HEAD request when the scheme is network-retrievable.

        Raises:
            PreflightCancelledError: ``cancel`` fired before the HEAD request finished.
        """

        logger.info("Checking source stream: %s", raw)
        locator = parse_locator(raw, failure_class=FailureClass.SOURCE_UNAVAILABLE)
        if locator.scheme not in HTTP_SOURCE_SCHEMES:
            logger.info("Source is not an HTTP stream (scheme: %s)", locator.scheme or "none")
            return PreflightInfo(locator=locator)
        return self._check_reachable(locator, cancel)

    def validate_destination(self, raw: str) -> PreflightInfo:
        """Check the destination locator is an RTMP ingest URL."""

        logger.info("Checking RTMP destination: %s", raw)
        locator = parse_locator(raw, failure_class=FailureClass.DESTINATION_REJECTED)
        if locator.scheme != OUTPUT_PROTOCOL:
            raise InvalidDestinationSchemeError(
                f"Not a valid {OUTPUT_PROTOCOL} destination, expected "
                f"{OUTPUT_PROTOCOL}://... (got scheme {locator.scheme or 'none'!r})",
                scheme=locator.scheme,
            )
        logger.info("RTMP destination format is valid")
        logger.info("  server: %s", locator.host)
        logger.info("  stream key: %s", locator.path.removeprefix("/"))
        return PreflightInfo(locator=locator)

    def _check_reachable(
        self,
        locator: Locator,
        cancel: CancellationToken | None,
    ) -> PreflightInfo:
        try:
            response = self._head(locator, cancel)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as error:
            logger.warning("Source locator rejected by HTTP client: %s", error)
            raise MalformedLocatorError(
                f"Malformed locator {locator.raw[:200]!r}: {error}",
                failure_class=FailureClass.SOURCE_UNAVAILABLE,
            ) from error
        except httpx.HTTPError as error:
            logger.warning("Cannot connect to source stream: %s", error)
            raise SourceUnreachableError(
                f"Cannot connect to source stream: {error}",
                cause=str(error) or type(error).__name__,
            ) from error

        if response.status_code >= httpx.codes.BAD_REQUEST:
            logger.warning(
                "Source stream returned error status: %d %s",
                response.status_code,
                response.reason_phrase,
            )
            raise SourceUnreachableError(
                "Source stream returned error status: "
                f"{response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type", "")
        logger.info(
            "Source stream is reachable (status: %d, type: %s)",
            response.status_code,
            content_type,
        )
        return PreflightInfo(
            locator=locator,
            head_checked=True,
            status_code=response.status_code,
            content_type=content_type,
        )

    def _head(self, locator: Locator, cancel: CancellationToken | None) -> httpx.Response:
        if cancel is not None and cancel.is_cancelled():
            raise PreflightCancelledError("Source check cancelled before start.")

        outcome: list[httpx.Response | Exception] = []

        def _request() -> None:
            try:
                with httpx.Client(
                    timeout=self._timeout,
                    transport=self._transport,
                    follow_redirects=True,
                ) as client:
                    outcome.append(client.head(locator.raw))
            except Exception as error:  # noqa: BLE001
                outcome.append(error)

        # Daemon thread: a cancelled request is abandoned and ends within its timeout.
        worker = threading.Thread(target=_request, name="preflight-head", daemon=True)
        worker.start()
        while worker.is_alive():
            worker.join(_CANCEL_POLL_SECONDS)
            if worker.is_alive() and cancel is not None and cancel.is_cancelled():
                raise PreflightCancelledError("Source check cancelled.")

        result = outcome[0]
        if isinstance(result, Exception):
            raise result
        return result
