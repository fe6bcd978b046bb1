"""Cooperative cancellation driven by operator signals."""

from __future__ import annotations

import logging
import signal
import threading
from types import TracebackType

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation flag observed by the supervisor's blocking waits."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """Request cancellation; returns False when it was already requested."""

        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
        return True

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block up to ``timeout`` seconds; True if cancelled meanwhile."""

        return self._event.wait(timeout)


class CancellationListener:
    """Install SIGINT/SIGTERM handlers that cancel ``token`` while active."""

    def __init__(self, token: CancellationToken) -> None:
        self.token = token
        self._original: dict[int, object] = {}

    def __enter__(self) -> CancellationListener:
        if threading.current_thread() is not threading.main_thread():
            # Signal handlers can only be installed in main thread.
            return self
        for signum in _handled_signals():
            self._original[signum] = signal.getsignal(signum)
            signal.signal(signum, self._handler)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        for signum, handler in self._original.items():
            signal.signal(signum, handler)
        self._original.clear()

    def _handler(self, signum: int, _: object | None) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        if self.token.cancel(reason=name):
            logger.warning("Received %s, stopping relay...", name)


def _handled_signals() -> tuple[int, ...]:
    names = ("SIGINT", "SIGTERM")
    return tuple(getattr(signal, name) for name in names if hasattr(signal, name))
