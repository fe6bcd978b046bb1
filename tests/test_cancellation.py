from __future__ import annotations

import os
import signal
import threading

import allure
import pytest

from stream_relay.cancellation import CancellationListener, CancellationToken

pytestmark = [
    allure.epic("Relay Supervisor"),
    allure.feature("Cancellation"),
]


def test_token_cancel_is_one_shot() -> None:
    token = CancellationToken()

    assert token.cancel(reason="SIGTERM") is True
    assert token.cancel(reason="SIGINT") is False
    assert token.is_cancelled()
    assert token.reason == "SIGTERM"


def test_token_wait_times_out_when_not_cancelled() -> None:
    assert CancellationToken().wait(0.01) is False


@pytest.mark.skipif(os.name == "nt", reason="POSIX signals only")
def test_listener_cancels_token_on_sigint_and_restores_handler() -> None:
    original = signal.getsignal(signal.SIGINT)
    token = CancellationToken()

    with CancellationListener(token):
        assert signal.getsignal(signal.SIGINT) is not original
        os.kill(os.getpid(), signal.SIGINT)
        assert token.wait(2.0)

    assert token.reason == "SIGINT"
    assert signal.getsignal(signal.SIGINT) is original


@pytest.mark.skipif(os.name == "nt", reason="POSIX signals only")
def test_listener_ignores_repeated_signals() -> None:
    token = CancellationToken()

    with CancellationListener(token):
        os.kill(os.getpid(), signal.SIGTERM)
        assert token.wait(2.0)
        os.kill(os.getpid(), signal.SIGINT)

    assert token.reason == "SIGTERM"


def test_listener_outside_main_thread_installs_nothing() -> None:
    original = signal.getsignal(signal.SIGINT)
    observed: list[object] = []

    def _worker() -> None:
        with CancellationListener(CancellationToken()):
            observed.append(signal.getsignal(signal.SIGINT))

    thread = threading.Thread(target=_worker)
    thread.start()
    thread.join()

    assert observed == [original]
