"""Tests for core/scheduler.py and the engine lock shared with it.

Covers:
- Periodic rotation on a short interval
- stop() interrupts a long wait immediately and never rotates
- A stop requested while the scheduler waits for the lock skips the rotation
- A failing rotation callback does not kill the thread
- A timer rotation never interleaves with an in-flight handle() call
- Engine start/shutdown and context manager lifecycle

Threads are joined with timeouts everywhere so a regression hangs for seconds,
not forever.
"""

import threading
import time

from core.models import AuthResult, Response
from core.pipeline import AccessEngine
from core.scheduler import RotationScheduler
from door.controller import DoorController
from tests.conftest import make_request

# ---------------------------------------------------------------------------
# TestRotationScheduler
# ---------------------------------------------------------------------------


class TestRotationScheduler:
    def test_rotates_on_interval(self):
        lock = threading.Lock()
        fired = threading.Event()
        calls = []

        def rotate():
            calls.append(lock.locked())
            if len(calls) >= 2:
                fired.set()

        scheduler = RotationScheduler(0.01, lock, rotate)
        scheduler.start()
        try:
            assert fired.wait(5)
        finally:
            scheduler.stop()
        # the callback always ran with the shared lock held
        assert all(calls)

    def test_stop_interrupts_wait_without_rotating(self):
        calls = []
        scheduler = RotationScheduler(3600, threading.Lock(), lambda: calls.append(1))
        scheduler.start()
        assert scheduler.running

        started = time.monotonic()
        scheduler.stop()

        assert time.monotonic() - started < 5
        assert not scheduler.running
        assert calls == []

    def test_stop_while_waiting_for_lock_skips_rotation(self):
        lock = threading.Lock()
        calls = []
        scheduler = RotationScheduler(0.01, lock, lambda: calls.append(1))

        with lock:
            scheduler.start()
            time.sleep(0.1)  # scheduler has woken and is blocked on the lock
            stopper = threading.Thread(target=scheduler.stop)
            stopper.start()
            while not scheduler._stop.is_set():
                time.sleep(0.001)

        stopper.join(5)
        assert not stopper.is_alive()
        assert calls == []

    def test_callback_error_does_not_stop_loop(self, caplog):
        fired = threading.Event()
        attempts = []

        def rotate():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("rng exploded")
            fired.set()

        scheduler = RotationScheduler(0.01, threading.Lock(), rotate)
        scheduler.start()
        try:
            assert fired.wait(5)
        finally:
            scheduler.stop()
        assert "Passive token rotation failed" in caplog.text

    def test_stop_is_idempotent(self):
        scheduler = RotationScheduler(3600, threading.Lock(), lambda: None)
        scheduler.stop()
        scheduler.start()
        scheduler.stop()
        scheduler.stop()
        assert not scheduler.running


# ---------------------------------------------------------------------------
# TestEngineConcurrency
# ---------------------------------------------------------------------------


class _BlockingAuthenticator:
    """Holds verify() open until released, so the engine lock stays held."""

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def verify(self, user, password):
        self.entered.set()
        self.release.wait(5)
        return AuthResult.SUCCESS


class TestEngineConcurrency:
    def test_timer_rotation_waits_for_in_flight_request(self, tokens, door, notifier):
        auth = _BlockingAuthenticator()
        engine = AccessEngine(tokens, auth, DoorController(door), token_timeout=3600)
        shown = tokens.current
        results = []

        request_thread = threading.Thread(target=lambda: results.append(engine.handle(make_request(shown))))
        request_thread.start()
        assert auth.entered.wait(5)

        rotation_thread = threading.Thread(target=engine.rotate_on_timeout)
        rotation_thread.start()
        rotation_thread.join(0.2)

        # blocked on the engine lock: token unchanged while the request is in flight
        assert rotation_thread.is_alive()
        assert tokens.current == shown

        auth.release.set()
        request_thread.join(5)
        rotation_thread.join(5)

        assert results == [Response.SUCCESS]
        # request rotation (no grace) strictly before timer rotation (grace)
        assert len(notifier.uris) == 3
        assert tokens.previous_valid is True
        assert tokens.check(shown) is False
        assert tokens.check(tokens.previous) is True

    def test_requests_are_serialized(self, tokens, door, notifier):
        auth = _BlockingAuthenticator()
        engine = AccessEngine(tokens, auth, DoorController(door), token_timeout=3600)
        shown = tokens.current
        results = {}

        first = threading.Thread(target=lambda: results.update(first=engine.handle(make_request(shown))))
        first.start()
        assert auth.entered.wait(5)

        second = threading.Thread(
            target=lambda: results.update(second=engine.handle(make_request(shown, action="lock")))
        )
        second.start()
        second.join(0.2)
        assert second.is_alive()

        auth.release.set()
        first.join(5)
        second.join(5)

        # the second request saw the token already consumed by the first
        assert results == {"first": Response.SUCCESS, "second": Response.INVALID_TOKEN}


# ---------------------------------------------------------------------------
# TestEngineLifecycle
# ---------------------------------------------------------------------------


class TestEngineLifecycle:
    def test_context_manager_starts_and_joins_scheduler(self, tokens, authenticator, door):
        engine = AccessEngine(tokens, authenticator, DoorController(door), token_timeout=3600)
        with engine:
            assert engine._scheduler.running
        assert not engine._scheduler.running

    def test_running_engine_rotates_with_grace(self, tokens, authenticator, door, notifier):
        engine = AccessEngine(tokens, authenticator, DoorController(door), token_timeout=0.01)
        shown = tokens.current
        engine.start()
        try:
            deadline = time.monotonic() + 5
            while len(notifier.uris) < 2 and time.monotonic() < deadline:
                time.sleep(0.005)
        finally:
            engine.shutdown()
        assert len(notifier.uris) >= 2
        assert tokens.previous_valid is True
        assert tokens.current != shown
