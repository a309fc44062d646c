"""
tests/conftest.py -- Shared fixtures for doorlockd tests.

This module provides:
  - RecordingNotifier: collects every URI published by the token store
  - tokens: TokenStore with a seeded RNG and a RecordingNotifier
  - door: SimulatedDoor starting locked
  - authenticator: MagicMock authenticator returning AuthResult.SUCCESS
  - engine: AccessEngine wired from the above (scheduler not started)
  - make_request(): builds a JSON payload, defaulting to a valid unlock

Design: the engine fixture never starts the rotation thread. Tests that need
timer rotation call engine.rotate_on_timeout() directly, or start the engine
explicitly with a short interval.
"""

from __future__ import annotations

import json
import random
from unittest.mock import MagicMock

import pytest

from auth.tokens import TokenStore, format_token
from core.models import AuthResult, DoorState
from core.pipeline import AccessEngine
from door.controller import DoorController
from door.simulated import SimulatedDoor

WEB_PREFIX = "https://lock.test/?token="


class RecordingNotifier:
    def __init__(self) -> None:
        self.uris: list[str] = []

    def notify(self, uri: str) -> None:
        self.uris.append(uri)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def tokens(notifier: RecordingNotifier) -> TokenStore:
    return TokenStore(WEB_PREFIX, notifier=notifier, rng=random.Random(1234))


@pytest.fixture
def door() -> SimulatedDoor:
    return SimulatedDoor(DoorState.LOCKED)


@pytest.fixture
def authenticator() -> MagicMock:
    auth = MagicMock()
    auth.verify.return_value = AuthResult.SUCCESS
    return auth


@pytest.fixture
def engine(tokens: TokenStore, authenticator: MagicMock, door: SimulatedDoor) -> AccessEngine:
    return AccessEngine(
        tokens=tokens,
        authenticator=authenticator,
        door=DoorController(door),
        token_timeout=3600,
    )


def make_request(token: int | str, action: str = "unlock", **overrides) -> str:
    """Return a JSON request payload. Integer tokens are rendered in display form."""
    body = {
        "action": action,
        "ip": "10.0.0.5",
        "user": "alice",
        "password": "correct horse",
        "token": format_token(token) if isinstance(token, int) else token,
    }
    body.update(overrides)
    return json.dumps(body)
