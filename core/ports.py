"""
core/ports.py -- Interfaces the access engine depends on.

The engine never imports a concrete authenticator, door, or notifier. main.py
wires real implementations; tests pass fakes or MagicMocks.
"""

from typing import Protocol

from core.models import AuthResult, DoorState


class TokenChecker(Protocol):
    """The slice of TokenStore the engine uses."""

    def check(self, candidate: int) -> bool: ...

    def rotate(self, grant_grace: bool) -> None: ...


class Authenticator(Protocol):
    def verify(self, user: str, password: str) -> AuthResult:
        """Check one username/password pair. Must not raise."""
        ...


class Door(Protocol):
    """State/command facade over the door hardware.

    Implementations raise core.exceptions.DoorError on hardware faults.
    DoorController wraps raw drivers so that this holds.
    """

    def state(self) -> DoorState: ...

    def lock(self) -> None: ...

    def unlock(self) -> None: ...


class Notifier(Protocol):
    def notify(self, uri: str) -> None:
        """Publish the canonical URI of a freshly rotated token. Fire-and-forget."""
        ...
