"""
door/simulated.py -- In-memory door driver.

Used by the console driver when no hardware is attached, and by the tests.
Every command is appended to `commands` so callers can assert exactly what
was sent to the "hardware", including redundant unlocks.
"""

from core.models import DoorState


class SimulatedDoor:
    def __init__(self, initial: DoorState = DoorState.LOCKED) -> None:
        self._state = initial
        self.commands: list[str] = []

    def state(self) -> DoorState:
        return self._state

    def lock(self) -> None:
        self.commands.append("lock")
        self._state = DoorState.LOCKED

    def unlock(self) -> None:
        self.commands.append("unlock")
        self._state = DoorState.UNLOCKED
