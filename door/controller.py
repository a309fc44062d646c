"""
door/controller.py -- Fault-isolating facade over a door driver.

The driver is whatever actually moves the bolt (serial relay board, GPIO,
the in-memory SimulatedDoor). It is authoritative for the door state and
decides on its own whether lock()/unlock() block until the hardware
acknowledges. This adapter adds no retries and no timeouts; it only makes
sure a driver fault surfaces as one exception type the engine can map.

Layer rule: no imports from auth/ or notify/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.exceptions import DoorError
from core.models import DoorState

if TYPE_CHECKING:
    from core.ports import Door

logger = logging.getLogger("doorlockd.door")


class DoorController:
    def __init__(self, driver: Door) -> None:
        self._driver = driver

    def state(self) -> DoorState:
        try:
            state = self._driver.state()
        except Exception as e:
            logger.error("Door driver failed to report state: %s", e)
            raise DoorError(f"state query failed: {e}") from e
        # Drivers may report plain strings; anything else is a driver bug.
        try:
            return DoorState(state)
        except ValueError as e:
            logger.error("Door driver reported unknown state %r", state)
            raise DoorError(f"unknown door state: {state!r}") from e

    def lock(self) -> None:
        self._command("lock")

    def unlock(self) -> None:
        self._command("unlock")

    def _command(self, name: str) -> None:
        logger.info("Door command: %s", name)
        try:
            getattr(self._driver, name)()
        except Exception as e:
            logger.error("Door driver failed to %s: %s", name, e)
            raise DoorError(f"{name} failed: {e}") from e
