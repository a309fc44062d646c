"""
auth/tokens.py -- Rotating possession token store.

A token is a 64-bit unsigned integer shown on the door display (as a QR code
of web_prefix + 16 hex digits). Holding the current token proves the caller
is physically at the door.

Security design decisions:
  Two tokens at most are honored: current, and previous while previous_valid
       is set. Rotations triggered by a lock/unlock clear the grace flag (a used
       token dies immediately); rotations triggered by the timer set it (a
       token scanned just before the timer fired still works once).

  Random source: injected. The default is secrets.SystemRandom(), so tokens
       are unpredictable even to an observer of earlier tokens. Tests pass a
       seeded random.Random for deterministic sequences.

  Token values are logged at DEBUG only. At INFO and above the log shows that
       a rotation happened and whether grace was granted, never the value.

Concurrency: TokenStore has no lock of its own. Every call must happen under
the access engine's lock (see core/pipeline.py).

Layer rule: no imports from door/ or notify/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import random
import secrets
from typing import TYPE_CHECKING

from core.models import TOKEN_BITS

if TYPE_CHECKING:
    from core.ports import Notifier

logger = logging.getLogger("doorlockd.tokens")

_HALF_BITS = TOKEN_BITS // 2


def format_token(token: int) -> str:
    """Render a token as fixed-width lowercase hex (16 digits)."""
    return f"{token:0{TOKEN_BITS // 4}x}"


class TokenStore:
    """Current/previous token pair with grace-flag rotation.

    Args:
        web_prefix: Prepended to the hex token to build the canonical URI.
        notifier:   Receives the URI after every rotation. None disables it.
        rng:        Anything with getrandbits(). Defaults to SystemRandom.
    """

    def __init__(
        self,
        web_prefix: str,
        notifier: Notifier | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._web_prefix = web_prefix
        self._notifier = notifier
        self._rng = rng if rng is not None else secrets.SystemRandom()
        self._current = 0
        self._previous = 0
        self._previous_valid = False
        # previous is meaningless until the second rotation; no grace here
        self.rotate(False)

    @property
    def current(self) -> int:
        return self._current

    @property
    def previous(self) -> int:
        return self._previous

    @property
    def previous_valid(self) -> bool:
        return self._previous_valid

    @property
    def uri(self) -> str:
        return self._web_prefix + format_token(self._current)

    def rotate(self, grant_grace: bool) -> None:
        """Retire current to previous and draw a new current token.

        grant_grace decides whether the retired token stays acceptable until
        the next rotation. The choice belongs to the caller: the engine passes
        False after a lock/unlock, the scheduler passes True on timeout.
        """
        self._previous = self._current
        self._previous_valid = grant_grace

        # Two 32-bit draws, high word first.
        high = self._rng.getrandbits(_HALF_BITS)
        low = self._rng.getrandbits(_HALF_BITS)
        self._current = (high << _HALF_BITS) | low

        logger.info("Token rotated, previous token %s", "still valid" if grant_grace else "revoked")
        logger.debug(
            "New token %s, previous %s",
            format_token(self._current),
            format_token(self._previous),
        )
        self._publish()

    def check(self, candidate: int) -> bool:
        """Return True if candidate is the current token or a still-valid previous one."""
        if candidate == self._current:
            return True
        return self._previous_valid and candidate == self._previous

    def _publish(self) -> None:
        if self._notifier is None:
            return
        uri = self.uri
        try:
            self._notifier.notify(uri)
        except Exception as e:
            # A broken display must never block a door request.
            logger.warning("Token notification failed: %s", e)
