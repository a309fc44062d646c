"""
core/pipeline.py -- The access decision pipeline.

AccessEngine.handle() turns one raw request payload into exactly one Response:

    decode -> check token -> authenticate -> dispatch action -> move door -> rotate

Each stage either hands a value to the next one or ends the request with a
Response. Nothing raises across handle(): door faults and unexpected errors
become Response.FAIL, which callers should treat as a defect signal.

Concurrency: a single threading.Lock is held for the whole of handle() and for
every timer-driven rotation. A slow directory round-trip therefore delays both
other requests and the next rotation. That is acceptable at door-access request
rates and keeps token state trivially consistent.

Rotation policy is chosen here, not by the token store:
  after a lock/unlock     -> rotate(False)  the used token dies immediately
  on the scheduler timer  -> rotate(True)   the displayed token gets one grace period

Layer rule: depends on core/ only. Concrete authenticator, door, and token
store are injected (see core/ports.py); main.py does the wiring.
"""

import json
import logging
import re
import threading

from pydantic import ValidationError

from core.exceptions import DoorError
from core.models import ACTION_LOCK, ACTION_UNLOCK, TOKEN_MAX, AccessRequest, AuthResult, DoorState, Response
from core.ports import Authenticator, Door, TokenChecker
from core.scheduler import RotationScheduler

logger = logging.getLogger("doorlockd.engine")

# Canonical display form first, so an all-digit 16-char hex token is never read as decimal.
_CANONICAL_HEX_RE = re.compile(r"[0-9a-fA-F]{16}")
_PREFIXED_HEX_RE = re.compile(r"0[xX][0-9a-fA-F]+")
_DECIMAL_RE = re.compile(r"[0-9]+")


class _Reject(Exception):
    """Ends the pipeline early with the carried response."""

    def __init__(self, response: Response) -> None:
        super().__init__(response.value)
        self.response = response


def parse_token(raw: str) -> int | None:
    """Parse a caller-supplied token string. Returns None if it is not a uint64.

    Accepted forms:
      16 hex digits         the form printed on the display ("00a1...ff")
      0x-prefixed hex       "0xdeadbeef"
      decimal digits        "1234567890"
    Signs, whitespace (including a trailing newline), and underscores are
    rejected. A decimal token that happens to be exactly 16 digits long is
    read as hex and will not match; send such values in hex.
    """
    if _CANONICAL_HEX_RE.fullmatch(raw):
        value = int(raw, 16)
    elif _PREFIXED_HEX_RE.fullmatch(raw):
        value = int(raw[2:], 16)
    elif _DECIMAL_RE.fullmatch(raw):
        value = int(raw, 10)
    else:
        return None
    if value > TOKEN_MAX:
        return None
    return value


class AccessEngine:
    """Serialized token/credential/action decision engine.

    Args:
        tokens:          Token store (current/previous with grace flag).
        authenticator:   Directory credential check.
        door:            Door facade; faults must raise (DoorController does this).
        token_timeout:   Passive rotation interval in seconds.
    """

    def __init__(
        self,
        tokens: TokenChecker,
        authenticator: Authenticator,
        door: Door,
        token_timeout: float,
    ) -> None:
        self._tokens = tokens
        self._authenticator = authenticator
        self._door = door
        self._lock = threading.Lock()
        self._scheduler = RotationScheduler(token_timeout, self._lock, self._rotate_with_grace)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._scheduler.start()

    def shutdown(self) -> None:
        """Stop passive rotation and wait for the scheduler thread to exit."""
        self._scheduler.stop()

    def __enter__(self) -> "AccessEngine":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def handle(self, payload: str | bytes) -> Response:
        """Process one request payload and return its Response."""
        with self._lock:
            logger.info("Incoming request...")
            try:
                request = self._decode(payload)
                self._check_token(request.token)
                self._authenticate(request.user, request.password)
                return self._dispatch(request.action)
            except _Reject as reject:
                return reject.response
            except DoorError as e:
                logger.error("Door command failed: %s", e)
                return Response.FAIL
            except Exception:
                logger.exception("Unexpected error while handling request")
                return Response.FAIL

    def rotate_on_timeout(self) -> None:
        """Rotate with grace under the engine lock, as the scheduler does."""
        with self._lock:
            self._rotate_with_grace()

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def _decode(self, payload: str | bytes) -> AccessRequest:
        try:
            data = json.loads(payload)
        except (ValueError, TypeError, RecursionError):
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors;
            # RecursionError is hit on absurdly deep nesting
            logger.warning("Request is not valid JSON!")
            raise _Reject(Response.NOT_JSON) from None

        try:
            request = AccessRequest.model_validate(data)
        except ValidationError as e:
            logger.warning("Error parsing JSON: %s", _field_errors(e))
            raise _Reject(Response.JSON_ERROR) from None

        logger.info("  Action: %s", request.action)
        logger.info("  User  : %s", request.user)
        logger.info("  IP    : %s", request.ip)
        logger.debug("  Token : %s", request.token)
        return request

    def _check_token(self, raw: str) -> None:
        token = parse_token(raw)
        if token is None:
            logger.error("User provided malformed token")
            raise _Reject(Response.INVALID_TOKEN)
        if not self._tokens.check(token):
            logger.error("User provided invalid token")
            raise _Reject(Response.INVALID_TOKEN)
        logger.info("Token check successful")

    def _authenticate(self, user: str, password: str) -> None:
        result = self._authenticator.verify(user, password)
        if result is AuthResult.TRANSPORT_ERROR:
            logger.error("Directory unavailable")
            raise _Reject(Response.LDAP_INIT)
        if result is not AuthResult.SUCCESS:
            logger.error("Invalid credentials for user %s", user)
            raise _Reject(Response.INVALID_CREDENTIALS)

    def _dispatch(self, action: str) -> Response:
        if action == ACTION_LOCK:
            return self._lock_door()
        if action == ACTION_UNLOCK:
            return self._unlock_door()
        logger.error("Unknown action: %s", action)
        return Response.UNKNOWN_ACTION

    def _lock_door(self) -> Response:
        if self._door.state() == DoorState.LOCKED:
            logger.warning("Unable to lock: already locked")
            return Response.ALREADY_LOCKED

        self._door.lock()
        self._tokens.rotate(False)
        return Response.SUCCESS

    def _unlock_door(self) -> Response:
        # Unlike lock, the command is sent even if the door is already unlocked,
        # and the token is consumed either way.
        old_state = self._door.state()
        self._door.unlock()
        self._tokens.rotate(False)

        if old_state == DoorState.UNLOCKED:
            logger.warning("Unable to unlock: already unlocked")
            return Response.ALREADY_UNLOCKED
        return Response.SUCCESS

    def _rotate_with_grace(self) -> None:
        self._tokens.rotate(True)


def _field_errors(error: ValidationError) -> str:
    """Summarize a ValidationError without echoing input values (the password)."""
    return "; ".join(f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in error.errors())
