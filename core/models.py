"""
core/models.py -- Domain types shared by every layer.

Enums own the closed vocabularies (response codes, door states, directory
outcomes); AccessRequest owns the wire shape of an inbound request. None of
these types carry behavior beyond validation.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

ACTION_LOCK = "lock"
ACTION_UNLOCK = "unlock"

TOKEN_BITS = 64
TOKEN_MAX = (1 << TOKEN_BITS) - 1


class Response(str, Enum):
    """Outcome of a single request. The value is the stable wire identifier."""

    SUCCESS = "Success"
    FAIL = "Fail"  # never the result of a well-formed call; a defect signal
    NOT_JSON = "NotJson"
    JSON_ERROR = "JsonError"
    INVALID_TOKEN = "InvalidToken"
    LDAP_INIT = "LDAPInit"
    INVALID_CREDENTIALS = "InvalidCredentials"
    UNKNOWN_ACTION = "UnknownAction"
    ALREADY_LOCKED = "AlreadyLocked"
    ALREADY_UNLOCKED = "AlreadyUnlocked"


class DoorState(str, Enum):
    LOCKED = "Locked"
    UNLOCKED = "Unlocked"


class AuthResult(str, Enum):
    """Outcome of one directory credential check."""

    SUCCESS = "Success"
    INVALID_CREDENTIALS = "InvalidCredentials"
    TRANSPORT_ERROR = "TransportError"


class AccessRequest(BaseModel):
    """A decoded lock/unlock request.

    strict=True: every field must already be a JSON string. A numeric token
    or a boolean user is a JsonError, not something to coerce. Unknown keys
    are ignored so clients may send extra metadata.

    action is deliberately a plain str: an unrecognized action is a valid
    request that the pipeline answers with UnknownAction, after the token and
    credentials have been checked.
    """

    model_config = ConfigDict(strict=True, frozen=True, extra="ignore")

    action: str
    ip: str
    user: str
    password: str = Field(repr=False)  # kept out of tracebacks and debug logs
    token: str
