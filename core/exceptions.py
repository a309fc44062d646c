"""core/exceptions.py -- Exceptions that cross layer boundaries."""


class DoorError(Exception):
    """Raised when the door driver fails to report state or execute a command."""
