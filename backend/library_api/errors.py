"""Exception hierarchy shared by the storage, token and repository layers.

HTTP handlers in `main.py` translate these into responses; nothing below
the gateway knows about status codes.
"""

from typing import List, Optional


class RecordsError(Exception):
    """Base class for every error raised by the records service."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordValidationError(RecordsError):
    """Malformed or missing input, reported with field-level detail."""

    def __init__(self, errors: List[dict], message: str = "validation failed"):
        super().__init__(message)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> "RecordValidationError":
        return cls([{"field": field, "message": message}], message)


class DuplicateKeyError(RecordsError):
    """Insert rejected because the unique key is already taken."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class NotFoundError(RecordsError):
    """No record with the requested unique key."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class InvalidCredentialsError(RecordsError):
    pass


class UnauthenticatedError(RecordsError):
    """Request carried no usable identity. `reason` is only for logs."""

    reason = "unauthenticated"


class TokenMissingError(UnauthenticatedError):
    reason = "missing"


class TokenInvalidError(UnauthenticatedError):
    reason = "invalid"


class TokenExpiredError(UnauthenticatedError):
    reason = "expired"


class StorageError(RecordsError):
    """The durable file is in an unknown or unreadable state."""


class StorageCorruptError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


class StorageBusyError(StorageError):
    """Timed out waiting for a collection lock."""
