"""Exceptions for the trove package.

Every error carries a machine-readable ``kind`` so callers can branch on
the cause without matching message text::

    try:
        db.push("tags", "new")
    except TroveError as e:
        if e.kind is ErrorKind.MISSING_KEY:
            db.set("tags", ["new"])
"""

from enum import Enum, auto
from typing import Iterable, Optional


class ErrorKind(Enum):
    """Cause of a TroveError."""

    INVALID_KEY = auto()
    MISSING_KEY = auto()
    MISSING_PATH = auto()
    TYPE_MISMATCH = auto()
    ARGUMENT = auto()
    CODEC = auto()
    ALREADY_SHUT_DOWN = auto()
    IMPORT = auto()
    CONNECTION = auto()


class TroveError(Exception):
    """Base exception for all trove errors."""

    kind: Optional[ErrorKind] = None

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError subclasses would otherwise repr() the message
        return self.message


class InvalidKeyError(TroveError, ValueError):
    """Key (or collection name) fails the format rule."""

    kind = ErrorKind.INVALID_KEY

    def __init__(self, key: object, what: str = "key"):
        self.key = key
        super().__init__(
            f"Invalid {what} {key!r} - only alphanumeric characters, "
            f"underscores and hyphens are allowed."
        )


class MissingKeyError(TroveError, KeyError):
    """Operation requires a key that does not exist."""

    kind = ErrorKind.MISSING_KEY

    def __init__(self, key: str, collection: str):
        self.key = key
        self.collection = collection
        super().__init__(
            f'The key "{key}" does not exist in the collection "{collection}"'
        )


class MissingPathError(TroveError, KeyError):
    """Path does not resolve to any value."""

    kind = ErrorKind.MISSING_PATH

    def __init__(self, key: str, path: str):
        self.key = key
        self.path = path
        super().__init__(
            f'The property "{path}" in key "{key}" does not exist. '
            f"Please set() it or ensure() it."
        )


class TypeMismatchError(TroveError, TypeError):
    """Value (or value at a path) is not of an accepted kind."""

    kind = ErrorKind.TYPE_MISMATCH

    def __init__(
        self,
        key: str,
        expected: Iterable[object],
        actual: object,
        path: Optional[str] = None,
    ):
        self.key = key
        self.path = path
        self.expected = tuple(expected)
        self.actual = actual
        names = '" or "'.join(str(k) for k in self.expected)
        target = f'property "{path}" in key "{key}"' if path else f'value for key "{key}"'
        super().__init__(
            f'The {target} is not of type "{names}" (was of type "{actual}")'
        )


class ArgumentError(TroveError, ValueError):
    """Malformed call."""

    kind = ErrorKind.ARGUMENT


class SerializationError(TroveError):
    """Failed to encode or decode a value."""

    kind = ErrorKind.CODEC


class AlreadyShutDownError(TroveError, RuntimeError):
    """Collection was used after close()."""

    kind = ErrorKind.ALREADY_SHUT_DOWN

    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f'The collection "{collection}" has already been shut down')


class BundleError(TroveError, ValueError):
    """Export bundle could not be imported."""

    kind = ErrorKind.IMPORT


class BackendConnectionError(TroveError):
    """Failed to open the storage backend."""

    kind = ErrorKind.CONNECTION
