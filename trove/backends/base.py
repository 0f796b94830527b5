"""Abstract base class for storage backends."""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator, List, Optional, Tuple


class StorageBackend(ABC):
    """Abstract base class for storage backends.

    A backend holds one table of key -> raw text rows plus named
    counters. It knows nothing about paths or value types; the
    Collection class handles encoding, validation and the public API.
    """

    @abstractmethod
    def connect(self, table: str, **kwargs) -> None:
        """Open storage and make sure the table exists.

        Args:
            table: Table name (already validated by the caller)
            **kwargs: Backend-specific connection parameters
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close connection and release resources."""
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Retrieve the raw value for key.

        Returns:
            Raw text if found, None otherwise
        """
        pass

    @abstractmethod
    def put(self, key: str, raw: str) -> None:
        """Insert or replace the raw value for key."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete the row for key.

        Returns:
            True if the row existed and was deleted, False if not found
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if a row exists for key."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of rows in the table."""
        pass

    @abstractmethod
    def keys(self) -> Iterator[str]:
        """Yield every key in insertion order."""
        pass

    @abstractmethod
    def scan(self) -> Iterator[Tuple[str, str]]:
        """Yield every (key, raw) row in insertion order."""
        pass

    @abstractmethod
    def sample(self, count: int) -> List[Tuple[str, str]]:
        """Return up to count distinct random rows."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete every row in the table."""
        pass

    @abstractmethod
    def next_counter(self, name: str) -> int:
        """Increment the named counter and return its new value.

        Counters start at 1 and are never reset by clear() or delete().
        """
        pass

    def delete_many(self, keys: Iterable[str]) -> int:
        """Delete several rows. Returns how many existed."""
        return sum(1 for key in keys if self.delete(key))

    # Transaction support (optional - default implementations do nothing)

    def begin_transaction(self) -> Any:
        """Begin a transaction.

        Returns:
            Transaction handle (backend-specific), or None if not supported
        """
        return None

    def commit_transaction(self, handle: Any) -> None:
        """Commit transaction.

        Args:
            handle: Transaction handle from begin_transaction()
        """
        pass

    def rollback_transaction(self, handle: Any) -> None:
        """Rollback transaction.

        Args:
            handle: Transaction handle from begin_transaction()
        """
        pass

    @property
    def supports_transactions(self) -> bool:
        """Whether this backend supports transactions."""
        return False
