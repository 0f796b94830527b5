"""In-memory storage backend for testing."""

import random
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .base import StorageBackend


class MemoryBackend(StorageBackend):
    """In-memory storage backend.

    Useful for testing and temporary storage. Data is lost when the
    backend is closed or the process ends.

    Example:
        backend = MemoryBackend()
        backend.connect("scores")

        backend.put("alice", "10")
        raw = backend.get("alice")
    """

    def __init__(self):
        self._table: Optional[str] = None
        self._data: Dict[str, str] = {}
        self._counters: Dict[str, int] = {}
        self._connected = False

    def connect(self, table: str = "default", **kwargs) -> None:
        """Initialize the in-memory store."""
        self._table = table
        self._data = {}
        self._connected = True

    def close(self) -> None:
        """Clear the in-memory store."""
        self._data.clear()
        self._counters.clear()
        self._connected = False

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put(self, key: str, raw: str) -> None:
        self._data[key] = raw

    def delete(self, key: str) -> bool:
        if key in self._data:
            del self._data[key]
            return True
        return False

    def exists(self, key: str) -> bool:
        return key in self._data

    def count(self) -> int:
        return len(self._data)

    def keys(self) -> Iterator[str]:
        # Snapshot so callers may write while iterating
        yield from list(self._data)

    def scan(self) -> Iterator[Tuple[str, str]]:
        yield from list(self._data.items())

    def sample(self, count: int) -> List[Tuple[str, str]]:
        rows = list(self._data.items())
        return random.sample(rows, min(max(count, 0), len(rows)))

    def clear(self) -> None:
        self._data.clear()

    def next_counter(self, name: str) -> int:
        self._counters[name] = self._counters.get(name, 0) + 1
        return self._counters[name]

    # Transaction support - memory backend uses simple copy-on-write

    def begin_transaction(self) -> Any:
        """Begin a transaction by snapshotting current state."""
        return dict(self._data), dict(self._counters)

    def commit_transaction(self, handle: Any) -> None:
        """Commit transaction (nothing to do - changes already in place)."""
        pass

    def rollback_transaction(self, handle: Any) -> None:
        """Rollback transaction by restoring snapshot."""
        if handle is not None:
            self._data, self._counters = handle

    @property
    def supports_transactions(self) -> bool:
        """Memory backend supports basic transactions."""
        return True
