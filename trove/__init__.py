"""
Trove - Path-addressable persistent key/value collections.

Each collection is a named table of JSON-shaped values. Nested data is
read and written with dot paths like "stats.wins" or "tags.0".

Quick Start:
    from trove import Collection

    # Opens ./data/trove.sqlite, table "players"
    db = Collection("players")

    db.set("alice", {"stats": {"wins": 0}, "tags": []})
    db.inc("alice", "stats.wins")
    db.push("alice", "veteran", "tags")

    print(db.get("alice", "stats.wins"))  # 1

    # Query
    winners = db.filter(lambda player, key: player["stats"]["wins"] > 0)

Supported backends (via connect()):
    - memory://           In-memory storage (testing)
    - sqlite:///path.db   SQLite file storage
    - sqlite:///:memory:  SQLite in-memory

Key Classes:
    - Collection: Main storage interface with dict-like access
    - connect(): Create a Collection from a URL
    - multi(): Create several Collections with shared options

Values:
    - dict, list, str, int, float, bool and None are stored as JSON
    - datetime, date, Decimal, tuple, set, frozenset and bytes round-trip
      through marker objects (see Serializer)
"""

__version__ = "0.1.0"

from .collection import Collection, connect, multi
from .backends import StorageBackend, MemoryBackend, SQLiteBackend
from .serialization import Serializer
from .kinds import Kind
from .observable import ObservableDict, ObservableList
from .exceptions import (
    ErrorKind,
    TroveError,
    InvalidKeyError,
    MissingKeyError,
    MissingPathError,
    TypeMismatchError,
    ArgumentError,
    SerializationError,
    AlreadyShutDownError,
    BundleError,
    BackendConnectionError,
)

__all__ = [
    # Main API
    "Collection",
    "connect",
    "multi",
    # Backends
    "StorageBackend",
    "MemoryBackend",
    "SQLiteBackend",
    # Values
    "Serializer",
    "Kind",
    "ObservableDict",
    "ObservableList",
    # Exceptions
    "ErrorKind",
    "TroveError",
    "InvalidKeyError",
    "MissingKeyError",
    "MissingPathError",
    "TypeMismatchError",
    "ArgumentError",
    "SerializationError",
    "AlreadyShutDownError",
    "BundleError",
    "BackendConnectionError",
]
