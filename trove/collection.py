"""Core Collection class for path-addressable persistent storage."""

import atexit
import copy
import functools
import logging
import operator
import os
import random
import re
import warnings
import weakref
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .backends.base import StorageBackend
from .backends.memory import MemoryBackend
from .backends.sqlite import SQLiteBackend
from .bundle import dump_bundle, load_bundle
from .exceptions import (
    AlreadyShutDownError,
    ArgumentError,
    BackendConnectionError,
    InvalidKeyError,
    MissingKeyError,
    MissingPathError,
    SerializationError,
    TypeMismatchError,
)
from .kinds import CONTAINERS, Kind, index_of, is_container, kind_of, strict_equals
from .observable import observable
from .paths import ABSENT, Path, assign, deep_merge, format_path, resolve, split_path, unassign
from .query import QueryMixin
from .serialization import Hook, Serializer

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r"[\w-]+", re.ASCII)
DB_FILENAME = "trove.sqlite"
MEMORY_NAME = "MemoryCollection"

ChangeCallback = Callable[[str, Any, Any], None]


def _random_upto(base: Any, operand: Any) -> int:
    return random.randint(0, int(operand))


_MATH_OPS: Dict[str, Callable[[Any, Any], Any]] = {
    "add": operator.add,
    "addition": operator.add,
    "+": operator.add,
    "sub": operator.sub,
    "subtract": operator.sub,
    "-": operator.sub,
    "mult": operator.mul,
    "multiply": operator.mul,
    "*": operator.mul,
    "div": operator.truediv,
    "divide": operator.truediv,
    "/": operator.truediv,
    "exp": operator.pow,
    "exponent": operator.pow,
    "^": operator.pow,
    "mod": operator.mod,
    "modulo": operator.mod,
    "%": operator.mod,
    "rand": _random_upto,
    "random": _random_upto,
}


def _validate_name(name: Any, what: str = "key") -> None:
    if not isinstance(name, str) or not KEY_PATTERN.fullmatch(name):
        raise InvalidKeyError(name, what)


def _open_only(method):
    """Reject calls once the collection has been closed."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        self._ensure_open()
        return method(self, *args, **kwargs)

    return wrapper


# Collections still open at interpreter exit get closed
_open_collections: "weakref.WeakSet[Collection]" = weakref.WeakSet()


@atexit.register
def _close_all() -> None:
    for collection in list(_open_collections):
        if not collection.closed:
            collection.close()


class Collection(QueryMixin):
    """Persistent key/value collection with dot-path access.

    Values are JSON-shaped (dicts, lists, numbers, strings, booleans,
    None) plus the extra types the Serializer round-trips. Any operation
    can target a nested location with a dot path like ``"stats.wins"``.

    Example:
        from trove import connect

        db = connect("sqlite:///data/trove.sqlite", name="players")

        db.set("alice", {"stats": {"wins": 0}, "tags": []})
        db.inc("alice", "stats.wins")
        db.push("alice", "veteran", "tags")

        print(db.get("alice", "stats.wins"))  # 1

        # Live view: edits write through
        profile = db.observe("alice")
        profile["tags"].append("captain")
        print(db.get("alice", "tags"))  # ['veteran', 'captain']

    Every read-modify-write re-reads the stored value first, and shape
    checks run before anything is written.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        backend: Optional[StorageBackend] = None,
        *,
        data_dir: Optional[str] = None,
        in_memory: bool = False,
        auto_ensure: Any = None,
        ensure_props: bool = True,
        serializer: Optional[Hook] = None,
        deserializer: Optional[Hook] = None,
        sqlite_options: Optional[Dict[str, Any]] = None,
    ):
        """Create a Collection.

        Use connect() for URL-based construction.

        Args:
            name: Collection name; names the storage table
            backend: Connected StorageBackend. If omitted, a SQLite file
                in data_dir (or an in-memory database) is opened
            data_dir: Directory for the SQLite file (default ./data,
                created if missing)
            in_memory: Use an in-memory SQLite database
            auto_ensure: Default written on first access to a missing key
            ensure_props: Merge ensure() defaults into existing dicts
            serializer: Hook ``fn(value, key)`` applied before encoding
            deserializer: Hook ``fn(value, key)`` applied after decoding
            sqlite_options: Extra keyword arguments for sqlite3.connect

        Raises:
            InvalidKeyError: If name is not a valid name
            BackendConnectionError: If data_dir does not exist
        """
        if name == "::memory::":
            warnings.warn(
                "Using ::memory:: as a name is deprecated. Use in_memory=True instead.",
                DeprecationWarning,
                stacklevel=2,
            )
            name, in_memory = None, True
        if name is None:
            name = MEMORY_NAME if in_memory else "default"
        _validate_name(name, "collection name")

        self._name = name
        self._auto_ensure = auto_ensure
        self._ensure_props = ensure_props
        self._serializer = Serializer(serializer, deserializer)
        self._changed_cb: Optional[ChangeCallback] = None
        self._in_transaction = False
        self._closed = False

        if backend is None:
            backend = self._open_default_backend(data_dir, in_memory, sqlite_options or {})
        self._backend = backend

        _open_collections.add(self)

    def _open_default_backend(
        self, data_dir: Optional[str], in_memory: bool, sqlite_options: Dict[str, Any]
    ) -> StorageBackend:
        if in_memory:
            path = ":memory:"
        else:
            if data_dir is None:
                data_dir = "data"
                os.makedirs(data_dir, exist_ok=True)
            elif not os.path.isdir(data_dir):
                raise BackendConnectionError(f"Data directory does not exist: {data_dir}")
            path = os.path.join(data_dir, DB_FILENAME)
        backend = SQLiteBackend()
        backend.connect(self._name, path=path, **sqlite_options)
        return backend

    # Properties

    @property
    def name(self) -> str:
        return self._name

    @property
    def backend(self) -> StorageBackend:
        """The underlying storage backend."""
        return self._backend

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def size(self) -> int:
        """Number of keys in the collection."""
        self._ensure_open()
        return self._backend.count()

    count = size

    # Internal helpers

    def _ensure_open(self) -> None:
        if self._closed:
            raise AlreadyShutDownError(self._name)

    def _read(self, key: str) -> Any:
        """Decode the stored value, or ABSENT."""
        raw = self._backend.get(key)
        if raw is None:
            return ABSENT
        return self._serializer.decode(raw, key)

    def _write(self, key: str, value: Any) -> None:
        self._backend.put(key, self._serializer.encode(value, key))

    def _load(self, key: str) -> Any:
        """Like _read, but writes auto_ensure for a missing key first."""
        if self._auto_ensure is not None and not self._backend.exists(key):
            self._write(key, copy.deepcopy(self._auto_ensure))
        return self._read(key)

    def _notify(self, key: str, old: Any, new: Any) -> None:
        if self._changed_cb is not None:
            self._changed_cb(key, old, new)

    def _check(self, key: str, kinds: Sequence[Kind], path: Optional[Path] = None) -> Any:
        """Type guard: return the target value if it has an accepted kind.

        Raises:
            MissingKeyError: If key does not exist
            TypeMismatchError: If a path is given and the stored value is
                not a container, or the target kind is not in kinds
            MissingPathError: If path does not resolve to a value
        """
        data = self._read(key)
        if data is ABSENT:
            raise MissingKeyError(key, self._name)
        if not split_path(path):
            if kind_of(data) not in kinds:
                raise TypeMismatchError(key, kinds, kind_of(data))
            return data
        if not is_container(data):
            raise TypeMismatchError(key, CONTAINERS, kind_of(data))
        target = resolve(data, path)
        if target is ABSENT or target is None:
            raise MissingPathError(key, format_path(path))
        if kind_of(target) not in kinds:
            raise TypeMismatchError(key, kinds, kind_of(target), format_path(path))
        return target

    # Basic access

    @_open_only
    def set(self, key: str, value: Any, path: Optional[Path] = None) -> "Collection":
        """Store value at key, or at path inside the key's value.

        With a path, a missing value starts from auto_ensure (or an empty
        dict), and None becomes an empty dict. The change callback receives
        a snapshot of the previous value, None if the key was missing.

        Returns:
            self, for chaining

        Raises:
            InvalidKeyError: If key is invalid
            TypeMismatchError: If a path is given and the stored value is
                a scalar
            SerializationError: If encoding fails, or decoding under a path
        """
        _validate_name(key)
        if split_path(path):
            current = self._read(key)
            old = None if current is ABSENT else copy.deepcopy(current)
            if current is ABSENT and self._auto_ensure is not None:
                current = copy.deepcopy(self._auto_ensure)
            root = {} if current is ABSENT or current is None else current
            if not is_container(root):
                raise TypeMismatchError(key, CONTAINERS, kind_of(root))
            data = assign(root, path, value)
        else:
            try:
                current = self._read(key)
            except SerializationError:
                # An unreadable row can still be replaced as a whole
                logger.warning("Overwriting undecodable value for key %s in %s", key, self._name)
                current = ABSENT
            old = None if current is ABSENT else copy.deepcopy(current)
            data = value
        self._write(key, data)
        self._notify(key, old, data)
        return self

    @_open_only
    def get(self, key: str, path: Optional[Path] = None) -> Any:
        """Return the value at key (or at path inside it), or None.

        With auto_ensure configured, a missing key is created with the
        default before anything is resolved.

        Raises:
            InvalidKeyError: If key is invalid
            TypeMismatchError: If a path is given and the stored value is
                a scalar
        """
        _validate_name(key)
        data = self._load(key)
        if data is ABSENT or data is None:
            return None
        if not split_path(path):
            return data
        if not is_container(data):
            raise TypeMismatchError(key, CONTAINERS, kind_of(data))
        found = resolve(data, path)
        return None if found is ABSENT else found

    @_open_only
    def require(self, key: str, path: Optional[Path] = None) -> Any:
        """Like get(), but raise instead of returning None for missing data.

        Raises:
            MissingKeyError: If key does not exist
            MissingPathError: If path does not resolve
        """
        _validate_name(key)
        data = self._load(key)
        if data is ABSENT:
            raise MissingKeyError(key, self._name)
        if not split_path(path):
            return data
        if not is_container(data):
            raise TypeMismatchError(key, CONTAINERS, kind_of(data))
        found = resolve(data, path)
        if found is ABSENT:
            raise MissingPathError(key, format_path(path))
        return found

    @_open_only
    def has(self, key: str) -> bool:
        _validate_name(key)
        return self._backend.exists(key)

    @_open_only
    def delete(self, key: str, path: Optional[Path] = None) -> "Collection":
        """Delete a key, or the property/element at path inside it.

        Deleting a list element shifts the following elements down.
        Deleting a whole key fires the change callback with new value
        None (only if the key existed).
        """
        _validate_name(key)
        if split_path(path):
            data = self._check(key, CONTAINERS)
            self.set(key, unassign(data, path))
            return self
        old = self._read(key) if self._changed_cb is not None else None
        if self._backend.delete(key):
            self._notify(key, None if old is ABSENT else old, None)
        return self

    @_open_only
    def clear(self) -> None:
        """Delete every key. The autonum counter is not reset."""
        self._backend.clear()

    @_open_only
    def keys(self) -> List[str]:
        return list(self._backend.keys())

    @_open_only
    def values(self) -> List[Any]:
        return [value for _, value in self._iter_entries()]

    @_open_only
    def entries(self) -> List[Tuple[str, Any]]:
        return list(self._iter_entries())

    @_open_only
    def autonum(self) -> str:
        """Return a fresh key from this collection's persistent counter.

        Numbers start at "1", increase by one per call and are never
        reused, even after the keys they minted are deleted.
        """
        return str(self._backend.next_counter(self._name))

    @_open_only
    def changed(self, callback: Optional[ChangeCallback]) -> None:
        """Register the change callback ``fn(key, old_value, new_value)``.

        Replaces any previous callback; None removes it. Called once per
        top-level mutation, after the write.
        """
        if callback is not None and not callable(callback):
            raise ArgumentError("Change callback must be callable")
        self._changed_cb = callback

    # Array and number helpers

    @_open_only
    def push(
        self, key: str, value: Any, path: Optional[Path] = None, allow_dupes: bool = False
    ) -> "Collection":
        """Append value to the list at key (or at path).

        Unless allow_dupes is True, nothing is written when an equal
        element is already present.

        Raises:
            MissingKeyError, MissingPathError, TypeMismatchError: If the
                target is not an existing list
        """
        _validate_name(key)
        data = self._check(key, (Kind.ARRAY,), path)
        if not allow_dupes and index_of(data, value) > -1:
            return self
        data.append(value)
        self.set(key, data, path)
        return self

    @_open_only
    def includes(self, key: str, value: Any, path: Optional[Path] = None) -> bool:
        """True if the list at key (or at path) holds an equal element."""
        _validate_name(key)
        data = self._check(key, (Kind.ARRAY,), path)
        return index_of(data, value) > -1

    @_open_only
    def remove(self, key: str, value_or_fn: Any, path: Optional[Path] = None) -> "Collection":
        """Remove the first matching element from the list at key (or path).

        Args:
            key: The key
            value_or_fn: Element to remove, or ``fn(element) -> bool``
            path: Optional path to the list inside the value
        """
        _validate_name(key)
        data = self._check(key, (Kind.ARRAY,), path)
        if callable(value_or_fn):
            index = next((i for i, item in enumerate(data) if value_or_fn(item)), -1)
        else:
            index = index_of(data, value_or_fn)
        if index > -1:
            del data[index]
            self.set(key, data, path)
        return self

    @_open_only
    def math(
        self, key: str, operation: str, operand: Any = None, path: Optional[Path] = None
    ) -> Any:
        """Apply an arithmetic operation to the number at key (or path).

        Operations: add/addition/+, sub/subtract/-, mult/multiply/*,
        div/divide//, exp/exponent/^, mod/modulo/%, and rand/random
        (a random integer between 0 and operand, inclusive). An unknown
        operation stores and returns None.

        Returns:
            The new value

        Raises:
            ArgumentError: If operation or operand is missing, or the
                operation fails (e.g. division by zero)
        """
        _validate_name(key)
        base = self._check(key, (Kind.NUMBER,), path)
        if operation is None or operand is None:
            raise ArgumentError("Math operation requires an operation and an operand")
        fn = _MATH_OPS.get(operation)
        if fn is None:
            logger.warning('Unknown math operation "%s" on key "%s"; storing None', operation, key)
            result = None
        else:
            try:
                result = fn(base, operand)
            except (ArithmeticError, TypeError, ValueError) as e:
                raise ArgumentError(f'Math operation "{operation}" failed on "{key}": {e}') from e
        self.set(key, result, path)
        return result

    @_open_only
    def inc(self, key: str, path: Optional[Path] = None) -> "Collection":
        _validate_name(key)
        value = self._check(key, (Kind.NUMBER,), path)
        return self.set(key, value + 1, path)

    @_open_only
    def dec(self, key: str, path: Optional[Path] = None) -> "Collection":
        _validate_name(key)
        value = self._check(key, (Kind.NUMBER,), path)
        return self.set(key, value - 1, path)

    # Object helpers

    @_open_only
    def ensure(self, key: str, default: Any = None, path: Optional[Path] = None) -> Any:
        """Return the value at key (or path), storing default if missing.

        The default is deep-copied before it is stored. When the key
        already holds a dict (and ensure_props is on), missing properties
        are backfilled from default instead.

        With auto_ensure configured, it replaces default (a UserWarning
        is emitted if a default was also passed).

        Returns:
            The resulting value

        Raises:
            ArgumentError: If the stored value is a dict but default is not
        """
        _validate_name(key)
        if self._auto_ensure is not None:
            if default is not None:
                warnings.warn(
                    f'Saving "{key}": auto_ensure value was provided for this '
                    "collection but a default value has also been provided. "
                    "The default will be ignored, auto_ensure value is used instead.",
                    UserWarning,
                    stacklevel=3,
                )
            default = self._auto_ensure
        cloned = copy.deepcopy(default)

        # Missing keys are created through set, so one change event fires
        if split_path(path):
            current = self._read(key)
            if is_container(current):
                found = resolve(current, path)
                if found is not ABSENT:
                    return found
            self.set(key, cloned, path)
            return cloned

        current = self._read(key)
        if self._ensure_props and kind_of(current) is Kind.OBJECT:
            if kind_of(cloned) is not Kind.OBJECT:
                raise ArgumentError(
                    f'Default value for "{key}" in collection "{self._name}" '
                    "must be an object when merging with an object value."
                )
            merged = deep_merge(cloned, current)
            if not strict_equals(merged, current):
                self.set(key, merged)
            return merged

        if current is not ABSENT:
            return current
        self.set(key, cloned)
        return cloned

    @_open_only
    def update(self, key: str, value_or_fn: Any) -> Any:
        """Merge a dict into the stored dict, or replace it via a function.

        Args:
            key: Key holding a dict
            value_or_fn: Partial dict, merged recursively over the current
                value; or ``fn(current) -> new`` whose result is stored as-is

        Returns:
            The stored value
        """
        _validate_name(key)
        data = self._check(key, (Kind.OBJECT,))
        if callable(value_or_fn):
            result = value_or_fn(data)
        elif kind_of(value_or_fn) is Kind.OBJECT:
            result = deep_merge(data, copy.deepcopy(value_or_fn))
        else:
            raise ArgumentError("update() requires a dict or a function")
        self.set(key, result)
        return result

    @_open_only
    def observe(self, key: str, path: Optional[Path] = None) -> Any:
        """Return a live view of the dict or list at key (or path).

        Mutating the view (at any depth) stores the whole view back with
        set(key, view, path) before the mutating call returns.
        """
        _validate_name(key)
        data = self._check(key, CONTAINERS, path)
        return observable(data, lambda state: self.set(key, state, path))

    # Query primitives

    def _iter_entries(self) -> Iterator[Tuple[str, Any]]:
        self._ensure_open()
        for key, raw in self._backend.scan():
            yield key, self._serializer.decode(raw, key)

    def _sample_entries(self, count: int) -> List[Tuple[str, Any]]:
        self._ensure_open()
        return [(key, self._serializer.decode(raw, key)) for key, raw in self._backend.sample(count)]

    def _delete_keys(self, keys: Iterable[str]) -> int:
        self._ensure_open()
        removed = self._backend.delete_many(keys)
        logger.debug("Swept %d keys from %s", removed, self._name)
        return removed

    # Export / import

    @_open_only
    def export(self) -> str:
        """Serialize every row to a bundle string (see trove.bundle)."""
        from . import __version__

        return dump_bundle(self._name, __version__, self._backend.scan())

    @_open_only
    def import_data(self, data: Any, overwrite: bool = True, clear: bool = False) -> "Collection":
        """Load rows from a bundle produced by export().

        Args:
            data: Bundle string
            overwrite: Replace keys that already exist
            clear: Delete every key before importing

        Raises:
            BundleError: If the bundle is invalid or from another collection
            InvalidKeyError: If a bundled key is invalid
            SerializationError: If a bundled value cannot be decoded
        """
        rows = load_bundle(data, self._name)
        for key, raw in rows:
            _validate_name(key)
            self._serializer.decode(raw, key)

        written = 0
        with self.transaction():
            if clear:
                self._backend.clear()
            for key, raw in rows:
                if not overwrite and self._backend.exists(key):
                    continue
                self._backend.put(key, raw)
                written += 1
        logger.debug("Imported %d of %d rows into %s", written, len(rows), self._name)
        return self

    # Transaction support

    @contextmanager
    def transaction(self):
        """Context manager for atomic groups of writes.

        Changes within the transaction are committed on successful exit,
        or rolled back on exception.

        Example:
            with db.transaction():
                db.set("a", 1)
                db.set("b", 2)
                # Both committed atomically
        """
        self._ensure_open()
        if self._in_transaction or not self._backend.supports_transactions:
            # Nested, or backend can't: changes go straight through
            yield
            return

        self._in_transaction = True
        handle = self._backend.begin_transaction()
        try:
            yield
            self._backend.commit_transaction(handle)
        except BaseException:
            # KeyboardInterrupt too, or the backend stays inside BEGIN
            self._backend.rollback_transaction(handle)
            raise
        finally:
            self._in_transaction = False

    # Dict-like interface

    def __getitem__(self, key: str) -> Any:
        return self.require(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        if not self.has(key):
            raise MissingKeyError(key, self._name)
        self.delete(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str) or not KEY_PATTERN.fullmatch(key):
            return False
        return self.has(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Collection {self._name!r} ({state})>"

    # Lifecycle

    @_open_only
    def close(self) -> None:
        """Close the collection and release its backend.

        Any later call raises AlreadyShutDownError.
        """
        self._backend.close()
        self._closed = True
        _open_collections.discard(self)
        logger.debug("Closed collection %s", self._name)

    def __enter__(self) -> "Collection":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        if not self._closed:
            self.close()


def multi(names: Sequence[str], **options) -> Dict[str, Collection]:
    """Create one Collection per name, sharing the same options.

    Example:
        dbs = multi(["users", "guilds"], data_dir="data")
        dbs["users"].set("alice", {})

    Raises:
        ArgumentError: If names is empty or a bare string
    """
    if isinstance(names, str) or not names:
        raise ArgumentError('"names" argument must be a list of string names.')
    return {name: Collection(name, **options) for name in names}


def connect(url: str, name: str = "default", **options) -> Collection:
    """Connect to a collection using a URL.

    Supported URL schemes:
        - memory://          In-memory storage (testing)
        - sqlite:///path.db  SQLite file storage
        - sqlite:///:memory: SQLite in-memory

    Args:
        url: Connection URL
        name: Collection name
        **options: Collection options (auto_ensure, ensure_props,
            serializer, deserializer, sqlite_options)

    Returns:
        Connected Collection instance

    Example:
        db = connect("sqlite:///data/trove.sqlite", name="scores")
        db = connect("memory://")
    """
    _validate_name(name, "collection name")
    parsed = urlparse(url)
    scheme = parsed.scheme

    if scheme == "memory":
        backend = MemoryBackend()
        backend.connect(name)

    elif scheme == "sqlite":
        # Handle sqlite:///path and sqlite:///:memory:
        path = parsed.path
        if path.startswith("/"):
            path = path[1:]  # Remove leading slash from file path

        backend = SQLiteBackend()
        backend.connect(name, path=path or ":memory:", **(options.pop("sqlite_options", None) or {}))

    else:
        raise ValueError(f"Unknown storage scheme: {scheme}")

    return Collection(name, backend=backend, **options)
