"""Whole-collection queries.

This module provides QueryMixin, which implements the read-only scan
operations of a Collection on top of three primitives supplied by the
subclass. No index is assumed: every query decodes every entry.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from .exceptions import ArgumentError
from .kinds import strict_equals
from .paths import ABSENT, Path, resolve

__all__ = ["QueryMixin", "MISSING"]


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()
"""Default for an omitted comparison value (None is a valid value)."""

Predicate = Callable[[Any, str], bool]


class QueryMixin(ABC):
    """Mixin providing find/filter/map/reduce style queries.

    Subclasses must implement:
    - _iter_entries(): Yield (key, decoded value) for every entry
    - _sample_entries(count): Return up to count random (key, value) pairs
    - _delete_keys(keys): Delete the given keys, return how many existed

    Queries take either a function ``fn(value, key) -> bool`` or a path
    plus a value; the path form matches entries whose value at path is
    strictly equal to the given value.
    """

    @abstractmethod
    def _iter_entries(self) -> Iterator[Tuple[str, Any]]:
        ...

    @abstractmethod
    def _sample_entries(self, count: int) -> List[Tuple[str, Any]]:
        ...

    @abstractmethod
    def _delete_keys(self, keys: Iterable[str]) -> int:
        ...

    @staticmethod
    def _predicate(path_or_fn: Any, value: Any) -> Predicate:
        """Build a predicate from a function or a (path, value) pair.

        Raises:
            ArgumentError: If a path is given without a value
        """
        if callable(path_or_fn):
            return path_or_fn
        if value is MISSING:
            raise ArgumentError("Value is required for non-function predicate")

        def matches(entry: Any, key: str) -> bool:
            found = resolve(entry, path_or_fn)
            return found is not ABSENT and strict_equals(found, value)

        return matches

    @staticmethod
    def _comparison(value_or_fn: Any, path: Optional[Path]) -> Predicate:
        if callable(value_or_fn):
            return value_or_fn

        def matches(entry: Any, key: str) -> bool:
            found = resolve(entry, path) if path is not None else entry
            return found is not ABSENT and strict_equals(found, value_or_fn)

        return matches

    def find(self, path_or_fn: Any, value: Any = MISSING) -> Any:
        """Return the first value that matches, or None.

        Args:
            path_or_fn: ``fn(value, key) -> bool``, or a path
            value: Value to compare at path (required with a path)

        Example:
            db.find(lambda user, key: user["age"] > 30)
            db.find("profile.city", "Wien")
        """
        predicate = self._predicate(path_or_fn, value)
        for key, entry in self._iter_entries():
            if predicate(entry, key):
                return entry
        return None

    def find_index(self, path_or_fn: Any, value: Any = MISSING) -> Optional[str]:
        """Like find(), but return the key of the first match."""
        predicate = self._predicate(path_or_fn, value)
        for key, entry in self._iter_entries():
            if predicate(entry, key):
                return key
        return None

    def filter(self, path_or_fn: Any, value: Any = MISSING) -> List[Any]:
        """Return every value that matches, in collection order."""
        predicate = self._predicate(path_or_fn, value)
        return [entry for key, entry in self._iter_entries() if predicate(entry, key)]

    def partition(self, path_or_fn: Any, value: Any = MISSING) -> Tuple[List[Any], List[Any]]:
        """Split values into (matching, not matching)."""
        predicate = self._predicate(path_or_fn, value)
        matched: List[Any] = []
        rest: List[Any] = []
        for key, entry in self._iter_entries():
            (matched if predicate(entry, key) else rest).append(entry)
        return matched, rest

    def sweep(self, path_or_fn: Any, value: Any = MISSING) -> int:
        """Delete every entry that matches. Returns the number removed."""
        predicate = self._predicate(path_or_fn, value)
        doomed = [key for key, entry in self._iter_entries() if predicate(entry, key)]
        if not doomed:
            return 0
        return self._delete_keys(doomed)

    def some(self, value_or_fn: Any, path: Optional[Path] = None) -> bool:
        """True if any entry matches.

        Args:
            value_or_fn: ``fn(value, key) -> bool``, or a value to compare
            path: Where to compare the value (whole entry if None)
        """
        predicate = self._comparison(value_or_fn, path)
        return any(predicate(entry, key) for key, entry in self._iter_entries())

    def every(self, value_or_fn: Any, path: Optional[Path] = None) -> bool:
        """True if all entries match (and for an empty collection)."""
        predicate = self._comparison(value_or_fn, path)
        return all(predicate(entry, key) for key, entry in self._iter_entries())

    def map(self, path_or_fn: Any) -> List[Any]:
        """Project every entry through a function or a path.

        Entries where the path is missing map to None.
        """
        if callable(path_or_fn):
            return [path_or_fn(entry, key) for key, entry in self._iter_entries()]
        results = []
        for _, entry in self._iter_entries():
            found = resolve(entry, path_or_fn)
            results.append(None if found is ABSENT else found)
        return results

    def reduce(self, fn: Callable[[Any, Any, str], Any], initial: Any = None) -> Any:
        """Fold entries with ``fn(accumulator, value, key)``."""
        accumulator = initial
        for key, entry in self._iter_entries():
            accumulator = fn(accumulator, entry, key)
        return accumulator

    def random(self, count: int = 1) -> List[Tuple[str, Any]]:
        """Up to count distinct random (key, value) pairs."""
        return self._sample_entries(count)

    def random_key(self, count: int = 1) -> List[str]:
        """Up to count distinct random keys."""
        return [key for key, _ in self._sample_entries(count)]
