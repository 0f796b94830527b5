"""Dot-notation paths into JSON-shaped values.

A path like ``"a.b.2.c"`` is split into segments. Segments index dicts
by string key and lists by integer position. Paths may also be given as
a sequence of segments, e.g. ``("a", "b", 2, "c")``.

Assignment creates missing intermediate containers as dicts, never as
lists; a list is only traversed where one already exists.
"""

from typing import Any, List, Optional, Sequence, Union

from .exceptions import ArgumentError

Segment = Union[str, int]
Path = Union[str, int, Sequence[Segment]]


class _Absent:
    """Marker for "nothing at this path" (distinct from a stored None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def split_path(path: Optional[Path]) -> List[Segment]:
    """Split a path into segments. None and "" mean the whole value."""
    if path is None:
        return []
    if isinstance(path, bool):
        raise ArgumentError(f"Invalid path: {path!r}")
    if isinstance(path, int):
        return [path]
    if isinstance(path, str):
        return path.split(".") if path else []
    return list(path)


def format_path(path: Optional[Path]) -> str:
    return ".".join(str(s) for s in split_path(path))


def _list_index(segment: Segment) -> Optional[int]:
    if isinstance(segment, int) and not isinstance(segment, bool):
        return segment if segment >= 0 else None
    if isinstance(segment, str) and segment.isdigit():
        return int(segment)
    return None


def _dict_key(container: dict, segment: Segment) -> Any:
    if segment in container or isinstance(segment, str):
        return segment
    return str(segment)


def _child(container: Any, segment: Segment) -> Any:
    if isinstance(container, dict):
        key = _dict_key(container, segment)
        return container[key] if key in container else ABSENT
    if isinstance(container, list):
        idx = _list_index(segment)
        if idx is None or idx >= len(container):
            return ABSENT
        return container[idx]
    return ABSENT


def _put(container: Any, segment: Segment, value: Any) -> None:
    if isinstance(container, dict):
        container[_dict_key(container, segment)] = value
        return
    idx = _list_index(segment)
    if idx is None:
        raise ArgumentError(f"Cannot index a list with {segment!r}")
    if idx < len(container):
        container[idx] = value
    else:
        # pad like a sparse JS array would serialize
        container.extend([None] * (idx - len(container)))
        container.append(value)


def resolve(value: Any, path: Optional[Path]) -> Any:
    """Return the value at path, or ABSENT if any segment is missing.

    Resolving through a scalar (or through None) reports ABSENT rather
    than raising.
    """
    current = value
    for segment in split_path(path):
        current = _child(current, segment)
        if current is ABSENT:
            return ABSENT
    return current


def assign(root: Any, path: Optional[Path], value: Any) -> Any:
    """Set value at path inside root and return the (mutated) root.

    An empty path replaces the root. A None root becomes an empty dict.
    Missing or scalar intermediates are replaced by dicts.

    Raises:
        ArgumentError: If root is a scalar, or a list is indexed by a
            non-numeric segment.
    """
    segments = split_path(path)
    if not segments:
        return value
    if root is None:
        root = {}
    if not isinstance(root, (dict, list)):
        raise ArgumentError(
            f"Cannot assign path {format_path(path)!r} into {type(root).__name__}"
        )

    current = root
    for segment in segments[:-1]:
        child = _child(current, segment)
        if not isinstance(child, (dict, list)):
            child = {}
            _put(current, segment, child)
        current = child
    _put(current, segments[-1], value)
    return root


def unassign(root: Any, path: Optional[Path]) -> Any:
    """Remove the leaf at path and return the (mutated) root.

    List parents splice the element out, shifting later indices; dict
    parents drop the property. A missing leaf is left alone.

    Raises:
        ArgumentError: If path is empty (erasing the root is the
            caller's job).
    """
    segments = split_path(path)
    if not segments:
        raise ArgumentError("Cannot unassign the root value")
    parent = resolve(root, segments[:-1])
    last = segments[-1]
    if isinstance(parent, dict):
        parent.pop(_dict_key(parent, last), None)
    elif isinstance(parent, list):
        idx = _list_index(last)
        if idx is not None and idx < len(parent):
            del parent[idx]
    return root


def deep_merge(target: dict, source: dict) -> dict:
    """Recursively merge source into target and return target.

    Nested dicts merge key by key; any other source value (lists
    included) replaces the target's.
    """
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            deep_merge(target[key], value)
        else:
            target[key] = value
    return target
