"""Structural kinds of stored values.

Kinds are computed from decoded values. Operations that need a certain
shape (push needs an Array, math a Number) check against them before
writing anything.
"""

from decimal import Decimal
from enum import Enum
from typing import Any


class Kind(Enum):
    """Structural kind of a JSON-shaped value."""

    OBJECT = "Object"
    ARRAY = "Array"
    NUMBER = "Number"
    STRING = "String"
    BOOLEAN = "Boolean"
    NULL = "Null"
    OTHER = "Other"  # codec-level types: datetime, bytes, set, ...

    def __str__(self) -> str:
        return self.value


CONTAINERS = (Kind.OBJECT, Kind.ARRAY)


def kind_of(value: Any) -> Kind:
    """Return the structural kind of a value.

    bool is checked before int since it subclasses it.
    """
    if value is None:
        return Kind.NULL
    if isinstance(value, bool):
        return Kind.BOOLEAN
    if isinstance(value, (int, float, Decimal)):
        return Kind.NUMBER
    if isinstance(value, str):
        return Kind.STRING
    if isinstance(value, dict):
        return Kind.OBJECT
    if isinstance(value, list):
        return Kind.ARRAY
    return Kind.OTHER


def is_container(value: Any) -> bool:
    return kind_of(value) in CONTAINERS


def strict_equals(a: Any, b: Any) -> bool:
    """Compare two values without crossing kinds.

    Unlike ``==``, ``True`` does not equal ``1``. Containers compare
    element-wise with the same rule.
    """
    kind = kind_of(a)
    if kind is not kind_of(b):
        return False
    if kind is Kind.OBJECT:
        if a.keys() != b.keys():
            return False
        return all(strict_equals(a[k], b[k]) for k in a)
    if kind is Kind.ARRAY:
        if len(a) != len(b):
            return False
        return all(strict_equals(x, y) for x, y in zip(a, b))
    return a == b


def index_of(items: list, value: Any) -> int:
    """Index of the first element strictly equal to value, or -1."""
    for i, item in enumerate(items):
        if strict_equals(item, value):
            return i
    return -1
