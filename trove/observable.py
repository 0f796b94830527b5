"""Live views of stored values.

``observable(value, callback)`` returns a dict or list subclass that
behaves like the plain value. Any in-place mutation, at any depth,
calls ``callback`` with a plain deep copy of the whole tree once the
mutation is done::

    view = observable({"tags": ["a"]}, lambda state: print(state))
    view["tags"].append("b")   # prints {'tags': ['a', 'b']}

Containers stored into a view are copied into it, so later edits to the
original object do not leak in. Copying or pickling a view yields plain
containers.
"""

from typing import Any, Callable, Optional

Callback = Callable[[], None]


def unwrap(value: Any) -> Any:
    """Return value with every nested view converted to a plain container."""
    if isinstance(value, dict):
        return {k: unwrap(v) for k, v in value.items()}
    if isinstance(value, list):
        return [unwrap(v) for v in value]
    return value


def _wrap(value: Any, on_change: Optional[Callback]) -> Any:
    if isinstance(value, dict):
        return ObservableDict(value, on_change)
    if isinstance(value, list):
        return ObservableList(value, on_change)
    return value


class ObservableDict(dict):
    """A dict that reports every mutation."""

    def __init__(self, data: dict, on_change: Optional[Callback] = None):
        super().__init__()
        for key, value in data.items():
            super().__setitem__(key, _wrap(value, on_change))
        self._on_change = on_change

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def __setitem__(self, key, value) -> None:
        super().__setitem__(key, _wrap(value, self._on_change))
        self._changed()

    def __delitem__(self, key) -> None:
        super().__delitem__(key)
        self._changed()

    def __ior__(self, other):
        self.update(other)
        return self

    def __reduce_ex__(self, protocol):
        return (dict, (unwrap(self),))

    def pop(self, key, *default):
        present = key in self
        result = super().pop(key, *default)
        if present:
            self._changed()
        return unwrap(result)

    def popitem(self):
        key, value = super().popitem()
        self._changed()
        return key, unwrap(value)

    def clear(self) -> None:
        if self:
            super().clear()
            self._changed()

    def setdefault(self, key, default=None):
        if key not in self:
            self[key] = default
        return self[key]

    def update(self, *args, **kwargs) -> None:
        for key, value in dict(*args, **kwargs).items():
            super().__setitem__(key, _wrap(value, self._on_change))
        self._changed()


class ObservableList(list):
    """A list that reports every mutation."""

    def __init__(self, data: list, on_change: Optional[Callback] = None):
        super().__init__(_wrap(v, on_change) for v in data)
        self._on_change = on_change

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            value = [_wrap(v, self._on_change) for v in value]
        else:
            value = _wrap(value, self._on_change)
        super().__setitem__(index, value)
        self._changed()

    def __delitem__(self, index) -> None:
        super().__delitem__(index)
        self._changed()

    def __iadd__(self, other):
        self.extend(other)
        return self

    def __imul__(self, count):
        items = [unwrap(v) for v in self]
        super().clear()
        super().extend(_wrap(v, self._on_change) for v in items * count)
        self._changed()
        return self

    def __reduce_ex__(self, protocol):
        return (list, (unwrap(self),))

    def append(self, value) -> None:
        super().append(_wrap(value, self._on_change))
        self._changed()

    def extend(self, values) -> None:
        super().extend([_wrap(v, self._on_change) for v in values])
        self._changed()

    def insert(self, index, value) -> None:
        super().insert(index, _wrap(value, self._on_change))
        self._changed()

    def pop(self, index=-1):
        result = super().pop(index)
        self._changed()
        return unwrap(result)

    def remove(self, value) -> None:
        super().remove(value)
        self._changed()

    def clear(self) -> None:
        if self:
            super().clear()
            self._changed()

    def sort(self, *, key=None, reverse=False) -> None:
        super().sort(key=key, reverse=reverse)
        self._changed()

    def reverse(self) -> None:
        super().reverse()
        self._changed()


def observable(value: Any, callback: Callable[[Any], None]) -> Any:
    """Wrap a dict or list so mutations call callback(plain_state).

    Args:
        value: The dict or list to wrap (copied, not aliased)
        callback: Receives a plain deep copy of the root after each mutation

    Returns:
        An ObservableDict or ObservableList

    Raises:
        TypeError: If value is not a dict or list
    """
    if not isinstance(value, (dict, list)):
        raise TypeError(f"Cannot observe {type(value).__name__}")

    root = None

    def notify() -> None:
        callback(unwrap(root))

    root = _wrap(value, notify)
    return root
