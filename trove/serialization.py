"""Value codec for trove.

Values are stored as JSON text. Types JSON cannot express are wrapped in
single-key marker objects so they come back as the same Python type::

    {"__datetime__": "2024-12-20T10:00:00"}
    {"__tuple__": [1, 2]}
    {"__bytes__": "aGVsbG8="}
"""

import base64
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from .exceptions import SerializationError

Hook = Callable[[Any, str], Any]

_MARKERS = (
    "__datetime__",
    "__date__",
    "__decimal__",
    "__tuple__",
    "__set__",
    "__frozenset__",
    "__bytes__",
)


class Serializer:
    """Encode values to storable text and back.

    Optional hooks run on the Python side of the boundary: ``serializer``
    before encoding, ``deserializer`` after decoding. Both receive the
    value and its key.

    Example:
        serializer = Serializer()

        raw = serializer.encode({"when": datetime(2024, 1, 1)}, "event")
        # '{"when": {"__datetime__": "2024-01-01T00:00:00"}}'

        value = serializer.decode(raw, "event")
        # {'when': datetime.datetime(2024, 1, 1, 0, 0)}
    """

    def __init__(
        self,
        serializer: Optional[Hook] = None,
        deserializer: Optional[Hook] = None,
    ):
        self._serializer = serializer
        self._deserializer = deserializer

    def encode(self, value: Any, key: str = "") -> str:
        """Encode a value to JSON text.

        Raises:
            SerializationError: If the hook fails or the value holds an
                unsupported type
        """
        try:
            if self._serializer is not None:
                value = self._serializer(value, key)
            return json.dumps(self._to_json_compatible(value))
        except SerializationError:
            raise
        except Exception as e:
            raise SerializationError(f'Failed to serialize value for "{key}": {e}') from e

    def decode(self, raw: str, key: str = "") -> Any:
        """Decode JSON text produced by encode().

        Raises:
            SerializationError: If the text is malformed or the hook fails
        """
        try:
            value = self._from_json_compatible(json.loads(raw))
            if self._deserializer is not None:
                value = self._deserializer(value, key)
            return value
        except SerializationError:
            raise
        except Exception as e:
            raise SerializationError(
                f'Error while deserializing data for "{key}": {e}'
            ) from e

    def _to_json_compatible(self, value: Any) -> Any:
        """Convert a value to JSON-compatible format."""
        if value is None or isinstance(value, (str, bool, int, float)):
            return value
        # datetime before date: it subclasses date
        if isinstance(value, datetime):
            return {"__datetime__": value.isoformat()}
        if isinstance(value, date):
            return {"__date__": value.isoformat()}
        if isinstance(value, Decimal):
            return {"__decimal__": str(value)}
        if isinstance(value, tuple):
            return {"__tuple__": [self._to_json_compatible(v) for v in value]}
        if isinstance(value, frozenset):
            return {"__frozenset__": [self._to_json_compatible(v) for v in value]}
        if isinstance(value, set):
            return {"__set__": [self._to_json_compatible(v) for v in value]}
        if isinstance(value, (bytes, bytearray)):
            return {"__bytes__": base64.b64encode(bytes(value)).decode("ascii")}
        if isinstance(value, list):
            return [self._to_json_compatible(v) for v in value]
        if isinstance(value, dict):
            data = {}
            for k, v in value.items():
                if not isinstance(k, (str, int, float, bool)) and k is not None:
                    raise SerializationError(
                        f"Cannot serialize dict key of type {type(k).__name__}"
                    )
                data[k] = self._to_json_compatible(v)
            return data
        raise SerializationError(f"Cannot serialize type: {type(value).__name__}")

    def _from_json_compatible(self, value: Any) -> Any:
        """Convert a value from JSON-compatible format."""
        if isinstance(value, list):
            return [self._from_json_compatible(v) for v in value]
        if not isinstance(value, dict):
            return value
        if len(value) == 1:
            (marker, payload), = value.items()
            if marker in _MARKERS:
                return self._from_marker(marker, payload)
        return {k: self._from_json_compatible(v) for k, v in value.items()}

    def _from_marker(self, marker: str, payload: Any) -> Any:
        if marker == "__datetime__":
            return datetime.fromisoformat(payload)
        if marker == "__date__":
            return date.fromisoformat(payload)
        if marker == "__decimal__":
            return Decimal(payload)
        if marker == "__bytes__":
            return base64.b64decode(payload)
        items = [self._from_json_compatible(v) for v in payload]
        if marker == "__tuple__":
            return tuple(items)
        if marker == "__set__":
            return set(items)
        return frozenset(items)
