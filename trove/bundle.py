"""Export bundle format.

A bundle is a JSON document holding one collection's raw rows::

    {
      "name": "scores",
      "exportDate": 1718000000000,
      "version": "0.1.0",
      "keys": [{"key": "alice", "value": "10"}, ...]
    }

Values are the encoded text exactly as stored, so a bundle round-trips
without decoding anything.
"""

import json
import time
from typing import Any, Iterable, List, Optional, Tuple

from .exceptions import BundleError


def dump_bundle(name: str, version: str, rows: Iterable[Tuple[str, str]]) -> str:
    """Serialize rows to a bundle string."""
    return json.dumps(
        {
            "name": name,
            "exportDate": int(time.time() * 1000),
            "version": version,
            "keys": [{"key": key, "value": raw} for key, raw in rows],
        }
    )


def load_bundle(data: Any, name: Optional[str] = None) -> List[Tuple[str, str]]:
    """Parse a bundle and return its (key, raw) rows.

    Args:
        data: Bundle as a JSON string (or an already-parsed dict)
        name: If given, the bundle must belong to this collection

    Raises:
        BundleError: If the data is not valid JSON, is null, belongs to
            another collection, or has malformed entries
    """
    if isinstance(data, (str, bytes, bytearray)):
        try:
            parsed = json.loads(data)
        except ValueError as e:
            raise BundleError("Data provided is not valid JSON") from e
    else:
        parsed = data

    if parsed is None:
        raise BundleError(f'No data provided for import in "{name}"')
    if not isinstance(parsed, dict) or not isinstance(parsed.get("keys"), list):
        raise BundleError("Bundle must be an object with a list of keys")
    if name is not None and parsed.get("name") != name:
        raise BundleError(
            f'Bundle was exported from "{parsed.get("name")}", not "{name}"'
        )

    rows = []
    for entry in parsed["keys"]:
        if not isinstance(entry, dict) or "key" not in entry or "value" not in entry:
            raise BundleError(f"Malformed bundle entry: {entry!r}")
        if not isinstance(entry["value"], str):
            raise BundleError(f'Value for "{entry["key"]}" must be encoded text')
        rows.append((entry["key"], entry["value"]))
    return rows
