"""Canonical JSON for structured log events and wire payloads."""

from __future__ import annotations

import json
from typing import Any

from eth_utils.crypto import keccak

from .base_types import Address


def _to_json_value(obj: Any) -> Any:
    if isinstance(obj, float):
        raise ValueError("Floating point values are not allowed")

    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if not isinstance(key, str):
                raise TypeError("All dictionary keys must be strings")
            result[key] = _to_json_value(value)
        return result

    if isinstance(obj, (list, tuple)):
        return [_to_json_value(item) for item in obj]

    if isinstance(obj, (bytes, bytearray)):
        return f"0x{bytes(obj).hex()}"

    if isinstance(obj, Address):
        return obj.checksum

    if obj is None or isinstance(obj, (str, int, bool)):
        return obj

    raise TypeError(f"Unsupported type for serialization: {type(obj).__name__}")


class CanonicalSerializer:
    """
    Produces deterministic JSON.

    Rules:
    - Keys sorted alphabetically (recursive)
    - No whitespace
    - bytes rendered as 0x-hex, addresses checksummed
    - floats rejected (amounts are integers or decimal strings)
    """

    @staticmethod
    def to_json_value(obj: Any) -> Any:
        return _to_json_value(obj)

    @staticmethod
    def serialize(obj: Any) -> bytes:
        """Returns canonical bytes representation."""
        payload = json.dumps(
            _to_json_value(obj),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )
        return payload.encode("utf-8")

    @staticmethod
    def dumps(obj: Any) -> str:
        return CanonicalSerializer.serialize(obj).decode("utf-8")

    @staticmethod
    def hash(obj: Any) -> bytes:
        """Returns keccak256 of canonical serialization."""
        return keccak(CanonicalSerializer.serialize(obj))
