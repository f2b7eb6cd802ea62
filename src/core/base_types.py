"""Core type definitions and value parsing shared by every module."""

from __future__ import annotations

from dataclasses import dataclass

from eth_utils.address import is_address, to_checksum_address

from .errors import EncodingError, ValidationError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
UINT128_MAX = 2**128 - 1
UINT256_MAX = 2**256 - 1


@dataclass(frozen=True)
class Address:
    """Ethereum address with validation and checksumming."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise ValidationError("Address value must be a string")
        if not is_address(self.value):
            raise ValidationError(f"Invalid Ethereum address: {self.value!r}")
        object.__setattr__(self, "value", to_checksum_address(self.value))

    @classmethod
    def from_string(cls, s: str) -> "Address":
        return cls(s)

    @property
    def checksum(self) -> str:
        return self.value

    @property
    def lower(self) -> str:
        return self.value.lower()

    @property
    def raw(self) -> bytes:
        return bytes.fromhex(self.value[2:])

    @property
    def is_zero(self) -> bool:
        return self.lower == ZERO_ADDRESS

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Address):
            return self.lower == other.lower
        if isinstance(other, str):
            return self.lower == other.lower()
        return False

    def __hash__(self) -> int:
        return hash(self.lower)

    def __str__(self) -> str:
        return self.value


def to_address(value: "Address | str | None", field: str) -> Address:
    """Coerce a string or Address, naming the offending field on failure."""
    if isinstance(value, Address):
        return value
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    try:
        return Address(value)
    except ValidationError as exc:
        raise ValidationError(f"Invalid address for {field}") from exc


def to_uint(value: object, field: str, max_value: int = UINT256_MAX) -> int:
    """
    Parse an unsigned integer from an int, a decimal string or a 0x-hex string.

    Floats and bools are rejected: on-chain quantities never go through
    binary floating point.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not {type(value).__name__}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith("0x"):
                parsed = int(text, 16) if len(text) > 2 else 0
            else:
                if not text.isdigit():
                    raise ValueError(text)
                parsed = int(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid integer for {field}: {value!r}") from exc
    else:
        raise ValidationError(f"{field} must be an integer")
    if parsed < 0:
        raise ValidationError(f"{field} must be non-negative")
    if parsed > max_value:
        raise ValidationError(f"{field} exceeds {max_value.bit_length()} bits")
    return parsed


def hex_to_bytes(value: "str | bytes | bytearray", field: str) -> bytes:
    """Decode 0x-prefixed hex (or pass bytes through)."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str) or not value.startswith("0x"):
        raise EncodingError(f"Invalid hex value for {field}")
    body = value[2:]
    if len(body) % 2:
        raise EncodingError(f"Odd-length hex value for {field}")
    try:
        return bytes.fromhex(body)
    except ValueError as exc:
        raise EncodingError(f"Invalid hex value for {field}") from exc


def bytes_to_hex(data: bytes) -> str:
    return f"0x{data.hex()}"


def to_quantity(value: int) -> str:
    """JSON-RPC quantity encoding (no leading zeros)."""
    return hex(value)

