"""Bit-exact packing between the unpacked and packed v0.7 user operation forms."""

from __future__ import annotations

from typing import Optional

from eth_utils.address import is_address, to_checksum_address

from core.base_types import UINT128_MAX, UINT256_MAX, hex_to_bytes
from core.errors import EncodingError, MissingFieldError

from .models import PackedUserOperation, UnpackedUserOperation

# Checked in this order so the first missing field reported is deterministic.
REQUIRED_FIELDS = (
    "sender",
    "nonce",
    "call_data",
    "call_gas_limit",
    "verification_gas_limit",
    "pre_verification_gas",
    "max_fee_per_gas",
    "max_priority_fee_per_gas",
)

_ADDRESS_LEN = 20
_UINT128_LEN = 16
_PAYMASTER_STATIC_LEN = _ADDRESS_LEN + 2 * _UINT128_LEN
_MASK_48 = (1 << 48) - 1


def pack_uint128_pair(high: int, low: int) -> bytes:
    """Two uint128 values as one big-endian bytes32: high || low."""
    return _uint128(high, "high") + _uint128(low, "low")


def unpack_uint128_pair(packed: bytes) -> tuple[int, int]:
    if len(packed) != 2 * _UINT128_LEN:
        raise EncodingError(f"expected 32 bytes, got {len(packed)}")
    return (
        int.from_bytes(packed[:_UINT128_LEN], "big"),
        int.from_bytes(packed[_UINT128_LEN:], "big"),
    )


def pack(op: UnpackedUserOperation) -> PackedUserOperation:
    for name in REQUIRED_FIELDS:
        if getattr(op, name) is None:
            raise MissingFieldError(name)

    sender = _checksum(op.sender, "sender")
    call_data = hex_to_bytes(op.call_data, "call_data")
    if op.pre_verification_gas < 0 or op.pre_verification_gas > UINT256_MAX:
        raise EncodingError("pre_verification_gas out of uint256 range")
    if op.nonce < 0 or op.nonce > UINT256_MAX:
        raise EncodingError("nonce out of uint256 range")

    if op.factory is None:
        if op.factory_data:
            raise EncodingError("factory and factoryData must be provided together")
        init_code = b""
    else:
        init_code = _checksum_bytes(op.factory, "factory") + hex_to_bytes(
            op.factory_data or b"", "factory_data"
        )

    if _has_paymaster(op.paymaster):
        paymaster_and_data = (
            _checksum_bytes(op.paymaster, "paymaster")
            + _uint128(op.paymaster_verification_gas_limit or 0, "paymaster_verification_gas_limit")
            + _uint128(op.paymaster_post_op_gas_limit or 0, "paymaster_post_op_gas_limit")
            + hex_to_bytes(op.paymaster_data or b"", "paymaster_data")
        )
    else:
        if op.paymaster_data:
            raise EncodingError("paymasterData given without a paymaster")
        paymaster_and_data = b""

    return PackedUserOperation(
        sender=sender,
        nonce=op.nonce,
        init_code=init_code,
        call_data=call_data,
        account_gas_limits=pack_uint128_pair(op.verification_gas_limit, op.call_gas_limit),
        pre_verification_gas=op.pre_verification_gas,
        gas_fees=pack_uint128_pair(op.max_priority_fee_per_gas, op.max_fee_per_gas),
        paymaster_and_data=paymaster_and_data,
        signature=hex_to_bytes(op.signature, "signature"),
    )


def unpack(packed: PackedUserOperation) -> UnpackedUserOperation:
    verification_gas_limit, call_gas_limit = unpack_uint128_pair(packed.account_gas_limits)
    max_priority_fee_per_gas, max_fee_per_gas = unpack_uint128_pair(packed.gas_fees)

    factory: Optional[str] = None
    factory_data: Optional[bytes] = None
    if packed.init_code:
        if len(packed.init_code) < _ADDRESS_LEN:
            raise EncodingError("initCode shorter than a factory address")
        factory = to_checksum_address(packed.init_code[:_ADDRESS_LEN])
        factory_data = packed.init_code[_ADDRESS_LEN:]

    paymaster: Optional[str] = None
    pm_verification: Optional[int] = None
    pm_post_op: Optional[int] = None
    paymaster_data: Optional[bytes] = None
    data = packed.paymaster_and_data
    if data:
        if len(data) < _PAYMASTER_STATIC_LEN:
            raise EncodingError(
                f"paymasterAndData must be at least {_PAYMASTER_STATIC_LEN} bytes"
            )
        paymaster = to_checksum_address(data[:_ADDRESS_LEN])
        pm_verification = int.from_bytes(data[_ADDRESS_LEN:36], "big")
        pm_post_op = int.from_bytes(data[36:_PAYMASTER_STATIC_LEN], "big")
        paymaster_data = data[_PAYMASTER_STATIC_LEN:]

    return UnpackedUserOperation(
        sender=to_checksum_address(packed.sender),
        nonce=packed.nonce,
        call_data=packed.call_data,
        call_gas_limit=call_gas_limit,
        verification_gas_limit=verification_gas_limit,
        pre_verification_gas=packed.pre_verification_gas,
        max_fee_per_gas=max_fee_per_gas,
        max_priority_fee_per_gas=max_priority_fee_per_gas,
        factory=factory,
        factory_data=factory_data,
        paymaster=paymaster,
        paymaster_verification_gas_limit=pm_verification,
        paymaster_post_op_gas_limit=pm_post_op,
        paymaster_data=paymaster_data,
        signature=packed.signature,
    )


def parse_validation_data(validation_data: int) -> tuple[int, int]:
    """
    Split a validateUserOp/validatePaymasterUserOp return value.

    Layout: aggregator (160 bits) | validUntil (48) | validAfter (48).
    Returns (valid_after, valid_until); a zero validUntil means "no expiry"
    and is reported as the maximum 48-bit timestamp.
    """
    valid_until = (validation_data >> 160) & _MASK_48
    valid_after = (validation_data >> (160 + 48)) & _MASK_48
    return valid_after, valid_until or _MASK_48


def _uint128(value: int, field: str) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{field} must be an integer")
    if value < 0 or value > UINT128_MAX:
        raise EncodingError(f"{field} does not fit in uint128")
    return value.to_bytes(_UINT128_LEN, "big")


def _has_paymaster(paymaster: Optional[str]) -> bool:
    """A zero paymaster address means the operation is self-funded."""
    if paymaster is None:
        return False
    return _checksum_bytes(paymaster, "paymaster") != b"\x00" * _ADDRESS_LEN


def _checksum(value: str, field: str) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise EncodingError(f"Invalid address for {field}")
    return to_checksum_address(value)


def _checksum_bytes(value: str, field: str) -> bytes:
    return bytes.fromhex(_checksum(value, field)[2:])
