"""userOpHash (v0.7) and the estimation placeholder signature."""

from __future__ import annotations

from eth_abi import encode as abi_encode
from eth_utils import keccak

from core.base_types import Address

from .models import PackedUserOperation

_PLACEHOLDER_R = 1
_PLACEHOLDER_S = 1
_PLACEHOLDER_V = 27


def make_estimation_placeholder_signature() -> bytes:
    """
    65-byte r||s||v signature used only while estimating gas.

    ``r = s = 1`` is below the curve order and in the low-s half, and
    ``v = 27``, so ECDSA recovery in the account's validation code returns an
    address instead of reverting. It never verifies for any real owner.
    """
    return (
        _PLACEHOLDER_R.to_bytes(32, "big")
        + _PLACEHOLDER_S.to_bytes(32, "big")
        + bytes([_PLACEHOLDER_V])
    )


def user_op_hash(
    packed: PackedUserOperation, entry_point: Address | str, chain_id: int
) -> bytes:
    """EntryPoint v0.7 ``getUserOpHash``; the signature field is not covered."""
    inner = abi_encode(
        [
            "address",
            "uint256",
            "bytes32",
            "bytes32",
            "bytes32",
            "uint256",
            "bytes32",
            "bytes32",
        ],
        [
            packed.sender,
            packed.nonce,
            keccak(packed.init_code),
            keccak(packed.call_data),
            packed.account_gas_limits,
            packed.pre_verification_gas,
            packed.gas_fees,
            keccak(packed.paymaster_and_data),
        ],
    )
    return keccak(
        abi_encode(
            ["bytes32", "address", "uint256"],
            [keccak(inner), str(entry_point), chain_id],
        )
    )
