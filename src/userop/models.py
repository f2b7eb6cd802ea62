"""ERC-4337 v0.7 user operation shapes (unpacked source form and packed wire form)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from core.base_types import bytes_to_hex, to_quantity


@dataclass(frozen=True)
class EIP7702Authorization:
    """Signed delegation tuple; ``v`` is 27 or 28."""

    chain_id: int
    address: str
    nonce: int
    v: int
    r: int
    s: int

    @property
    def y_parity(self) -> int:
        return self.v - 27

    def to_rpc(self) -> dict:
        return {
            "chainId": to_quantity(self.chain_id),
            "address": self.address,
            # zero nonce travels as empty bytes, the same way RLP encodes it
            "nonce": "0x" if self.nonce == 0 else to_quantity(self.nonce),
            "v": to_quantity(self.v),
            "r": "0x" + self.r.to_bytes(32, "big").hex(),
            "s": "0x" + self.s.to_bytes(32, "big").hex(),
        }


@dataclass
class UnpackedUserOperation:
    """
    Source form of a user operation.

    Required fields may be ``None`` while the operation is being assembled;
    packing refuses to proceed until every one of them is set.
    """

    sender: Optional[str] = None
    nonce: Optional[int] = None
    call_data: Optional[bytes] = None
    call_gas_limit: Optional[int] = None
    verification_gas_limit: Optional[int] = None
    pre_verification_gas: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    factory: Optional[str] = None
    factory_data: Optional[bytes] = None
    paymaster: Optional[str] = None
    paymaster_verification_gas_limit: Optional[int] = None
    paymaster_post_op_gas_limit: Optional[int] = None
    paymaster_data: Optional[bytes] = None
    signature: bytes = b""
    eip7702_auth: Optional[EIP7702Authorization] = None

    def to_rpc(self) -> dict:
        """JSON-RPC shape for eth_estimateUserOperationGas / eth_sendUserOperation."""
        payload: dict[str, object] = {
            "sender": self.sender,
            "nonce": _opt_quantity(self.nonce),
            "callData": _opt_hex(self.call_data),
            "callGasLimit": _opt_quantity(self.call_gas_limit),
            "verificationGasLimit": _opt_quantity(self.verification_gas_limit),
            "preVerificationGas": _opt_quantity(self.pre_verification_gas),
            "maxFeePerGas": _opt_quantity(self.max_fee_per_gas),
            "maxPriorityFeePerGas": _opt_quantity(self.max_priority_fee_per_gas),
            "signature": bytes_to_hex(self.signature),
        }
        if self.factory is not None:
            payload["factory"] = self.factory
            payload["factoryData"] = bytes_to_hex(self.factory_data or b"")
        if self.paymaster is not None:
            payload["paymaster"] = self.paymaster
            payload["paymasterVerificationGasLimit"] = to_quantity(
                self.paymaster_verification_gas_limit or 0
            )
            payload["paymasterPostOpGasLimit"] = to_quantity(
                self.paymaster_post_op_gas_limit or 0
            )
            payload["paymasterData"] = bytes_to_hex(self.paymaster_data or b"")
        if self.eip7702_auth is not None:
            payload["eip7702Auth"] = self.eip7702_auth.to_rpc()
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True)
class PackedUserOperation:
    """Wire form consumed by EntryPoint v0.7 (``PackedUserOperation`` struct)."""

    sender: str
    nonce: int
    init_code: bytes
    call_data: bytes
    account_gas_limits: bytes
    pre_verification_gas: int
    gas_fees: bytes
    paymaster_and_data: bytes
    signature: bytes = field(default=b"")

    def as_abi_tuple(self) -> tuple:
        return (
            self.sender,
            self.nonce,
            self.init_code,
            self.call_data,
            self.account_gas_limits,
            self.pre_verification_gas,
            self.gas_fees,
            self.paymaster_and_data,
            self.signature,
        )

    def to_rpc(self) -> dict:
        return {
            "sender": self.sender,
            "nonce": to_quantity(self.nonce),
            "initCode": bytes_to_hex(self.init_code),
            "callData": bytes_to_hex(self.call_data),
            "accountGasLimits": bytes_to_hex(self.account_gas_limits),
            "preVerificationGas": to_quantity(self.pre_verification_gas),
            "gasFees": bytes_to_hex(self.gas_fees),
            "paymasterAndData": bytes_to_hex(self.paymaster_and_data),
            "signature": bytes_to_hex(self.signature),
        }


def _opt_quantity(value: Optional[int]) -> Optional[str]:
    return None if value is None else to_quantity(value)


def _opt_hex(value: Optional[bytes]) -> Optional[str]:
    return None if value is None else bytes_to_hex(value)
