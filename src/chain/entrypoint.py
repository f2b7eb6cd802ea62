"""EntryPoint, paymaster and account state reads; on-chain inclusion lookup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from eth_abi import decode as abi_decode

from core.base_types import Address, hex_to_bytes
from pricing.fees import SponsorPolicy

from .client import ChainClient, GasPrice
from .contracts import (
    ENTRYPOINT_GET_NONCE,
    PAYMASTER_FIXED_MARKUP_WEI,
    PAYMASTER_GAS_BUFFER_BPS,
    USER_OPERATION_EVENT,
)
from .deployments import Deployments

logger = logging.getLogger(__name__)

# How far back inclusion lookups start, relative to the submission block.
LOG_LOOKBACK_BLOCKS = 25


@dataclass(frozen=True)
class InclusionResult:
    user_op_hash: bytes
    success: bool
    transaction_hash: str
    block_number: int
    actual_gas_cost: int = 0
    actual_gas_used: int = 0


class EntryPointReader:
    def __init__(self, client: ChainClient, deployments: Deployments):
        self.client = client
        self.deployments = deployments

    @property
    def entry_point(self) -> Address:
        return self.deployments.entry_point

    def get_nonce(self, sender: Address, key: int = 0) -> int:
        (nonce,) = self.client.call_function(
            self.entry_point, ENTRYPOINT_GET_NONCE, sender.checksum, key
        )
        return int(nonce)

    def needs_deployment(self, sender: Address) -> bool:
        return self.client.get_code(sender) == b""

    def get_gas_price(self) -> GasPrice:
        return self.client.get_gas_price()

    def sponsor_policy(self) -> SponsorPolicy:
        paymaster = self.deployments.paymaster
        (buffer_bps,) = self.client.call_function(paymaster, PAYMASTER_GAS_BUFFER_BPS)
        (markup,) = self.client.call_function(paymaster, PAYMASTER_FIXED_MARKUP_WEI)
        return SponsorPolicy(gas_buffer_bps=int(buffer_bps), fixed_markup_wei=int(markup))

    def inclusion_start_block(self) -> int:
        return max(0, self.client.get_block_number() - LOG_LOOKBACK_BLOCKS)

    def find_user_operation_event(
        self, user_op_hash: bytes, from_block: int
    ) -> Optional[InclusionResult]:
        logs = self.client.get_logs(
            self.entry_point,
            [USER_OPERATION_EVENT.topic, user_op_hash],
            from_block,
        )
        if not logs:
            return None
        hit = logs[0]
        # non-indexed: nonce, success, actualGasCost, actualGasUsed
        _nonce, success, gas_cost, gas_used = abi_decode(
            ["uint256", "bool", "uint256", "uint256"], hit.data
        )
        logger.info(
            "UserOperationEvent %s in tx %s success=%s",
            "0x" + user_op_hash.hex(),
            hit.transaction_hash,
            success,
        )
        return InclusionResult(
            user_op_hash=user_op_hash,
            success=bool(success),
            transaction_hash=hit.transaction_hash,
            block_number=hit.block_number,
            actual_gas_cost=int(gas_cost),
            actual_gas_used=int(gas_used),
        )


def inclusion_from_receipt(receipt: dict) -> InclusionResult:
    """Build an InclusionResult from ``eth_getUserOperationReceipt``."""
    tx = receipt.get("receipt") or {}
    return InclusionResult(
        user_op_hash=hex_to_bytes(receipt.get("userOpHash", "0x"), "userOpHash"),
        success=bool(receipt.get("success")),
        transaction_hash=str(tx.get("transactionHash", "")),
        block_number=int(str(tx.get("blockNumber", "0x0")), 16),
        actual_gas_cost=int(str(receipt.get("actualGasCost", "0x0")), 16),
        actual_gas_used=int(str(receipt.get("actualGasUsed", "0x0")), 16),
    )
