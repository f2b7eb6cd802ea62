"""Sponsor (paymaster) fee policy and gas-dependent fee computation."""

from __future__ import annotations

from dataclasses import dataclass

from core.base_types import to_uint
from core.errors import ValidationError

BPS = 10_000
DEFAULT_FEE_MARGIN_BPS = 100
PAYMASTER_VERIFICATION_GAS_LIMIT = 200_000
PAYMASTER_POST_OP_GAS_LIMIT = 200_000


@dataclass(frozen=True)
class SponsorPolicy:
    """Paymaster fee policy: ``requiredFee = maxCost * (1 + buffer) + markup``."""

    gas_buffer_bps: int
    fixed_markup_wei: int

    def __post_init__(self) -> None:
        if self.gas_buffer_bps < 0:
            raise ValidationError("gas_buffer_bps must be non-negative")
        if self.fixed_markup_wei < 0:
            raise ValidationError("fixed_markup_wei must be non-negative")

    def required_fee(self, max_cost: int) -> int:
        if max_cost < 0:
            raise ValidationError("max_cost must be non-negative")
        return max_cost * (BPS + self.gas_buffer_bps) // BPS + self.fixed_markup_wei


@dataclass(frozen=True)
class GasEstimate:
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int

    @property
    def total(self) -> int:
        return self.call_gas_limit + self.verification_gas_limit + self.pre_verification_gas

    @classmethod
    def from_rpc(cls, raw: object) -> "GasEstimate":
        """Parse an ``eth_estimateUserOperationGas`` result."""
        if not isinstance(raw, dict):
            raise ValidationError("gas estimate must be an object")
        return cls(
            call_gas_limit=to_uint(raw.get("callGasLimit"), "callGasLimit"),
            verification_gas_limit=to_uint(
                raw.get("verificationGasLimit"), "verificationGasLimit"
            ),
            pre_verification_gas=to_uint(raw.get("preVerificationGas"), "preVerificationGas"),
        )


# Used for the first estimation call: the paymaster already checks the fee there.
CONSERVATIVE_GAS_GUESS = GasEstimate(
    call_gas_limit=1_500_000,
    verification_gas_limit=600_000,
    pre_verification_gas=120_000,
)


def max_gas_cost(
    gas: GasEstimate,
    max_fee_per_gas: int,
    paymaster_verification_gas_limit: int = PAYMASTER_VERIFICATION_GAS_LIMIT,
    paymaster_post_op_gas_limit: int = PAYMASTER_POST_OP_GAS_LIMIT,
) -> int:
    """Worst-case wei the paymaster may be charged for the operation."""
    total_gas = gas.total + paymaster_verification_gas_limit + paymaster_post_op_gas_limit
    return total_gas * max_fee_per_gas


def fee_for_gas(
    gas: GasEstimate,
    max_fee_per_gas: int,
    policy: SponsorPolicy,
    margin_bps: int = DEFAULT_FEE_MARGIN_BPS,
    paymaster_verification_gas_limit: int = PAYMASTER_VERIFICATION_GAS_LIMIT,
    paymaster_post_op_gas_limit: int = PAYMASTER_POST_OP_GAS_LIMIT,
) -> int:
    """Fee in output-token wei; never below ``policy.required_fee(maxCost)``."""
    if margin_bps < 0:
        raise ValidationError("margin_bps must be non-negative")
    max_cost = max_gas_cost(
        gas,
        max_fee_per_gas,
        paymaster_verification_gas_limit,
        paymaster_post_op_gas_limit,
    )
    return policy.required_fee(max_cost) * (BPS + margin_bps) // BPS
