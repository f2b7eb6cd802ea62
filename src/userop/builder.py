"""Fluent assembly of sponsored user operations from a quote."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from core.base_types import Address, hex_to_bytes
from core.errors import MissingFieldError, ValidationError
from pricing.fees import (
    DEFAULT_FEE_MARGIN_BPS,
    PAYMASTER_POST_OP_GAS_LIMIT,
    PAYMASTER_VERIFICATION_GAS_LIMIT,
    GasEstimate,
    SponsorPolicy,
    fee_for_gas,
)
from quotes.models import QuoteRecord

from .calldata import build_execute_batch_call_data
from .models import EIP7702Authorization, PackedUserOperation, UnpackedUserOperation
from .packing import REQUIRED_FIELDS, pack
from .signatures import make_estimation_placeholder_signature


@dataclass(frozen=True)
class OperationContext:
    """Per-attempt chain state the operation is built against."""

    sender: Address
    nonce: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    paymaster: Address
    paymaster_verification_gas_limit: int = PAYMASTER_VERIFICATION_GAS_LIMIT
    paymaster_post_op_gas_limit: int = PAYMASTER_POST_OP_GAS_LIMIT
    factory: Optional[Address] = None
    factory_data: bytes = b""

    def __post_init__(self) -> None:
        if self.max_priority_fee_per_gas > self.max_fee_per_gas:
            raise ValidationError("maxPriorityFeePerGas exceeds maxFeePerGas")


class UserOperationBuilder:
    """
    Fluent builder for v0.7 user operations.

    Usage:
        op = (UserOperationBuilder()
            .sender(account)
            .nonce(nonce)
            .call_data(calldata)
            .gas(estimate)
            .fees(max_fee, priority_fee)
            .paymaster(paymaster)
            .placeholder_signature()
            .build())
    """

    def __init__(self) -> None:
        self._op = UnpackedUserOperation()

    def sender(self, address: Address) -> "UserOperationBuilder":
        self._op.sender = address.checksum
        return self

    def nonce(self, nonce: int) -> "UserOperationBuilder":
        if nonce < 0:
            raise ValidationError("nonce must be non-negative")
        self._op.nonce = nonce
        return self

    def call_data(self, calldata: bytes | str) -> "UserOperationBuilder":
        self._op.call_data = hex_to_bytes(calldata, "callData")
        return self

    def gas(self, estimate: GasEstimate) -> "UserOperationBuilder":
        self._op.call_gas_limit = estimate.call_gas_limit
        self._op.verification_gas_limit = estimate.verification_gas_limit
        self._op.pre_verification_gas = estimate.pre_verification_gas
        return self

    def fees(self, max_fee_per_gas: int, max_priority_fee_per_gas: int) -> "UserOperationBuilder":
        self._op.max_fee_per_gas = max_fee_per_gas
        self._op.max_priority_fee_per_gas = max_priority_fee_per_gas
        return self

    def factory(self, factory: Optional[Address], factory_data: bytes = b"") -> "UserOperationBuilder":
        """Account deployment payload; ``None`` for an already deployed account."""
        if factory is None:
            self._op.factory = None
            self._op.factory_data = None
        else:
            self._op.factory = factory.checksum
            self._op.factory_data = factory_data
        return self

    def paymaster(
        self,
        paymaster: Address,
        verification_gas_limit: int = PAYMASTER_VERIFICATION_GAS_LIMIT,
        post_op_gas_limit: int = PAYMASTER_POST_OP_GAS_LIMIT,
        data: bytes = b"",
    ) -> "UserOperationBuilder":
        self._op.paymaster = paymaster.checksum
        self._op.paymaster_verification_gas_limit = verification_gas_limit
        self._op.paymaster_post_op_gas_limit = post_op_gas_limit
        self._op.paymaster_data = data
        return self

    def signature(self, signature: bytes) -> "UserOperationBuilder":
        self._op.signature = signature
        return self

    def placeholder_signature(self) -> "UserOperationBuilder":
        return self.signature(make_estimation_placeholder_signature())

    def authorization(self, auth: Optional[EIP7702Authorization]) -> "UserOperationBuilder":
        self._op.eip7702_auth = auth
        return self

    def build(self) -> UnpackedUserOperation:
        """Validate and return a copy of the assembled operation."""
        for name in REQUIRED_FIELDS:
            if getattr(self._op, name) is None:
                raise MissingFieldError(name, context="build")
        return replace(self._op)

    def build_packed(self) -> PackedUserOperation:
        return pack(self.build())


def build_sponsored_operation(
    quote: QuoteRecord,
    fee_amount: int,
    gas: GasEstimate,
    context: OperationContext,
) -> UnpackedUserOperation:
    """Placeholder-signed operation paying ``fee_amount`` of tokenOut to the paymaster."""
    if context.sender != quote.sender:
        raise ValidationError(
            f"operation sender {context.sender} does not match quote sender {quote.sender}"
        )
    calldata = build_execute_batch_call_data(
        token_in=quote.token_in,
        token_out=quote.token_out,
        router=quote.route.router,
        paymaster=context.paymaster,
        amount_in=quote.amount_in,
        fee_amount=fee_amount,
        router_calldata=quote.route.calldata,
    )
    return (
        UserOperationBuilder()
        .sender(context.sender)
        .nonce(context.nonce)
        .factory(context.factory, context.factory_data)
        .call_data(calldata)
        .gas(gas)
        .fees(context.max_fee_per_gas, context.max_priority_fee_per_gas)
        .paymaster(
            context.paymaster,
            context.paymaster_verification_gas_limit,
            context.paymaster_post_op_gas_limit,
        )
        .placeholder_signature()
        .build()
    )


def build_unsigned_operation(
    quote: QuoteRecord,
    policy: SponsorPolicy,
    gas_guess: GasEstimate,
    context: OperationContext,
    fee_margin_bps: int = DEFAULT_FEE_MARGIN_BPS,
) -> UnpackedUserOperation:
    """
    Sponsored operation whose fee covers ``policy.required_fee`` for ``gas_guess``.

    The signature is the estimation placeholder; the operation is meant for
    ``eth_estimateUserOperationGas`` and must be re-signed before submission.
    """
    fee_amount = fee_for_gas(
        gas_guess,
        context.max_fee_per_gas,
        policy,
        fee_margin_bps,
        context.paymaster_verification_gas_limit,
        context.paymaster_post_op_gas_limit,
    )
    return build_sponsored_operation(quote, fee_amount, gas_guess, context)
