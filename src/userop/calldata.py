"""Account call data: the approve → swap → fee-transfer batch and factory init data."""

from __future__ import annotations

from typing import Optional

from chain.contracts import (
    ACCOUNT_EXECUTE_BATCH,
    ERC20_APPROVE,
    ERC20_TRANSFER,
    FACTORY_CREATE_ACCOUNT,
)
from core.base_types import Address, hex_to_bytes, to_address
from core.errors import MissingFieldError, ValidationError


def build_execute_batch_call_data(
    token_in: Optional[Address | str],
    token_out: Optional[Address | str],
    router: Optional[Address | str],
    paymaster: Optional[Address | str],
    amount_in: int,
    fee_amount: int,
    router_calldata: bytes | str,
) -> bytes:
    """
    Encode ``executeBatch`` with three calls, in order:

    1. ``tokenIn.approve(router, amountIn)``
    2. ``router`` with the quoted swap call data
    3. ``tokenOut.transfer(paymaster, feeAmount)``
    """
    addresses = {}
    for name, value in (
        ("tokenIn", token_in),
        ("tokenOut", token_out),
        ("router", router),
        ("paymaster", paymaster),
    ):
        if value is None or value == "":
            raise MissingFieldError(name, context="buildExecuteBatchCallData")
        addresses[name] = to_address(value, name)

    swap_calldata = hex_to_bytes(router_calldata, "routerCalldata")
    targets = [
        addresses["tokenIn"].checksum,
        addresses["router"].checksum,
        addresses["tokenOut"].checksum,
    ]
    datas = [
        ERC20_APPROVE.encode(addresses["router"].checksum, amount_in),
        swap_calldata,
        ERC20_TRANSFER.encode(addresses["paymaster"].checksum, fee_amount),
    ]
    return ACCOUNT_EXECUTE_BATCH.encode(targets, [0, 0, 0], datas)


def build_factory_data(owner: Address | str, salt: int = 0) -> bytes:
    if salt < 0:
        raise ValidationError("salt must be non-negative")
    return FACTORY_CREATE_ACCOUNT.encode(to_address(owner, "owner").checksum, salt)
