"""
Relay selection for a single-signature swap.

The operation is signed once, so its fees have to satisfy every relay it
may later be resubmitted to. Fee floors are therefore taken across the
healthy relays up front, and ranking decides the resubmission order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Optional

from chain.client import GasPrice
from core.errors import ValidationError

logger = logging.getLogger(__name__)

WEI_PER_GWEI = Decimal(10**9)


class RelayStatus(Enum):
    UP = "UP"
    DOWN = "DOWN"
    STOPPED = "STOPPED"


def gwei_to_wei(value: Decimal | int | str) -> int:
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid gwei amount: {value!r}") from exc
    if amount < 0:
        raise ValidationError("gwei amount must be non-negative")
    return int(amount * WEI_PER_GWEI)


@dataclass(frozen=True)
class RelayPolicy:
    """Admission floors a relay advertises, in gwei."""

    min_priority_fee_gwei: Decimal = Decimal(0)
    min_max_fee_gwei: Decimal = Decimal(0)

    @property
    def min_priority_fee_wei(self) -> int:
        return gwei_to_wei(self.min_priority_fee_gwei)

    @property
    def min_max_fee_wei(self) -> int:
        return gwei_to_wei(self.min_max_fee_gwei)


@dataclass
class RelayEndpoint:
    """
    A relay the orchestrator can estimate with and submit to.

    ``client`` is anything with ``estimate_user_operation_gas``,
    ``send_user_operation`` and ``get_user_operation_receipt``
    (normally a :class:`chain.bundler.BundlerClient`).
    """

    id: str
    client: Any
    name: str = ""
    status: RelayStatus = RelayStatus.UP
    policy: RelayPolicy = field(default_factory=RelayPolicy)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.id

    @property
    def is_up(self) -> bool:
        return self.status == RelayStatus.UP


def rank_relays(
    relays: Iterable[RelayEndpoint], preferred_id: Optional[str] = None
) -> list[RelayEndpoint]:
    """Preferred relay first, then UP relays, then the rest (stable otherwise)."""
    relays = list(relays)
    preferred = [r for r in relays if preferred_id is not None and r.id == preferred_id]
    rest = [r for r in relays if not (preferred_id is not None and r.id == preferred_id)]
    rest.sort(key=lambda r: 0 if r.is_up else 1)
    return preferred[:1] + rest


def fee_floors(relays: Iterable[RelayEndpoint]) -> tuple[int, int]:
    """
    (min priority fee, min max fee) in wei acceptable to every target relay.

    Only UP relays count, unless none is UP, in which case all of them do.
    """
    relays = list(relays)
    considered = [r for r in relays if r.is_up] or relays
    min_priority = max([0, *(r.policy.min_priority_fee_wei for r in considered)])
    min_max = max([0, *(r.policy.min_max_fee_wei for r in considered)])
    return min_priority, min_max


def network_fees(
    gas_price: GasPrice,
    relays: Iterable[RelayEndpoint],
    base_fee_buffer_bps: int = 10_000,
) -> tuple[int, int]:
    """(maxFeePerGas, maxPriorityFeePerGas) with relay floors applied."""
    min_priority, min_max = fee_floors(relays)
    priority = max(gas_price.priority_fee, min_priority)
    max_fee = max(gas_price.get_max_fee(base_fee_buffer_bps), min_max)
    if priority > max_fee:
        logger.info("raising maxFeePerGas to priority floor %s", priority)
        max_fee = priority
    return max_fee, priority
