from .engine import ExecutorConfig, SwapAttempt, SwapExecutor, SwapIntent, SwapState
from .failover import (
    RelayEndpoint,
    RelayPolicy,
    RelayStatus,
    fee_floors,
    network_fees,
    rank_relays,
)

__all__ = [
    "SwapExecutor",
    "ExecutorConfig",
    "SwapAttempt",
    "SwapIntent",
    "SwapState",
    "RelayEndpoint",
    "RelayPolicy",
    "RelayStatus",
    "fee_floors",
    "network_fees",
    "rank_relays",
]
