"""Reference-price quoting: expected output and slippage-bounded minimum."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from chain.client import ChainClient
from chain.contracts import ORACLE_DECIMALS, ORACLE_GET_PRICE
from chain.deployments import TradingPair
from core.base_types import Address, to_address, to_uint
from core.errors import UnsupportedPairError, ValidationError

logger = logging.getLogger(__name__)

BPS = 10_000
# Router's own spread, always added on top of the caller's slippage.
FIXED_SPREAD_BPS = 30


@dataclass(frozen=True)
class ReferencePrice:
    """Output-token wei per one whole unit of the input token."""

    price_wei: int
    decimals: int

    def __post_init__(self) -> None:
        if self.price_wei < 0:
            raise ValidationError("reference price must be non-negative")
        if not 0 <= self.decimals <= 255:
            raise ValidationError("decimals must be in [0, 255]")


class PriceSource(Protocol):
    def get_reference_price(self, token_in: Address, token_out: Address) -> ReferencePrice: ...


class OraclePriceSource:
    """Reads ``getPrice(tokenIn)`` and ``decimals(tokenIn)`` from the price oracle."""

    def __init__(self, client: ChainClient, oracle: Address):
        self._client = client
        self._oracle = oracle

    def get_reference_price(self, token_in: Address, token_out: Address) -> ReferencePrice:
        (price,) = self._client.call_function(self._oracle, ORACLE_GET_PRICE, token_in.checksum)
        (decimals,) = self._client.call_function(self._oracle, ORACLE_DECIMALS, token_in.checksum)
        logger.debug("oracle price %s -> %s: %s (decimals %s)", token_in, token_out, price, decimals)
        return ReferencePrice(price_wei=int(price), decimals=int(decimals))


@dataclass(frozen=True)
class PriceQuote:
    token_in: Address
    token_out: Address
    amount_in: int
    amount_out: int
    min_out: int
    slippage_bps: int


def validate_slippage_bps(slippage_bps: object) -> int:
    if isinstance(slippage_bps, bool) or not isinstance(slippage_bps, int):
        raise ValidationError("Invalid slippageBps")
    if slippage_bps < 0 or slippage_bps > BPS:
        raise ValidationError("Invalid slippageBps")
    return slippage_bps


def compute_expected_out(amount_in: int, price: ReferencePrice) -> int:
    return amount_in * price.price_wei // 10**price.decimals


def compute_min_out(expected_out: int, slippage_bps: int, spread_bps: int = FIXED_SPREAD_BPS) -> int:
    """Floor at zero when slippage plus spread exceeds 100%."""
    factor = max(0, BPS - (slippage_bps + spread_bps))
    return expected_out * factor // BPS


class PricingEngine:
    """
    Prices a swap against a reference price for a configured set of pairs.

    Guarantees ``0 <= min_out <= amount_out`` for every accepted input.
    """

    def __init__(
        self,
        price_source: PriceSource,
        supported_pairs: Iterable[TradingPair],
        spread_bps: int = FIXED_SPREAD_BPS,
    ):
        if spread_bps < 0 or spread_bps > BPS:
            raise ValidationError("spread_bps must be in [0, 10000]")
        self._price_source = price_source
        self._pairs = {(pair.token_in, pair.token_out) for pair in supported_pairs}
        self._spread_bps = spread_bps

    def is_supported(self, token_in: Address, token_out: Address) -> bool:
        return (token_in, token_out) in self._pairs

    def quote(
        self,
        token_in: Address | str,
        token_out: Address | str,
        amount_in: int | str,
        slippage_bps: int,
    ) -> PriceQuote:
        token_in = to_address(token_in, "tokenIn")
        token_out = to_address(token_out, "tokenOut")
        amount = to_uint(amount_in, "amountIn")
        slippage = validate_slippage_bps(slippage_bps)
        if not self.is_supported(token_in, token_out):
            raise UnsupportedPairError(f"Unsupported token pair {token_in} -> {token_out}")

        price = self._price_source.get_reference_price(token_in, token_out)
        expected_out = compute_expected_out(amount, price)
        min_out = compute_min_out(expected_out, slippage, self._spread_bps)
        return PriceQuote(
            token_in=token_in,
            token_out=token_out,
            amount_in=amount,
            amount_out=expected_out,
            min_out=min_out,
            slippage_bps=slippage,
        )
