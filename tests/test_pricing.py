import pytest

from chain.contracts import ORACLE_DECIMALS, ORACLE_GET_PRICE
from chain.deployments import TradingPair
from core.base_types import Address
from core.errors import UnsupportedPairError, ValidationError
from pricing.pricing_engine import (
    OraclePriceSource,
    PricingEngine,
    ReferencePrice,
    compute_expected_out,
    compute_min_out,
)

USDC = Address("0x" + "11" * 20)
BNB = Address("0x" + "22" * 20)
TOKEN_OUT = Address("0x" + "33" * 20)


class FixedPriceSource:
    def __init__(self, prices):
        self.prices = prices
        self.calls = []

    def get_reference_price(self, token_in, token_out):
        self.calls.append((token_in, token_out))
        return self.prices[token_in]


def _engine(prices=None):
    prices = prices or {
        USDC: ReferencePrice(price_wei=10**15, decimals=6),
        BNB: ReferencePrice(price_wei=3 * 10**17, decimals=18),
    }
    pairs = [TradingPair(USDC, TOKEN_OUT, "USDC"), TradingPair(BNB, TOKEN_OUT, "BNB")]
    return PricingEngine(FixedPriceSource(prices), pairs)


def test_one_usdc_at_1e15_with_50_bps():
    quote = _engine().quote(USDC, TOKEN_OUT, 1_000_000, 50)
    assert quote.amount_out == 10**15
    assert quote.min_out == 992_000_000_000_000


def test_accepts_string_addresses_and_amounts():
    quote = _engine().quote(USDC.lower, TOKEN_OUT.checksum, "2000000", 0)
    assert quote.amount_out == 2 * 10**15
    assert quote.min_out == 2 * 10**15 * 9_970 // 10_000


def test_unsupported_pair():
    engine = _engine()
    with pytest.raises(UnsupportedPairError):
        engine.quote(TOKEN_OUT, USDC, 1_000_000, 50)
    with pytest.raises(UnsupportedPairError):
        engine.quote(USDC, BNB, 1_000_000, 50)


def test_price_source_not_called_for_unsupported_pair():
    engine = _engine()
    with pytest.raises(UnsupportedPairError):
        engine.quote(USDC, BNB, 1, 50)
    assert engine._price_source.calls == []


@pytest.mark.parametrize("slippage", [-1, 10_001, 1.5, True])
def test_slippage_out_of_range(slippage):
    with pytest.raises(ValidationError, match="slippageBps"):
        _engine().quote(USDC, TOKEN_OUT, 1_000_000, slippage)


def test_malformed_amount_rejected():
    with pytest.raises(ValidationError):
        _engine().quote(USDC, TOKEN_OUT, "1.5", 50)


def test_expected_out_truncates():
    price = ReferencePrice(price_wei=3, decimals=1)
    assert compute_expected_out(7, price) == 2


def test_min_out_clamped_at_zero_when_slippage_and_spread_exceed_100_percent():
    assert compute_min_out(10**18, 10_000) == 0
    assert compute_min_out(10**18, 9_970) == 0
    assert compute_min_out(10**18, 9_969) == 10**14


@pytest.mark.parametrize("amount_in", [1, 999, 10**6, 123_456_789, 10**30])
@pytest.mark.parametrize("slippage", [0, 1, 50, 5_000, 9_999, 10_000])
def test_min_out_never_exceeds_amount_out(amount_in, slippage):
    quote = _engine().quote(BNB, TOKEN_OUT, amount_in, slippage)
    assert 0 <= quote.min_out <= quote.amount_out


def test_reference_price_validation():
    with pytest.raises(ValidationError):
        ReferencePrice(price_wei=-1, decimals=6)
    with pytest.raises(ValidationError):
        ReferencePrice(price_wei=1, decimals=256)


class _OracleClient:
    def __init__(self):
        self.calls = []

    def call_function(self, to, function, *args):
        self.calls.append((to, function, args))
        return {"getPrice": (2 * 10**15,), "decimals": (6,)}[function.name]


def test_oracle_price_source_reads_price_and_decimals():
    oracle = Address("0x" + "88" * 20)
    client = _OracleClient()
    price = OraclePriceSource(client, oracle).get_reference_price(USDC, TOKEN_OUT)

    assert price == ReferencePrice(price_wei=2 * 10**15, decimals=6)
    assert [c[1] for c in client.calls] == [ORACLE_GET_PRICE, ORACLE_DECIMALS]
    assert all(c[0] == oracle and c[2] == (USDC.checksum,) for c in client.calls)
