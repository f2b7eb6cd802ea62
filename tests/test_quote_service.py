import json
import logging

import pytest

from chain.deployments import TradingPair
from core.base_types import Address
from core.errors import ExpiredError, UnsupportedPairError, ValidationError
from pricing.pricing_engine import PricingEngine, ReferencePrice
from pricing.route import RouteEncoder
from quotes.service import QuoteService, QuoteServiceConfig
from quotes.store import InMemoryQuoteStore

USDC = Address("0x" + "11" * 20)
BNB = Address("0x" + "22" * 20)
TOKEN_OUT = Address("0x" + "33" * 20)
ROUTER = Address("0x" + "44" * 20)
SENDER = Address("0x" + "66" * 20)


class ManualClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FixedPriceSource:
    def get_reference_price(self, token_in, token_out):
        return ReferencePrice(price_wei=10**15, decimals=6)


def _service(clock, ttl=60, spread_bps=30):
    pairs = [TradingPair(USDC, TOKEN_OUT), TradingPair(BNB, TOKEN_OUT)]
    return QuoteService(
        chain_id=31337,
        pricing=PricingEngine(FixedPriceSource(), pairs, spread_bps=spread_bps),
        route_encoder=RouteEncoder(ROUTER),
        store=InMemoryQuoteStore(clock=clock),
        config=QuoteServiceConfig(quote_ttl_sec=ttl),
        clock=clock,
    )


def test_create_quote_embeds_expiry_as_router_deadline():
    clock = ManualClock(1_700_000_000.4)
    quote = _service(clock).create_quote(USDC, TOKEN_OUT, "1000000", SENDER, slippage_bps=50)

    assert quote.created_at == 1_700_000_000
    assert quote.expires_at == quote.deadline == 1_700_000_061
    assert quote.amount_out == 10**15
    assert quote.min_out == 992_000_000_000_000
    assert quote.route.router == ROUTER

    call = RouteEncoder.decode_swap(quote.route.calldata)
    assert call.deadline == quote.expires_at
    assert call.recipient == SENDER
    assert call.min_out == quote.min_out


def test_default_slippage_is_50_bps():
    quote = _service(ManualClock()).create_quote(USDC, TOKEN_OUT, 1_000_000, SENDER)
    assert quote.min_out == 992_000_000_000_000


def test_get_quote_lifecycle_with_one_second_ttl():
    clock = ManualClock(1_700_000_000.0)
    service = _service(clock, ttl=1)
    quote = service.create_quote(USDC, TOKEN_OUT, 1_000_000, SENDER)

    assert service.get_quote(quote.quote_id) == quote
    clock.advance(1)
    with pytest.raises(ExpiredError):
        service.get_quote(quote.quote_id)


def test_fractional_creation_time_still_gets_full_ttl():
    clock = ManualClock(1_700_000_000.9995)
    service = _service(clock, ttl=1)
    quote = service.create_quote(USDC, TOKEN_OUT, 1_000_000, SENDER)

    assert quote.expires_at == 1_700_000_002
    clock.advance(0.001)
    assert service.get_quote(quote.quote_id) == quote
    clock.advance(1)
    with pytest.raises(ExpiredError):
        service.get_quote(quote.quote_id)


def test_spread_comes_from_pricing_engine():
    quote = _service(ManualClock(), spread_bps=0).create_quote(USDC, TOKEN_OUT, 1_000_000, SENDER)
    assert quote.min_out == 995_000_000_000_000
    assert not hasattr(QuoteServiceConfig(), "spread_bps")


def test_invalid_inputs():
    service = _service(ManualClock())
    with pytest.raises(ValidationError, match="sender"):
        service.create_quote(USDC, TOKEN_OUT, 1, "0xbad")
    with pytest.raises(UnsupportedPairError):
        service.create_quote(TOKEN_OUT, USDC, 1, SENDER)
    with pytest.raises(ValidationError):
        service.create_quote(USDC, TOKEN_OUT, 1, SENDER, slippage_bps=10_001)


def test_quote_created_event_is_canonical_json(caplog):
    service = _service(ManualClock())
    with caplog.at_level(logging.INFO, logger="quotes.service"):
        quote = service.create_quote(USDC, TOKEN_OUT, 1_000_000, SENDER, request_id="req-1")

    records = [r for r in caplog.records if r.name == "quotes.service"]
    events = [json.loads(r.getMessage()) for r in records]
    assert len(events) == 1
    event = events[0]
    assert event["msg"] == "quote created"
    assert event["service"] == "quote_service"
    assert event["quoteId"] == quote.quote_id
    assert event["requestId"] == "req-1"
    assert event["sender"] == SENDER.checksum
    assert event["meta"]["minOut"] == "992000000000000"
    assert event["meta"]["deadline"] == quote.deadline
    assert records[0].getMessage() == json.dumps(event, sort_keys=True, separators=(",", ":"))


def test_to_dict_wire_shape():
    quote = _service(ManualClock()).create_quote(USDC, TOKEN_OUT, 1_000_000, SENDER)
    wire = quote.to_dict()
    assert wire["amountIn"] == "1000000"
    assert wire["deadline"] == wire["expiresAt"]
    assert wire["route"]["calldata"].startswith("0x")


def test_fingerprint_changes_with_any_field():
    service = _service(ManualClock())
    a = service.create_quote(USDC, TOKEN_OUT, 1_000_000, SENDER)
    b = service.create_quote(USDC, TOKEN_OUT, 1_000_001, SENDER)
    assert a.fingerprint() == a.fingerprint()
    assert a.fingerprint() != b.fingerprint()


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("QUOTE_TTL_SEC", "5")
    monkeypatch.setenv("DEFAULT_SLIPPAGE_BPS", "75")
    config = QuoteServiceConfig.from_env()
    assert config.quote_ttl_sec == 5
    assert config.default_slippage_bps == 75


def test_config_rejects_bad_values(monkeypatch):
    monkeypatch.setenv("QUOTE_TTL_SEC", "soon")
    with pytest.raises(ValidationError, match="QUOTE_TTL_SEC"):
        QuoteServiceConfig.from_env()
    with pytest.raises(ValidationError):
        QuoteServiceConfig(quote_ttl_sec=0)
