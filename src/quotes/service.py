"""createQuote / getQuote: pricing, route encoding and persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from core.base_types import Address, to_address
from core.clock import Clock, WallClock, deadline_after
from core.config import get_int_env
from core.errors import ValidationError
from core.serializer import CanonicalSerializer
from pricing.pricing_engine import PricingEngine, validate_slippage_bps
from pricing.route import RouteEncoder

from .models import QuoteRecord
from .store import QuoteStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "quote_service"


@dataclass(frozen=True)
class QuoteServiceConfig:
    quote_ttl_sec: int = 60
    default_slippage_bps: int = 50

    def __post_init__(self) -> None:
        if self.quote_ttl_sec <= 0:
            raise ValidationError("quote_ttl_sec must be positive")
        validate_slippage_bps(self.default_slippage_bps)

    @classmethod
    def from_env(cls) -> "QuoteServiceConfig":
        return cls(
            quote_ttl_sec=get_int_env("QUOTE_TTL_SEC", 60),
            default_slippage_bps=get_int_env("DEFAULT_SLIPPAGE_BPS", 50),
        )


class QuoteService:
    """
    Issues time-bounded swap quotes.

    The router call embeds ``deadline == expires_at``, so a quote that is
    dead off-chain is also unexecutable on-chain.
    """

    def __init__(
        self,
        chain_id: int,
        pricing: PricingEngine,
        route_encoder: RouteEncoder,
        store: QuoteStore,
        config: Optional[QuoteServiceConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.chain_id = chain_id
        self.pricing = pricing
        self.route_encoder = route_encoder
        self.store = store
        self.config = config or QuoteServiceConfig()
        self._clock = clock or WallClock()

    def create_quote(
        self,
        token_in: Address | str,
        token_out: Address | str,
        amount_in: int | str,
        sender: Address | str,
        slippage_bps: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> QuoteRecord:
        sender_address = to_address(sender, "sender")
        if slippage_bps is None:
            slippage_bps = self.config.default_slippage_bps
        priced = self.pricing.quote(token_in, token_out, amount_in, slippage_bps)

        now = self._clock()
        created_at = int(now)
        deadline = deadline_after(now, self.config.quote_ttl_sec)
        route = self.route_encoder.encode_swap(
            priced.token_in,
            priced.token_out,
            priced.amount_in,
            priced.min_out,
            sender_address,
            deadline,
        )
        draft = QuoteRecord(
            quote_id="",
            chain_id=self.chain_id,
            created_at=created_at,
            expires_at=deadline,
            token_in=priced.token_in,
            token_out=priced.token_out,
            sender=sender_address,
            amount_in=priced.amount_in,
            amount_out=priced.amount_out,
            min_out=priced.min_out,
            route=route,
        )
        quote_id = self.store.create(draft)
        record = replace(draft, quote_id=quote_id)
        self._log_quote_created(record, request_id)
        return record

    def get_quote(self, quote_id: str) -> QuoteRecord:
        return self.store.get(quote_id)

    def _log_quote_created(self, record: QuoteRecord, request_id: Optional[str]) -> None:
        event = {
            "ts": record.created_at,
            "level": "info",
            "service": SERVICE_NAME,
            "msg": "quote created",
            "quoteId": record.quote_id,
            "sender": record.sender,
            "meta": {
                "tokenIn": record.token_in,
                "tokenOut": record.token_out,
                "amountIn": str(record.amount_in),
                "amountOut": str(record.amount_out),
                "minOut": str(record.min_out),
                "deadline": record.deadline,
            },
        }
        if request_id:
            event["requestId"] = request_id
        logger.info("%s", CanonicalSerializer.dumps(event))
