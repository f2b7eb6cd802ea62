"""Quote record handed to callers and persisted by the quote store."""

from __future__ import annotations

from dataclasses import dataclass

from core.base_types import Address
from core.serializer import CanonicalSerializer
from pricing.route import Route


@dataclass(frozen=True)
class QuoteRecord:
    quote_id: str
    chain_id: int
    created_at: int
    expires_at: int
    token_in: Address
    token_out: Address
    sender: Address
    amount_in: int
    amount_out: int
    min_out: int
    route: Route

    @property
    def deadline(self) -> int:
        """On-chain router deadline; the same instant the quote expires."""
        return self.expires_at

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict:
        """Wire shape: camelCase keys, amounts as decimal strings."""
        return {
            "quoteId": self.quote_id,
            "chainId": self.chain_id,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
            "deadline": self.deadline,
            "tokenIn": self.token_in.checksum,
            "tokenOut": self.token_out.checksum,
            "sender": self.sender.checksum,
            "amountIn": str(self.amount_in),
            "amountOut": str(self.amount_out),
            "minOut": str(self.min_out),
            "route": self.route.to_dict(),
        }

    def fingerprint(self) -> bytes:
        """keccak of the canonical wire form; any field change alters it."""
        return CanonicalSerializer.hash(self.to_dict())
