"""Router call encoding for quoted swaps."""

from __future__ import annotations

from dataclasses import dataclass

from chain.contracts import ROUTER_SWAP_EXACT_IN
from core.base_types import Address, bytes_to_hex, to_address


@dataclass(frozen=True)
class Route:
    """The exact on-chain call a user operation must make to execute the swap."""

    router: Address
    calldata: bytes

    def to_dict(self) -> dict:
        return {"router": self.router.checksum, "calldata": bytes_to_hex(self.calldata)}


@dataclass(frozen=True)
class SwapCall:
    token_in: Address
    token_out: Address
    amount_in: int
    min_out: int
    recipient: Address
    deadline: int


class RouteEncoder:
    """
    Encodes ``swapExactIn(tokenIn, tokenOut, amountIn, minOut, recipient, deadline)``.

    The deadline passed here must be the quote's ``expiresAt`` so the router
    refuses the swap on-chain once the quote has expired off-chain.
    """

    def __init__(self, router: Address | str):
        self.router = to_address(router, "router")

    def encode_swap(
        self,
        token_in: Address,
        token_out: Address,
        amount_in: int,
        min_out: int,
        recipient: Address,
        deadline: int,
    ) -> Route:
        calldata = ROUTER_SWAP_EXACT_IN.encode(
            token_in.checksum,
            token_out.checksum,
            amount_in,
            min_out,
            recipient.checksum,
            deadline,
        )
        return Route(router=self.router, calldata=calldata)

    @staticmethod
    def decode_swap(calldata: bytes) -> SwapCall:
        token_in, token_out, amount_in, min_out, recipient, deadline = (
            ROUTER_SWAP_EXACT_IN.decode_input(calldata)
        )
        return SwapCall(
            token_in=Address(token_in),
            token_out=Address(token_out),
            amount_in=amount_in,
            min_out=min_out,
            recipient=Address(recipient),
            deadline=deadline,
        )
