"""Deployment addresses, validated when the document is loaded."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from core.base_types import Address, to_address, to_uint
from core.config import get_env
from core.errors import ValidationError

_ADDRESS_KEYS = {
    "entry_point": "entryPoint",
    "simple_account_factory": "simpleAccountFactory",
    "paymaster": "paymaster",
    "router": "router",
    "oracle": "oracle",
    "token_out": "tokenOut",
    "usdc": "usdc",
    "bnb": "bnb",
}


@dataclass(frozen=True)
class TradingPair:
    token_in: Address
    token_out: Address
    symbol: str = ""


@dataclass(frozen=True)
class Deployments:
    chain_id: int
    entry_point: Address
    simple_account_factory: Address
    paymaster: Address
    router: Address
    oracle: Address
    token_out: Address
    usdc: Address
    bnb: Address

    @classmethod
    def from_dict(cls, raw: object) -> "Deployments":
        if not isinstance(raw, dict):
            raise ValidationError("deployments must be a JSON object")
        missing = [key for key in ("chainId", *_ADDRESS_KEYS.values()) if key not in raw]
        if missing:
            raise ValidationError(f"deployments missing keys: {', '.join(missing)}")
        addresses = {
            attr: to_address(raw[key], key) for attr, key in _ADDRESS_KEYS.items()
        }
        chain_id = to_uint(raw["chainId"], "chainId")
        if chain_id == 0:
            raise ValidationError("chainId must be positive")
        return cls(chain_id=chain_id, **addresses)

    @property
    def supported_pairs(self) -> tuple[TradingPair, ...]:
        return (
            TradingPair(self.usdc, self.token_out, "USDC"),
            TradingPair(self.bnb, self.token_out, "BNB"),
        )


def load_deployments(path: str | Path) -> Deployments:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"deployments file {path} is not valid JSON") from exc
    return Deployments.from_dict(raw)


def load_deployments_from_env(env_var: str = "DEPLOYMENTS_PATH") -> Deployments:
    return load_deployments(get_env(env_var, required=True))
