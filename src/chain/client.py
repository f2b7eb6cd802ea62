"""Ethereum JSON-RPC client with retries and error classification."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import requests

from core.base_types import Address, bytes_to_hex
from core.errors import ChainRpcError, ValidationError

from .contracts import ContractFunction
from .errors import ExecutionReverted, RpcTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GasPrice:
    """Current gas price information."""

    base_fee: int
    priority_fee: int

    def get_max_fee(self, buffer_bps: int = 10_000) -> int:
        """maxFeePerGas leaving room for base fee growth (default 2x base fee)."""
        if buffer_bps < 0:
            raise ValidationError("buffer_bps must be non-negative")
        return self.base_fee * (10_000 + buffer_bps) // 10_000 + self.priority_fee


@dataclass(frozen=True)
class LogEntry:
    address: str
    topics: tuple[str, ...]
    data: bytes
    block_number: int
    transaction_hash: str

    @classmethod
    def from_rpc(cls, raw: dict) -> "LogEntry":
        return cls(
            address=str(raw.get("address", "")),
            topics=tuple(str(t).lower() for t in raw.get("topics", [])),
            data=_hex_to_bytes(raw.get("data", "0x")),
            block_number=_hex_to_int(raw.get("blockNumber", "0x0")),
            transaction_hash=str(raw.get("transactionHash", "")),
        )


class ChainClient:
    """
    Ethereum RPC client with reliability features.

    Features:
    - Bounded retry with exponential backoff on connection failures
    - Multiple RPC endpoint fallback
    - Timeouts are reported immediately, never retried
    - Request timing/logging
    - Proper error classification
    """

    def __init__(
        self,
        rpc_urls: list[str],
        timeout: float = 10.0,
        max_retries: int = 3,
    ):
        if not rpc_urls:
            raise ValidationError("rpc_urls must not be empty")
        if max_retries < 1:
            raise ValidationError("max_retries must be >= 1")
        self._rpc_urls = rpc_urls
        self._timeout = timeout
        self._max_retries = max_retries
        self._session = requests.Session()

    def chain_id(self) -> int:
        return _hex_to_int(self._rpc_call("eth_chainId", []))

    def get_block_number(self) -> int:
        return _hex_to_int(self._rpc_call("eth_blockNumber", []))

    def get_code(self, address: Address, block: str = "latest") -> bytes:
        return _hex_to_bytes(self._rpc_call("eth_getCode", [address.checksum, block]))

    def get_gas_price(self) -> GasPrice:
        block = self._rpc_call("eth_getBlockByNumber", ["latest", False])
        base_fee = _hex_to_int((block or {}).get("baseFeePerGas", "0x0"))
        priority = self._rpc_call("eth_maxPriorityFeePerGas", [])
        return GasPrice(base_fee=base_fee, priority_fee=_hex_to_int(priority))

    def call(self, to: Address, data: bytes, block: str = "latest") -> bytes:
        result = self._rpc_call(
            "eth_call", [{"to": to.checksum, "data": bytes_to_hex(data)}, block]
        )
        return _hex_to_bytes(result)

    def call_function(
        self, to: Address, function: ContractFunction, *args: Any
    ) -> tuple:
        """eth_call a schema-declared function and decode its outputs."""
        return function.decode_output(self.call(to, function.encode(*args)))

    def get_logs(
        self,
        address: Address,
        topics: Sequence[Optional[bytes]],
        from_block: int,
        to_block: str = "latest",
    ) -> list[LogEntry]:
        params = {
            "address": address.checksum,
            "topics": [bytes_to_hex(t) if t is not None else None for t in topics],
            "fromBlock": hex(from_block),
            "toBlock": to_block,
        }
        result = self._rpc_call("eth_getLogs", [params])
        return [LogEntry.from_rpc(entry) for entry in result or []]

    def _rpc_call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        last_error: Optional[Exception] = None
        for url in self._rpc_urls:
            for attempt in range(self._max_retries):
                start = time.perf_counter()
                try:
                    response = self._session.post(
                        url,
                        json=payload,
                        timeout=self._timeout,
                    )
                    elapsed = time.perf_counter() - start
                    logger.info("rpc %s %s in %.3fs", method, url, elapsed)
                    if response.status_code >= 400:
                        raise ChainRpcError(f"HTTP {response.status_code} from {url}")
                    data = response.json()
                    if "error" in data:
                        self._raise_rpc_error(data["error"])
                    return data.get("result")
                except requests.Timeout as exc:
                    raise RpcTimeout(method, url, self._timeout) from exc
                except requests.ConnectionError as exc:
                    last_error = exc
                    logger.warning("rpc %s %s connection failed: %s", method, url, exc)
                    self._sleep_backoff(attempt)
                except json.JSONDecodeError as exc:
                    last_error = exc
                    self._sleep_backoff(attempt)
        raise ChainRpcError(f"RPC request {method} failed") from last_error

    def _sleep_backoff(self, attempt: int) -> None:
        delay = 0.5 * (2**attempt)
        time.sleep(delay)

    def _raise_rpc_error(self, error: dict) -> None:
        message = str(error.get("message", "RPC error"))
        code = error.get("code")
        data = error.get("data")
        if "execution reverted" in message.lower() or code == 3:
            raise ExecutionReverted(message, code=code, data=data)
        raise ChainRpcError(message, code=code, data=data)


def _hex_to_int(value: str) -> int:
    if not isinstance(value, str):
        raise ChainRpcError("Expected hex string result")
    return int(value, 16)


def _hex_to_bytes(value: str) -> bytes:
    if not isinstance(value, str):
        raise ChainRpcError("Expected hex string result")
    normalized = value[2:] if value.startswith("0x") else value
    if normalized == "":
        return b""
    return bytes.fromhex(normalized)
