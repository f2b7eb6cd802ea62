"""ERC-4337 relay (bundler) JSON-RPC client."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

import requests

from core.base_types import Address
from core.errors import ChainRpcError, ValidationError
from pricing.fees import GasEstimate

from .errors import BundlerRpcError, RpcTimeout, UserOperationRejected

logger = logging.getLogger(__name__)

INVALID_PARAMS = -32602
# ERC-7769 validation failure range (entry point, paymaster, opcode, expiry...)
REJECTION_CODES = range(-32507, -32499)


class BundlerClient:
    """
    One relay endpoint.

    Each request is attempted once: failing over between relays is the
    orchestrator's job, so this client only classifies what went wrong.
    """

    def __init__(self, url: str, timeout: float = 10.0, name: Optional[str] = None):
        if not url:
            raise ValidationError("bundler url must not be empty")
        self.url = url
        self.name = name or url
        self._timeout = timeout
        self._session = requests.Session()

    def supported_entry_points(self) -> list[str]:
        return list(self._rpc_call("eth_supportedEntryPoints", []) or [])

    def estimate_user_operation_gas(self, user_op: dict, entry_point: Address) -> GasEstimate:
        result = self._rpc_call(
            "eth_estimateUserOperationGas", [user_op, entry_point.checksum]
        )
        return GasEstimate.from_rpc(result)

    def send_user_operation(self, user_op: dict, entry_point: Address) -> str:
        result = self._rpc_call("eth_sendUserOperation", [user_op, entry_point.checksum])
        if not isinstance(result, str):
            raise ChainRpcError(f"{self.name}: eth_sendUserOperation returned no hash")
        return result

    def get_user_operation_receipt(self, user_op_hash: str) -> Optional[dict]:
        """Receipt once the operation is included, else ``None``."""
        return self._rpc_call("eth_getUserOperationReceipt", [user_op_hash])

    def _rpc_call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        start = time.perf_counter()
        try:
            response = self._session.post(self.url, json=payload, timeout=self._timeout)
        except requests.Timeout as exc:
            raise RpcTimeout(method, self.url, self._timeout) from exc
        except requests.ConnectionError as exc:
            raise ChainRpcError(f"{self.name}: connection failed: {exc}") from exc
        elapsed = time.perf_counter() - start
        logger.info("bundler %s %s in %.3fs", method, self.name, elapsed)

        if response.status_code >= 400:
            raise ChainRpcError(f"{self.name}: HTTP {response.status_code}")
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise ChainRpcError(f"{self.name}: invalid JSON response") from exc
        if "error" in data:
            self._raise_rpc_error(data["error"])
        return data.get("result")

    def _raise_rpc_error(self, error: dict) -> None:
        message = f"{self.name}: {error.get('message', 'RPC error')}"
        code = error.get("code")
        data = error.get("data")
        if code == INVALID_PARAMS or code in REJECTION_CODES:
            raise UserOperationRejected(message, code=code, data=data)
        raise BundlerRpcError(message, code=code, data=data)
