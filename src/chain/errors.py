"""Chain and relay exceptions for JSON-RPC failures."""

from __future__ import annotations

from core.errors import ChainRpcError, ExternalTimeoutError


class RpcTimeout(ExternalTimeoutError):
    """JSON-RPC request exceeded its timeout."""

    def __init__(self, method: str, url: str, timeout: float):
        self.method = method
        self.url = url
        super().__init__(f"{method} to {url} timed out after {timeout}s")


class ExecutionReverted(ChainRpcError):
    """eth_call reverted."""

    retriable = False


class BundlerRpcError(ChainRpcError):
    """Relay answered with a JSON-RPC error (rejected, invalid params...)."""

    retriable = False


class UserOperationRejected(BundlerRpcError):
    """Relay validation rejected the operation (AA/paymaster revert)."""
