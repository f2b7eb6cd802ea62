from .bundler import BundlerClient
from .client import ChainClient, GasPrice, LogEntry
from .deployments import Deployments, TradingPair, load_deployments, load_deployments_from_env
from .entrypoint import EntryPointReader, InclusionResult
from .errors import BundlerRpcError, ExecutionReverted, RpcTimeout, UserOperationRejected

__all__ = [
    "BundlerClient",
    "ChainClient",
    "GasPrice",
    "LogEntry",
    "Deployments",
    "TradingPair",
    "load_deployments",
    "load_deployments_from_env",
    "EntryPointReader",
    "InclusionResult",
    "BundlerRpcError",
    "ExecutionReverted",
    "RpcTimeout",
    "UserOperationRejected",
]
