"""
Static schemas for every external contract function the pipeline touches.

Each function is declared once with its ABI types and checked when the module
is imported, so a malformed signature fails at load time rather than on the
first call that happens to use it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi import is_encodable_type
from eth_abi.exceptions import DecodingError, EncodingError as AbiEncodingError
from eth_utils import keccak

from core.errors import EncodingError, ValidationError


@dataclass(frozen=True)
class ContractFunction:
    name: str
    inputs: tuple[str, ...]
    outputs: tuple[str, ...] = ()
    selector: bytes = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.name.isidentifier():
            raise ValidationError(f"Invalid function name: {self.name!r}")
        for abi_type in (*self.inputs, *self.outputs):
            if not is_encodable_type(abi_type):
                raise ValidationError(f"{self.name}: unknown ABI type {abi_type!r}")
        object.__setattr__(self, "selector", keccak(text=self.signature)[:4])

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    def encode(self, *args: Any) -> bytes:
        if len(args) != len(self.inputs):
            raise EncodingError(
                f"{self.name} expects {len(self.inputs)} arguments, got {len(args)}"
            )
        try:
            return self.selector + abi_encode(list(self.inputs), list(args))
        except (AbiEncodingError, TypeError, ValueError) as exc:
            raise EncodingError(f"{self.name}: {exc}") from exc

    def decode_input(self, calldata: bytes) -> tuple:
        if calldata[:4] != self.selector:
            raise EncodingError(f"calldata is not a {self.signature} call")
        try:
            return tuple(abi_decode(list(self.inputs), calldata[4:]))
        except DecodingError as exc:
            raise EncodingError(f"{self.name}: {exc}") from exc

    def decode_output(self, data: bytes) -> tuple:
        try:
            return tuple(abi_decode(list(self.outputs), data))
        except DecodingError as exc:
            raise EncodingError(f"{self.name} output: {exc}") from exc


@dataclass(frozen=True)
class EventSignature:
    name: str
    inputs: tuple[str, ...]

    @property
    def topic(self) -> bytes:
        return keccak(text=f"{self.name}({','.join(self.inputs)})")


# ERC-20
ERC20_APPROVE = ContractFunction("approve", ("address", "uint256"), ("bool",))
ERC20_TRANSFER = ContractFunction("transfer", ("address", "uint256"), ("bool",))

# SimpleAccount + factory
ACCOUNT_EXECUTE_BATCH = ContractFunction(
    "executeBatch", ("address[]", "uint256[]", "bytes[]")
)
FACTORY_CREATE_ACCOUNT = ContractFunction(
    "createAccount", ("address", "uint256"), ("address",)
)

# Swap router
ROUTER_SWAP_EXACT_IN = ContractFunction(
    "swapExactIn",
    ("address", "address", "uint256", "uint256", "address", "uint256"),
    ("uint256",),
)

# Price oracle
ORACLE_GET_PRICE = ContractFunction("getPrice", ("address",), ("uint256",))
ORACLE_DECIMALS = ContractFunction("decimals", ("address",), ("uint8",))

# Paymaster fee policy
PAYMASTER_GAS_BUFFER_BPS = ContractFunction("gasBufferBps", (), ("uint256",))
PAYMASTER_FIXED_MARKUP_WEI = ContractFunction("fixedMarkupWei", (), ("uint256",))

# EntryPoint v0.7
ENTRYPOINT_GET_NONCE = ContractFunction("getNonce", ("address", "uint192"), ("uint256",))
USER_OPERATION_EVENT = EventSignature(
    "UserOperationEvent",
    ("bytes32", "address", "address", "uint256", "bool", "uint256", "uint256"),
)
