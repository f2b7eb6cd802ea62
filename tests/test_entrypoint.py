from eth_abi import encode as abi_encode

from chain.client import GasPrice, LogEntry
from chain.contracts import (
    ENTRYPOINT_GET_NONCE,
    PAYMASTER_FIXED_MARKUP_WEI,
    PAYMASTER_GAS_BUFFER_BPS,
    USER_OPERATION_EVENT,
)
from chain.deployments import Deployments
from chain.entrypoint import EntryPointReader, inclusion_from_receipt
from core.base_types import Address

DEPLOYMENTS = Deployments.from_dict(
    {
        "chainId": 31337,
        "entryPoint": "0x0000000071727de22e5e9d8baf0edac6f37da032",
        "simpleAccountFactory": "0x" + "77" * 20,
        "paymaster": "0x" + "55" * 20,
        "router": "0x" + "44" * 20,
        "oracle": "0x" + "88" * 20,
        "tokenOut": "0x" + "33" * 20,
        "usdc": "0x" + "11" * 20,
        "bnb": "0x" + "22" * 20,
    }
)
SENDER = Address("0x" + "66" * 20)
OP_HASH = bytes.fromhex("aa" * 32)


class StubClient:
    def __init__(self, results=None, code=b"", block=1_000, logs=None):
        self.results = results or {}
        self.code = code
        self.block = block
        self.logs = logs or []
        self.calls = []
        self.log_queries = []

    def call_function(self, to, function, *args):
        self.calls.append((to, function, args))
        return self.results[function.name]

    def get_code(self, address, block="latest"):
        return self.code

    def get_block_number(self):
        return self.block

    def get_gas_price(self):
        return GasPrice(base_fee=5, priority_fee=1)

    def get_logs(self, address, topics, from_block, to_block="latest"):
        self.log_queries.append((address, list(topics), from_block))
        return self.logs


def test_get_nonce_uses_key_zero():
    client = StubClient(results={"getNonce": (9,)})
    reader = EntryPointReader(client, DEPLOYMENTS)

    assert reader.get_nonce(SENDER) == 9
    to, function, args = client.calls[0]
    assert to == DEPLOYMENTS.entry_point
    assert function is ENTRYPOINT_GET_NONCE
    assert args == (SENDER.checksum, 0)


def test_needs_deployment_checks_code():
    assert EntryPointReader(StubClient(code=b""), DEPLOYMENTS).needs_deployment(SENDER)
    assert not EntryPointReader(StubClient(code=b"\x60\x80"), DEPLOYMENTS).needs_deployment(SENDER)


def test_sponsor_policy_reads_paymaster():
    client = StubClient(results={"gasBufferBps": (1_000,), "fixedMarkupWei": (42,)})
    policy = EntryPointReader(client, DEPLOYMENTS).sponsor_policy()

    assert policy.gas_buffer_bps == 1_000
    assert policy.fixed_markup_wei == 42
    assert [c[1] for c in client.calls] == [PAYMASTER_GAS_BUFFER_BPS, PAYMASTER_FIXED_MARKUP_WEI]
    assert all(c[0] == DEPLOYMENTS.paymaster for c in client.calls)


def test_inclusion_start_block_looks_back():
    assert EntryPointReader(StubClient(block=1_000), DEPLOYMENTS).inclusion_start_block() == 975
    assert EntryPointReader(StubClient(block=3), DEPLOYMENTS).inclusion_start_block() == 0


def test_find_user_operation_event_decodes_log():
    log = LogEntry(
        address=DEPLOYMENTS.entry_point.checksum,
        topics=("0x" + USER_OPERATION_EVENT.topic.hex(), "0x" + OP_HASH.hex()),
        data=abi_encode(["uint256", "bool", "uint256", "uint256"], [4, True, 123, 45]),
        block_number=990,
        transaction_hash="0x" + "bb" * 32,
    )
    client = StubClient(logs=[log])
    result = EntryPointReader(client, DEPLOYMENTS).find_user_operation_event(OP_HASH, 975)

    assert result.success is True
    assert result.block_number == 990
    assert result.actual_gas_cost == 123
    assert result.actual_gas_used == 45
    address, topics, from_block = client.log_queries[0]
    assert address == DEPLOYMENTS.entry_point
    assert topics == [USER_OPERATION_EVENT.topic, OP_HASH]
    assert from_block == 975


def test_find_user_operation_event_none_when_absent():
    assert EntryPointReader(StubClient(), DEPLOYMENTS).find_user_operation_event(OP_HASH, 0) is None


def test_inclusion_from_receipt():
    result = inclusion_from_receipt(
        {
            "userOpHash": "0x" + OP_HASH.hex(),
            "success": False,
            "actualGasCost": "0x64",
            "actualGasUsed": "0x32",
            "receipt": {"transactionHash": "0x" + "cc" * 32, "blockNumber": "0x10"},
        }
    )
    assert result.user_op_hash == OP_HASH
    assert result.success is False
    assert result.block_number == 16
    assert result.actual_gas_cost == 100
