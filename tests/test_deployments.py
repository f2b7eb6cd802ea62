import json

import pytest

from chain.deployments import Deployments, load_deployments, load_deployments_from_env
from core.errors import ValidationError

RAW = {
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


def test_from_dict_checksums_addresses():
    deployments = Deployments.from_dict(RAW)
    assert deployments.chain_id == 31337
    assert deployments.entry_point.checksum == "0x0000000071727De22E5E9d8BAf0edAc6f37da032"


def test_supported_pairs_are_usdc_and_bnb_into_token_out():
    deployments = Deployments.from_dict(RAW)
    pairs = {(p.symbol, p.token_in, p.token_out) for p in deployments.supported_pairs}
    assert pairs == {
        ("USDC", deployments.usdc, deployments.token_out),
        ("BNB", deployments.bnb, deployments.token_out),
    }


def test_missing_keys_are_listed():
    raw = dict(RAW)
    del raw["router"]
    del raw["oracle"]
    with pytest.raises(ValidationError, match="router, oracle"):
        Deployments.from_dict(raw)


def test_bad_address_names_key():
    raw = dict(RAW, paymaster="0xnope")
    with pytest.raises(ValidationError, match="paymaster"):
        Deployments.from_dict(raw)


def test_zero_chain_id_rejected():
    with pytest.raises(ValidationError, match="chainId"):
        Deployments.from_dict(dict(RAW, chainId=0))


def test_load_deployments_from_file(tmp_path):
    path = tmp_path / "addresses.json"
    path.write_text(json.dumps(RAW), encoding="utf-8")
    assert load_deployments(path).router.checksum.lower() == RAW["router"]


def test_load_deployments_invalid_json(tmp_path):
    path = tmp_path / "addresses.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValidationError, match="not valid JSON"):
        load_deployments(path)


def test_load_deployments_from_env(tmp_path, monkeypatch):
    path = tmp_path / "addresses.json"
    path.write_text(json.dumps(RAW), encoding="utf-8")
    monkeypatch.setenv("DEPLOYMENTS_PATH", str(path))
    assert load_deployments_from_env().chain_id == RAW["chainId"]


def test_load_deployments_from_env_requires_path(monkeypatch):
    monkeypatch.delenv("DEPLOYMENTS_PATH", raising=False)
    with pytest.raises(ValidationError, match="DEPLOYMENTS_PATH"):
        load_deployments_from_env()
