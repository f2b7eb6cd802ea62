import pytest
import rlp
from eth_account import Account
from eth_utils import keccak

from core.errors import SignerCapabilityError
from core.wallet_manager import WalletManager
from userop.authorization import eip7702_digest, sign_authorization

TARGET = "0x" + "77" * 20


def test_digest_is_magic_prefixed_rlp():
    expected = keccak(b"\x05" + rlp.encode([31337, bytes.fromhex("77" * 20), 0]))
    assert eip7702_digest(31337, TARGET, 0) == expected


def test_digest_is_deterministic_and_input_sensitive():
    digest = eip7702_digest(1, TARGET, 5)
    assert digest == eip7702_digest(1, TARGET.upper().replace("0X", "0x"), 5)
    assert digest != eip7702_digest(2, TARGET, 5)
    assert digest != eip7702_digest(1, TARGET, 6)
    assert digest != eip7702_digest(1, "0x" + "78" * 20, 5)


def test_sign_authorization_with_digest_signer():
    account = Account.create()
    auth = sign_authorization(WalletManager(account.key), 31337, TARGET, 0)

    expected = Account.unsafe_sign_hash(eip7702_digest(31337, TARGET, 0), account.key)
    assert (auth.v, auth.r, auth.s) == (expected.v, expected.r, expected.s)
    assert auth.address.lower() == TARGET
    assert auth.y_parity == auth.v - 27

    rpc = auth.to_rpc()
    assert rpc["nonce"] == "0x"
    assert rpc["chainId"] == "0x7a69"
    assert len(rpc["r"]) == 66


class MessageOnlySigner:
    address = "0x" + "99" * 20

    def sign_user_op_hash(self, digest):
        return b"\x00" * 65


def test_signer_without_digest_capability():
    with pytest.raises(SignerCapabilityError) as exc:
        sign_authorization(MessageOnlySigner(), 31337, TARGET, 0)
    assert exc.value.reason == "signer_capability_unavailable"
    assert exc.value.remediation
