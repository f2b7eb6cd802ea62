"""EIP-7702 delegation authorizations (raw-digest signing domain)."""

from __future__ import annotations

import logging
from typing import Protocol

import rlp
from eth_utils import keccak

from core.base_types import Address, to_address, to_uint
from core.errors import SignerCapabilityError

from .models import EIP7702Authorization

logger = logging.getLogger(__name__)

EIP7702_MAGIC = b"\x05"


class DigestSignature(Protocol):
    v: int
    r: int
    s: int


class DigestSigner(Protocol):
    def sign_digest(self, digest: bytes) -> DigestSignature: ...


def eip7702_digest(chain_id: int, address: Address | str, nonce: int) -> bytes:
    """keccak256(0x05 || rlp([chain_id, address, nonce]))"""
    chain_id = to_uint(chain_id, "chainId")
    nonce = to_uint(nonce, "nonce", max_value=2**64 - 1)
    target = to_address(address, "address")
    payload = rlp.encode([chain_id, target.raw, nonce])
    return keccak(EIP7702_MAGIC + payload)


def sign_authorization(
    signer: object, chain_id: int, target: Address | str, nonce: int
) -> EIP7702Authorization:
    """
    Sign a delegation of the signer's EOA to ``target``.

    Requires a signer exposing ``sign_digest(bytes32)``; wallet-style signers
    that only offer message or typed-data signing cannot produce this.
    """
    sign_digest = getattr(signer, "sign_digest", None)
    if not callable(sign_digest):
        raise SignerCapabilityError(
            "Signer cannot sign raw digests; EIP-7702 authorization unavailable",
            remediation="Use a local key signer or disable EIP-7702 mode.",
        )
    target_address = to_address(target, "target")
    digest = eip7702_digest(chain_id, target_address, nonce)
    signature = sign_digest(digest)
    logger.info(
        "signed EIP-7702 authorization chain=%s target=%s nonce=%s",
        chain_id,
        target_address,
        nonce,
    )
    return EIP7702Authorization(
        chain_id=chain_id,
        address=target_address.checksum,
        nonce=nonce,
        v=signature.v,
        r=signature.r,
        s=signature.s,
    )
