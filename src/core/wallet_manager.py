"""Wallet management with secure key handling and signing helpers."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils.address import to_checksum_address

from .errors import ValidationError


def _mask_private_key(private_key: Any) -> str:
    if isinstance(private_key, (bytes, bytearray)):
        raw = private_key.hex()
    else:
        raw = str(private_key)

    if raw.startswith("0x"):
        raw = raw[2:]

    if len(raw) < 10:
        return "<redacted>"

    return f"0x{raw[:6]}...{raw[-4:]}"


def _require_digest(digest: bytes) -> bytes:
    if not isinstance(digest, (bytes, bytearray)):
        raise TypeError("digest must be bytes")
    if len(digest) != 32:
        raise ValidationError("digest must be exactly 32 bytes")
    return bytes(digest)


@dataclass(frozen=True)
class DigestSignature:
    """secp256k1 signature over a raw 32-byte digest (v is 27 or 28)."""

    v: int
    r: int
    s: int

    @property
    def y_parity(self) -> int:
        return self.v - 27

    def to_bytes(self) -> bytes:
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])


class WalletManager:
    """
    Holds the owner key of a smart account and signs on its behalf.

    Two signing domains are exposed and kept apart:
    - ``sign_user_op_hash``: EIP-191 personal signature over a userOpHash,
      which is what the account's ``validateUserOp`` checks.
    - ``sign_digest``: raw secp256k1 signature over an arbitrary 32-byte
      digest (EIP-7702 authorizations). Wallet-style signers usually cannot do
      this, which is why it is a separate capability.

    CRITICAL: Private key must never appear in logs, errors, or string
    representations.
    """

    def __init__(self, private_key: str | bytes) -> None:
        try:
            self._account = Account.from_key(private_key)
        except Exception as exc:
            masked = _mask_private_key(private_key)
            raise ValueError(f"Invalid private key: {masked}") from exc

    @classmethod
    def from_env(cls, env_var: str = "PRIVATE_KEY") -> "WalletManager":
        """Load private key from environment variable."""
        value = os.environ.get(env_var)
        if not value:
            raise ValueError(f"Environment variable {env_var} is not set")
        return cls(value)

    @classmethod
    def from_keyfile(cls, path: str, password: str) -> "WalletManager":
        """Load from encrypted keyfile."""
        payload = Path(path).read_text(encoding="utf-8")
        data = json.loads(payload)
        try:
            private_key = Account.decrypt(data, password)
        except Exception as exc:
            raise ValueError("Failed to decrypt keyfile") from exc
        return cls(private_key)

    @property
    def address(self) -> str:
        """Returns checksummed address."""
        return to_checksum_address(self._account.address)

    def sign_user_op_hash(self, user_op_hash: bytes) -> bytes:
        """Sign a userOpHash with the EIP-191 prefix; returns 65 bytes r||s||v."""
        digest = _require_digest(user_op_hash)
        signed = self._account.sign_message(encode_defunct(primitive=digest))
        return bytes(signed.signature)

    def sign_digest(self, digest: bytes) -> DigestSignature:
        """Sign a raw 32-byte digest without any prefix."""
        signed = self._account.unsafe_sign_hash(_require_digest(digest))
        return DigestSignature(v=signed.v, r=signed.r, s=signed.s)

    def __repr__(self) -> str:
        """MUST NOT expose private key."""
        return f"WalletManager(address={self.address})"

    def __str__(self) -> str:
        return self.__repr__()
