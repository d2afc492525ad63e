"""Ephemeral key pairs and the zkLogin address-derivation interface."""

from __future__ import annotations

import abc
import base64
import hashlib
import importlib
import secrets
from typing import Any, Dict

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .errors import ConfigurationError, DecodeError

ED25519_FLAG = 0x00
# Intent prefix for transaction data: scope, version, app id.
TRANSACTION_INTENT = bytes([0, 0, 0])


class Ed25519KeyPair:
    """Ed25519 signing key pair used as the ephemeral zkLogin key."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key

    @classmethod
    def generate(cls) -> "Ed25519KeyPair":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_secret_key(cls, secret_key: str) -> "Ed25519KeyPair":
        """Rebuild a key pair from the base64 seed returned by ``secret_key``."""
        try:
            raw = base64.b64decode(secret_key, validate=True)
            return cls(Ed25519PrivateKey.from_private_bytes(raw))
        except ValueError as exc:
            raise DecodeError(f"Invalid ephemeral secret key: {exc}") from exc

    def secret_key(self) -> str:
        raw = self._private_key.private_bytes(
            serialization.Encoding.Raw,
            serialization.PrivateFormat.Raw,
            serialization.NoEncryption(),
        )
        return base64.b64encode(raw).decode()

    @property
    def public_key(self) -> Ed25519PublicKey:
        return self._private_key.public_key()

    def public_key_bytes(self) -> bytes:
        return self.public_key.public_bytes(
            serialization.Encoding.Raw, serialization.PublicFormat.Raw
        )

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)

    def sign_transaction(self, tx_bytes: bytes) -> str:
        """Sign transaction bytes and return the serialized user signature.

        The signature covers the blake2b digest of the intent-prefixed bytes and
        is serialized as ``flag || signature || public key`` in base64.
        """
        digest = hashlib.blake2b(TRANSACTION_INTENT + tx_bytes, digest_size=32).digest()
        signature = self.sign(digest)
        serialized = bytes([ED25519_FLAG]) + signature + self.public_key_bytes()
        return base64.b64encode(serialized).decode()

    def __repr__(self) -> str:
        return f"Ed25519KeyPair(public_key={self.public_key_bytes().hex()})"


class ZkLoginCrypto(abc.ABC):
    """Address-derivation library used by the workflow.

    Key handling is provided here. The Poseidon-based operations (nonce,
    address, address seed, signature assembly) come from a concrete
    implementation supplied by the caller.
    """

    def generate_keypair(self) -> Ed25519KeyPair:
        return Ed25519KeyPair.generate()

    def keypair_from_secret(self, secret_key: str) -> Ed25519KeyPair:
        return Ed25519KeyPair.from_secret_key(secret_key)

    def generate_randomness(self) -> str:
        """Return 128 bits of randomness as a decimal string."""
        return str(int.from_bytes(secrets.token_bytes(16), "big"))

    def extended_public_key(self, key_pair: Ed25519KeyPair) -> str:
        """Flag-prefixed public key in base64, as expected by the prover."""
        return base64.b64encode(
            bytes([ED25519_FLAG]) + key_pair.public_key_bytes()
        ).decode()

    @abc.abstractmethod
    def generate_nonce(
        self, key_pair: Ed25519KeyPair, max_epoch: int, randomness: str
    ) -> str:
        """Commit to the ephemeral public key, max epoch and randomness."""

    @abc.abstractmethod
    def jwt_to_address(self, jwt: str, salt: str) -> str:
        """Derive the account address for ``jwt`` and ``salt``."""

    @abc.abstractmethod
    def address_seed(
        self, salt: str, claim_name: str, claim_value: str, audience: str
    ) -> str:
        """Compute the address seed bound into the zkLogin signature."""

    @abc.abstractmethod
    def zklogin_signature(
        self,
        proof: Dict[str, Any],
        max_epoch: int,
        user_signature: str,
        address_seed: str,
    ) -> str:
        """Assemble the serialized zkLogin signature."""


def load_crypto(path: str) -> ZkLoginCrypto:
    """Import a ``module:attr`` path and return a ``ZkLoginCrypto`` instance.

    ``attr`` may be a class or factory (called without arguments) or an instance.
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(f"Crypto path must look like 'module:attr', got {path!r}")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as exc:
        raise ConfigurationError(f"Cannot load crypto implementation {path!r}: {exc}") from exc

    crypto = target() if callable(target) and not isinstance(target, ZkLoginCrypto) else target
    if not isinstance(crypto, ZkLoginCrypto):
        raise ConfigurationError(f"{path!r} is not a ZkLoginCrypto implementation")
    return crypto
