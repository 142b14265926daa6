"""
Key material for PASETO v4 tokens.

``public`` tokens use an Ed25519 key pair, ``local`` tokens a 32-byte
symmetric key. Keys are generated with ``cryptography`` and handed to
``pyseto`` as PEM (asymmetric) or raw bytes (symmetric).
"""

import base64
import binascii
import logging
import os
import secrets
from dataclasses import dataclass

import pyseto
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .errors import KeyMaterialError

logger = logging.getLogger(__name__)

PASETO_VERSION = 4
SYMMETRIC_KEY_SIZE = 32


@dataclass(frozen=True)
class KeyPair:
    """Ed25519 secret key and the public key derived from it."""
    private_key: Ed25519PrivateKey

    @property
    def public_key(self) -> Ed25519PublicKey:
        return self.private_key.public_key()

    def secret_key_pem(self) -> bytes:
        """PEM (PKCS#8, unencrypted)."""
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def public_key_pem(self) -> bytes:
        """PEM (SubjectPublicKeyInfo)."""
        return public_key_to_pem(self.public_key)

    def public_key_base64(self) -> str:
        raw = self.public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return base64.b64encode(raw).decode('ascii')

    def paseto_secret_key(self) -> pyseto.KeyInterface:
        return pyseto.Key.new(version=PASETO_VERSION, purpose="public", key=self.secret_key_pem())

    def paseto_public_key(self) -> pyseto.KeyInterface:
        return paseto_public_key(self.public_key)


def public_key_to_pem(public_key: Ed25519PublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def paseto_public_key(public_key: Ed25519PublicKey) -> pyseto.KeyInterface:
    return pyseto.Key.new(version=PASETO_VERSION, purpose="public", key=public_key_to_pem(public_key))


def generate_key_pair() -> KeyPair:
    """Generate a fresh Ed25519 key pair."""
    logger.debug("Generating Ed25519 key pair")
    return KeyPair(private_key=Ed25519PrivateKey.generate())


def generate_symmetric_key() -> bytes:
    """Generate a fresh symmetric key."""
    logger.debug("Generating symmetric key")
    return secrets.token_bytes(SYMMETRIC_KEY_SIZE)


def paseto_local_key(key: bytes) -> pyseto.KeyInterface:
    if not isinstance(key, bytes) or len(key) != SYMMETRIC_KEY_SIZE:
        raise KeyMaterialError(f"Symmetric key must be {SYMMETRIC_KEY_SIZE} bytes")
    return pyseto.Key.new(version=PASETO_VERSION, purpose="local", key=key)


def load_key_pair_from_pem(pem) -> KeyPair:
    """Load a key pair from an Ed25519 PKCS#8 PEM secret key."""
    if isinstance(pem, str):
        pem = pem.encode('utf-8')
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (TypeError, ValueError, UnsupportedAlgorithm) as e:
        raise KeyMaterialError(f"Invalid secret key PEM: {e}") from e
    if not isinstance(key, Ed25519PrivateKey):
        raise KeyMaterialError("Secret key is not an Ed25519 private key")
    return KeyPair(private_key=key)


def load_public_key_from_pem(pem) -> Ed25519PublicKey:
    """Load an Ed25519 SubjectPublicKeyInfo PEM public key."""
    if isinstance(pem, str):
        pem = pem.encode('utf-8')
    try:
        key = serialization.load_pem_public_key(pem)
    except (TypeError, ValueError, UnsupportedAlgorithm) as e:
        raise KeyMaterialError(f"Invalid public key PEM: {e}") from e
    if not isinstance(key, Ed25519PublicKey):
        raise KeyMaterialError("Public key is not an Ed25519 public key")
    return key


def load_key_pair_from_env(var_name: str) -> KeyPair:
    """Load a key pair from a PEM stored in an environment variable."""
    value = os.environ.get(var_name)
    if not value:
        raise KeyMaterialError(f"Environment variable {var_name!r} is not set or empty")
    return load_key_pair_from_pem(value)


def symmetric_key_to_base64(key: bytes) -> str:
    return base64.b64encode(key).decode('ascii')


def load_symmetric_key_from_base64(b64: str) -> bytes:
    """From base64. Raises KeyMaterialError unless it decodes to 32 bytes."""
    try:
        raw = base64.b64decode(b64.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyMaterialError(f"Invalid symmetric key encoding: {e}") from e
    if len(raw) != SYMMETRIC_KEY_SIZE:
        raise KeyMaterialError(
            f"Symmetric key must be {SYMMETRIC_KEY_SIZE} bytes, got {len(raw)}"
        )
    return raw


def load_symmetric_key_from_env(var_name: str) -> bytes:
    """Load a base64 symmetric key from an environment variable."""
    value = os.environ.get(var_name)
    if not value:
        raise KeyMaterialError(f"Environment variable {var_name!r} is not set or empty")
    return load_symmetric_key_from_base64(value)
