"""
Key material helpers for the identity module.
"""
import base64
import binascii
import logging
import os
from typing import Dict, Any, Optional, Tuple

import base58
import nacl.exceptions
import nacl.secret
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding, PrivateFormat, PublicFormat, NoEncryption
)

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SEED_SIZE = 32
SECRET_KEY_SIZE = 64

# Cache of the decoded master key, keyed by the raw environment value
_master_key_cache: Dict[str, bytes] = {}


def generate_ed25519_keypair() -> Tuple[bytes, bytes]:
    """
    Generate an Ed25519 keypair.

    Returns:
        Tuple of (secret_key, public_key) where secret_key is the 64-byte
        seed+public key form used by Solana wallets
    """
    private_key = Ed25519PrivateKey.generate()
    seed = private_key.private_bytes(
        encoding=Encoding.Raw,
        format=PrivateFormat.Raw,
        encryption_algorithm=NoEncryption()
    )
    public_key = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return seed + public_key, public_key


def public_address(public_key: bytes) -> str:
    """Base58 address of a raw Ed25519 public key."""
    return base58.b58encode(public_key).decode("ascii")


def encode_secret_key(secret_key: bytes) -> str:
    return base58.b58encode(secret_key).decode("ascii")


def decode_secret_key(encoded: str) -> bytes:
    """
    Decode a base58 secret key.

    Raises:
        ValueError: If the value is not base58 or not 64 bytes long
    """
    secret_key = base58.b58decode(encoded)
    if len(secret_key) != SECRET_KEY_SIZE:
        raise ValueError(f"Secret key must be {SECRET_KEY_SIZE} bytes, got {len(secret_key)}")
    return secret_key


def get_master_key() -> Optional[bytes]:
    """
    Get the at-rest encryption key from AGENT_WALLET_MASTER_KEY.

    Returns:
        32-byte key, or None when encryption at rest is not configured

    Raises:
        ConfigurationError: If the variable is set but not a base64 32-byte key
    """
    raw = os.environ.get("AGENT_WALLET_MASTER_KEY")
    if not raw:
        return None

    if raw in _master_key_cache:
        return _master_key_cache[raw]

    try:
        key = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"AGENT_WALLET_MASTER_KEY is not valid base64: {e}")
    if len(key) != nacl.secret.SecretBox.KEY_SIZE:
        raise ConfigurationError(
            f"AGENT_WALLET_MASTER_KEY must decode to {nacl.secret.SecretBox.KEY_SIZE} bytes"
        )

    _master_key_cache.clear()
    _master_key_cache[raw] = key
    return key


def encrypt_secret(encoded_secret: str, key: bytes) -> Dict[str, Any]:
    """
    Encrypt a base58 secret key using libsodium secretbox.

    Args:
        encoded_secret: Base58 secret key
        key: 32-byte master key

    Returns:
        Dictionary with the encrypted secret
    """
    box = nacl.secret.SecretBox(key)
    # box.encrypt prepends a random nonce to the ciphertext
    encrypted = box.encrypt(encoded_secret.encode("ascii"))
    return {
        "encrypted": base64.b64encode(encrypted).decode("ascii"),
        "version": 1
    }


def decrypt_secret(encrypted_data: Dict[str, Any], key: bytes) -> str:
    """
    Decrypt a secret produced by ``encrypt_secret``.

    Raises:
        ConfigurationError: If the master key does not open the secret
    """
    box = nacl.secret.SecretBox(key)
    try:
        decrypted = box.decrypt(base64.b64decode(encrypted_data["encrypted"]))
    except (nacl.exceptions.CryptoError, KeyError, binascii.Error) as e:
        raise ConfigurationError(f"Failed to decrypt secret key with AGENT_WALLET_MASTER_KEY: {e}")
    return decrypted.decode("ascii")
