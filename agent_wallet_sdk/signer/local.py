"""
Local Ed25519 signer backed by an in-memory secret key.
"""
import logging

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from ..exceptions import SigningError

logger = logging.getLogger(__name__)


class LocalSigner:
    """
    Detached Ed25519 signer.

    Signing is deterministic: the same key and message always produce the
    same 64-byte signature.
    """

    def __init__(self, secret_key: bytes):
        """
        Initialize the signer.

        Args:
            secret_key: 64-byte seed+public key, or a bare 32-byte seed

        Raises:
            ValueError: If the key has the wrong length or its public half
                does not match the seed
        """
        if len(secret_key) not in (32, 64):
            raise ValueError(f"Ed25519 secret key must be 32 or 64 bytes, got {len(secret_key)}")

        self._private_key = Ed25519PrivateKey.from_private_bytes(secret_key[:32])
        self.public_key = self._private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

        if len(secret_key) == 64 and secret_key[32:] != self.public_key:
            raise ValueError("Secret key public half does not match its seed")

        self.address = base58.b58encode(self.public_key).decode("ascii")

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address!r})"

    def sign(self, message: bytes) -> bytes:
        """Sign an opaque byte string."""
        return self._private_key.sign(bytes(message))

    def verify(self, message: bytes, signature: bytes) -> bool:
        return verify_signature(self.public_key, message, signature)

    def sign_challenge(self, message_b58: str) -> str:
        """
        Sign a base58-encoded approval challenge.

        Args:
            message_b58: Challenge as returned by the remote service

        Returns:
            Base58-encoded signature

        Raises:
            SigningError: If the challenge is empty or not valid base58
        """
        if not message_b58:
            raise SigningError("Approval challenge is empty")
        try:
            message = base58.b58decode(message_b58)
        except ValueError as e:
            raise SigningError(f"Approval challenge is not valid base58: {e}")
        if not message:
            raise SigningError("Approval challenge decodes to an empty message")

        signature = self.sign(message)
        logger.debug("Signed %d-byte challenge with signer %s…", len(message), self.address[:6])
        return base58.b58encode(signature).decode("ascii")


def verify_signature(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """
    Verify a detached Ed25519 signature.

    Args:
        public_key: Raw 32-byte public key
        message: Signed message
        signature: 64-byte signature

    Returns:
        True if the signature is valid
    """
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
    except (InvalidSignature, ValueError):
        return False
    return True
