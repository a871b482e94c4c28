"""
Signers for delegated-signer approvals.
"""
from typing import Protocol

from .local import LocalSigner, verify_signature

__all__ = ["Signer", "LocalSigner", "verify_signature", "sign_message"]


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign(self, message: bytes) -> bytes:
        """Return a detached signature over message"""
        ...

    def sign_challenge(self, message_b58: str) -> str:
        """Sign a base58 challenge and return the base58 signature"""
        ...


def sign_message(agent_id: str, message: bytes) -> bytes:
    """
    Sign a message with the keypair stored for an agent.

    Args:
        agent_id: Agent identity whose key signs
        message: Opaque bytes to sign

    Returns:
        64-byte Ed25519 signature

    Raises:
        KeyNotFoundError: If no keypair exists for agent_id
    """
    from ..identity import load_signer

    return load_signer(agent_id).sign(message)
