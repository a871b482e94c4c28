"""
Data types for the identity module.
"""
from dataclasses import dataclass, field
from typing import Optional

from agent_wallet_sdk.signer.local import LocalSigner


@dataclass(frozen=True)
class DelegationCredential:
    """
    Authorization attached after the owner approves the delegated signer.

    Attributes:
        custody_address: Smart wallet that holds funds and enforces the delegation
        api_key: API key issued for this agent
        configured_at: ISO timestamp of the attach
    """
    custody_address: str
    api_key: str = field(repr=False)
    configured_at: Optional[str] = None


@dataclass(frozen=True)
class WalletIdentity:
    """
    One agent's local signing identity.

    Attributes:
        agent_id: Agent the identity belongs to
        address: Base58 public key of the delegated signer
        secret_key: 64-byte Ed25519 secret key (never shown in repr)
        created_at: ISO timestamp of key generation
        credential: Delegation credential, once configured
    """
    agent_id: str
    address: str
    secret_key: bytes = field(repr=False)
    created_at: str
    credential: Optional[DelegationCredential] = None

    @property
    def is_usable(self) -> bool:
        """Whether remote operations can be performed with this identity."""
        return bool(self.address and self.credential)

    @property
    def custody_address(self) -> Optional[str]:
        return self.credential.custody_address if self.credential else None

    @property
    def api_key(self) -> Optional[str]:
        return self.credential.api_key if self.credential else None

    def signer(self) -> LocalSigner:
        return LocalSigner(self.secret_key)
