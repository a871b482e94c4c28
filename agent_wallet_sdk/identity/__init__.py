"""
Identity module for the agent wallet SDK.

This module handles keypair generation, storage and credential attachment
for the delegated signer each agent uses to approve wallet transactions.
"""
import time
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from agent_wallet_sdk.exceptions import (
    ConfigurationError, KeyNotFoundError, NotFoundError, ValidationError
)
from agent_wallet_sdk.identity.key_store import KeyStore
from agent_wallet_sdk.identity.crypto import (
    generate_ed25519_keypair, public_address, encode_secret_key, decode_secret_key,
    get_master_key, encrypt_secret, decrypt_secret
)
from agent_wallet_sdk.identity.types import WalletIdentity, DelegationCredential
from agent_wallet_sdk.signer.local import LocalSigner

__all__ = [
    'get_or_create_wallet',
    'get_wallet',
    'attach_credential',
    'delete_wallet',
    'list_wallets',
    'is_wallet_configured',
    'load_signer',
    'WalletIdentity',
    'DelegationCredential',
    'KeyStore',
]

logger = logging.getLogger(__name__)

# Global KeyStore instance, recreated when the configured path changes
_key_store = None
_key_store_path_cache = None


def _get_key_store() -> KeyStore:
    """Get or create the global KeyStore instance"""
    global _key_store, _key_store_path_cache

    from agent_wallet_sdk.config import default_store_path
    path = default_store_path()

    if _key_store is None or path != _key_store_path_cache:
        _key_store = KeyStore(path)
        _key_store_path_cache = path

    return _key_store


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_record() -> Dict[str, Any]:
    """Create a fresh wallet record with a new keypair."""
    secret_key, public_key = generate_ed25519_keypair()
    encoded = encode_secret_key(secret_key)

    record = {
        "address": public_address(public_key),
        "created_at": _now(),
    }

    master_key = get_master_key()
    if master_key:
        record["encrypted_secret_key"] = encrypt_secret(encoded, master_key)
    else:
        record["secret_key"] = encoded
    return record


def _record_to_identity(agent_id: str, record: Dict[str, Any]) -> WalletIdentity:
    """
    Convert a stored record to a WalletIdentity.

    Raises:
        ConfigurationError: If the secret is encrypted and no master key is set,
            or the stored key is corrupt
    """
    if "encrypted_secret_key" in record:
        master_key = get_master_key()
        if not master_key:
            raise ConfigurationError(
                f"Secret key for agent \"{agent_id}\" is encrypted; set AGENT_WALLET_MASTER_KEY"
            )
        encoded = decrypt_secret(record["encrypted_secret_key"], master_key)
    else:
        encoded = record.get("secret_key", "")

    try:
        secret_key = decode_secret_key(encoded)
    except ValueError as e:
        raise ConfigurationError(f"Stored secret key for agent \"{agent_id}\" is corrupt: {e}")

    credential = None
    if record.get("custody_address") and record.get("api_key"):
        credential = DelegationCredential(
            custody_address=record["custody_address"],
            api_key=record["api_key"],
            configured_at=record.get("configured_at"),
        )

    return WalletIdentity(
        agent_id=agent_id,
        address=record["address"],
        secret_key=secret_key,
        created_at=record.get("created_at", ""),
        credential=credential,
    )


def get_or_create_wallet(agent_id: str, store: Optional[KeyStore] = None) -> WalletIdentity:
    """
    Get the agent's identity, generating a keypair on first use.

    Repeated calls for the same agent return the same address and secret.

    Args:
        agent_id: Agent identity
        store: Optional KeyStore (defaults to the global store)

    Returns:
        WalletIdentity for the agent
    """
    if not agent_id:
        raise ValidationError("Agent ID is required", field="agent_id")

    start_time = time.time()
    store = store or _get_key_store()

    # Fast path: lock-free read of the last snapshot
    record = store.get_record(agent_id)
    if record is not None:
        return _record_to_identity(agent_id, record)

    with store.transaction() as data:
        record = data["wallets"].get(agent_id)
        created = record is None
        if created:
            record = _new_record()
            data["wallets"][agent_id] = record

    identity = _record_to_identity(agent_id, record)

    if created:
        elapsed_ms = (time.time() - start_time) * 1000
        logger.info("Created signer %s… for agent %s in %.2f ms", identity.address[:6], agent_id, elapsed_ms)

    return identity


def get_wallet(agent_id: str, store: Optional[KeyStore] = None) -> Optional[WalletIdentity]:
    """
    Get an agent's identity.

    Returns:
        WalletIdentity, or None if the agent has no keypair
    """
    store = store or _get_key_store()
    record = store.get_record(agent_id)
    if record is None:
        return None
    return _record_to_identity(agent_id, record)


def attach_credential(
    agent_id: str,
    custody_address: str,
    api_key: str,
    store: Optional[KeyStore] = None
) -> WalletIdentity:
    """
    Attach the delegation credential obtained from the owner's authorization.

    Args:
        agent_id: Agent identity
        custody_address: Smart wallet address the signer is delegated on
        api_key: API key for remote calls

    Returns:
        Updated WalletIdentity

    Raises:
        ValidationError: If custody_address or api_key is empty
        NotFoundError: If no identity exists for agent_id (the store is not modified)
    """
    if not custody_address:
        raise ValidationError("Wallet address is required", field="custody_address")
    if not api_key:
        raise ValidationError("API key is required", field="api_key")

    store = store or _get_key_store()
    with store.transaction() as data:
        record = data["wallets"].get(agent_id)
        if record is None:
            raise NotFoundError(f"No wallet found for agent \"{agent_id}\"", agent_id=agent_id)

        if record.get("custody_address"):
            logger.info("Replacing delegation credential for agent %s", agent_id)

        record = dict(record)
        record.update({
            "custody_address": custody_address,
            "api_key": api_key,
            "configured_at": _now(),
        })
        data["wallets"][agent_id] = record

    logger.info("Attached custody wallet %s… to agent %s", custody_address[:6], agent_id)
    return _record_to_identity(agent_id, record)


def delete_wallet(agent_id: str, store: Optional[KeyStore] = None) -> bool:
    """
    Delete an agent's identity.

    Warning: the keypair is gone for good; the delegation on the custody
    wallet must be re-authorized for a new signer.

    Returns:
        True if an identity was deleted
    """
    store = store or _get_key_store()
    deleted = store.delete_record(agent_id)
    if deleted:
        logger.info("Deleted local wallet data for agent %s", agent_id)
    return deleted


def list_wallets(store: Optional[KeyStore] = None) -> Dict[str, WalletIdentity]:
    """List all locally stored identities by agent id."""
    store = store or _get_key_store()
    identities = {}
    for agent_id, record in store.list_records().items():
        try:
            identities[agent_id] = _record_to_identity(agent_id, record)
        except ConfigurationError as e:
            logger.error(f"Failed to load wallet for agent {agent_id}: {e}")
    return identities


def is_wallet_configured(agent_id: str, store: Optional[KeyStore] = None) -> bool:
    identity = get_wallet(agent_id, store)
    return identity is not None and identity.is_usable


def load_signer(agent_id: str, store: Optional[KeyStore] = None) -> LocalSigner:
    """
    Load the signer for an agent.

    Raises:
        KeyNotFoundError: If no keypair exists for agent_id
    """
    identity = get_wallet(agent_id, store)
    if identity is None:
        raise KeyNotFoundError(f"No wallet found for agent: {agent_id}", agent_id=agent_id)
    return identity.signer()
