"""
Small helpers shared across the SDK.
"""
from typing import Any, Dict

SOLANA_CHAIN = "solana"
EXTERNAL_WALLET_PREFIX = "external-wallet:"
PRODUCT_LOCATOR_PREFIX = "amazon:"

_REDACTED_KEYS = ("signature", "apiKey", "api_key", "transaction", "secret_key")


def short(value: str, length: int = 6) -> str:
    """Truncate an identifier for log output."""
    if not value:
        return "<none>"
    return f"{value[:length]}…"


def build_delegation_url(delegation_base_url: str, public_address: str) -> str:
    """
    Build the URL where the wallet owner authorizes this agent's signer.

    Args:
        delegation_base_url: Base URL of the delegation web app
        public_address: Base58 public key of the local signer

    Returns:
        ``<base>/configure?pubkey=<address>``
    """
    base = delegation_base_url.rstrip("/")
    return f"{base}/configure?pubkey={public_address}"


def build_token_locator(token: str) -> str:
    """
    Map a token name or mint address to the service's token locator.

    ``sol`` (any case) becomes ``solana:sol``; a value that already names a
    chain is returned as is; anything else is treated as a Solana mint.
    """
    token = token.strip()
    if token.lower() == "sol":
        return f"{SOLANA_CHAIN}:sol"
    if ":" in token:
        return token
    return f"{SOLANA_CHAIN}:{token}"


def build_product_locator(product_id_or_url: str) -> str:
    """Build a product locator from an ASIN, a product URL or an existing locator."""
    if product_id_or_url.startswith(PRODUCT_LOCATOR_PREFIX):
        return product_id_or_url
    return f"{PRODUCT_LOCATOR_PREFIX}{product_id_or_url}"


def signer_locator(public_address: str) -> str:
    """Identifier the service uses for an external delegated signer."""
    return f"{EXTERNAL_WALLET_PREFIX}{public_address}"


def sanitize_payload(payload: Any) -> Any:
    """
    Remove sensitive values from a request body for logging.

    Args:
        payload: JSON-compatible request body

    Returns:
        Copy of the payload with secrets replaced by a length marker
    """
    if isinstance(payload, list):
        return [sanitize_payload(item) for item in payload]
    if not isinstance(payload, dict):
        return payload

    result: Dict[str, Any] = {}
    for key, value in payload.items():
        if key in _REDACTED_KEYS and value is not None:
            result[key] = f"[REDACTED - {len(str(value))} chars]"
        else:
            result[key] = sanitize_payload(value)
    return result
