"""
Runtime configuration for the agent wallet SDK.

All settings have defaults and can be overridden from the environment with
``WalletConfig.from_env()``.
"""
import os
import urllib.parse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import appdirs

from .exceptions import ConfigurationError

STAGING = "staging"
PRODUCTION = "production"

BASE_URLS = {
    STAGING: "https://staging.crossmint.com/api",
    PRODUCTION: "https://www.crossmint.com/api",
}

DEFAULT_DELEGATION_URL = "https://www.lobster.cash/"
DEFAULT_HTTP_TIMEOUT = 30.0

# Polling defaults, in seconds
TRANSFER_WAIT_TIMEOUT = 60.0
BROADCAST_WAIT_TIMEOUT = 30.0
POLL_INTERVAL = 2.0

SOLANA_EXPLORER_URL = "https://explorer.solana.com/tx"

_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


def default_store_path() -> Path:
    """Keystore location, honouring AGENT_WALLET_STORE_PATH."""
    override = os.environ.get("AGENT_WALLET_STORE_PATH")
    if override:
        return Path(override).expanduser()
    return Path(appdirs.user_data_dir("agent-wallet")) / "wallets.json"


def validate_endpoint(url: str) -> str:
    """
    Check that an API endpoint is safe to send credentials to.

    Args:
        url: Endpoint base URL

    Returns:
        The URL without trailing slashes

    Raises:
        ConfigurationError: If the URL is not https and not a loopback host
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.hostname or ""
    if not parsed.scheme or not host:
        raise ConfigurationError(f"Invalid API endpoint '{url}'")
    if parsed.scheme != "https" and host not in _LOCAL_HOSTS:
        raise ConfigurationError(
            f"API endpoint must use https:// (got: {parsed.scheme}://)"
        )
    return url.rstrip("/")


@dataclass
class WalletConfig:
    """Settings shared by the client, the orchestrators and the facade."""
    environment: str = STAGING
    api_base_url: Optional[str] = None
    delegation_url: str = DEFAULT_DELEGATION_URL
    store_path: Path = field(default_factory=default_store_path)
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self):
        if self.environment not in BASE_URLS:
            raise ConfigurationError(
                f"Unknown environment '{self.environment}'. "
                f"Expected one of: {', '.join(sorted(BASE_URLS))}"
            )
        self.api_base_url = validate_endpoint(self.api_base_url or BASE_URLS[self.environment])
        self.store_path = Path(self.store_path)

    @classmethod
    def from_env(cls) -> "WalletConfig":
        timeout = os.environ.get("AGENT_WALLET_HTTP_TIMEOUT")
        try:
            http_timeout = float(timeout) if timeout else DEFAULT_HTTP_TIMEOUT
        except ValueError:
            raise ConfigurationError(f"AGENT_WALLET_HTTP_TIMEOUT must be a number, got '{timeout}'")

        return cls(
            environment=os.environ.get("AGENT_WALLET_ENV", STAGING).lower(),
            api_base_url=os.environ.get("AGENT_WALLET_API_BASE") or None,
            delegation_url=os.environ.get("AGENT_WALLET_DELEGATION_URL", DEFAULT_DELEGATION_URL),
            store_path=default_store_path(),
            http_timeout=http_timeout,
        )

    def explorer_link(self, reference: str) -> str:
        """Block explorer URL for an on-chain transaction reference."""
        if self.environment == STAGING:
            return f"{SOLANA_EXPLORER_URL}/{reference}?cluster=devnet"
        return f"{SOLANA_EXPLORER_URL}/{reference}"
