"""
Pytest fixtures for the agent wallet SDK tests.
"""
import time

import base58
import pytest

from agent_wallet_sdk import _rate_limited_log
from agent_wallet_sdk.client import RemoteClient
from agent_wallet_sdk.config import WalletConfig
from agent_wallet_sdk.identity import crypto
from agent_wallet_sdk.identity.key_store import KeyStore
from agent_wallet_sdk.identity.types import DelegationCredential, WalletIdentity
from agent_wallet_sdk.models import ApiSession

# RFC 8032 section 7.1, TEST 1
RFC_SEED = bytes.fromhex("9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60")
RFC_PUBLIC_KEY = bytes.fromhex("d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a")
RFC_EMPTY_MESSAGE_SIGNATURE = bytes.fromhex(
    "e5564300c360ac729086e2cc806e828a84877f1eb8e5d974d873e065"
    "224901555fb8821590a33bacc61e39701cf9b46bd25bf5f0595bbe24655141438e7a100b"
)
RFC_ADDRESS = base58.b58encode(RFC_PUBLIC_KEY).decode("ascii")

# Approval challenge "MSGB58" (bytes 031f7a43bf) signed with the TEST 1 key, base58 encoded
CHALLENGE_SIGNATURE = "ZXbdphMz9jVQc8Rc6kJ2vQMSVtsr1vK98qxr29eBd8hCqavtTHVSXeBpRKrn5XuC2tg2nG7WDWtZbfLnPA2Taab"

API_BASE = "https://staging.crossmint.com/api"
API_KEY = "sk_staging_test"
CUSTODY_ADDRESS = "CustodyWa11etAddress1111111111111111111111"
WALLETS = f"{API_BASE}/2025-06-09/wallets/{CUSTODY_ADDRESS}"
ORDERS = f"{API_BASE}/2022-06-09/orders"

_ENV_VARS = (
    "AGENT_WALLET_ENV",
    "AGENT_WALLET_API_BASE",
    "AGENT_WALLET_DELEGATION_URL",
    "AGENT_WALLET_STORE_PATH",
    "AGENT_WALLET_HTTP_TIMEOUT",
    "AGENT_WALLET_MASTER_KEY",
)


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


# Make time.sleep instantaneous so polling tests don't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    crypto._master_key_cache.clear()
    _rate_limited_log.reset()
    yield
    crypto._master_key_cache.clear()


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    """Keystore file inside a not-yet-created directory"""
    path = tmp_path / "agent-wallet" / "wallets.json"
    monkeypatch.setenv("AGENT_WALLET_STORE_PATH", str(path))
    return path


@pytest.fixture
def key_store(store_path):
    return KeyStore(store_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(store_path):
    return WalletConfig(environment="staging", store_path=store_path)


@pytest.fixture
def client(config):
    return RemoteClient(config)


@pytest.fixture
def session():
    return ApiSession.create(API_BASE, API_KEY)


@pytest.fixture
def rfc_identity():
    """Configured identity holding the RFC 8032 test key"""
    return WalletIdentity(
        agent_id="main",
        address=RFC_ADDRESS,
        secret_key=RFC_SEED + RFC_PUBLIC_KEY,
        created_at="2025-06-09T00:00:00+00:00",
        credential=DelegationCredential(
            custody_address=CUSTODY_ADDRESS,
            api_key=API_KEY,
            configured_at="2025-06-09T00:05:00+00:00",
        ),
    )
