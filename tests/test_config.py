"""
Tests for configuration loading and endpoint validation.
"""
from pathlib import Path

import pytest

from agent_wallet_sdk.config import (
    BASE_URLS, DEFAULT_DELEGATION_URL, WalletConfig, default_store_path, validate_endpoint
)
from agent_wallet_sdk.exceptions import ConfigurationError


@pytest.mark.parametrize("url, expected", [
    ("https://staging.crossmint.com/api/", "https://staging.crossmint.com/api"),
    ("http://localhost:8080/api", "http://localhost:8080/api"),
    ("http://127.0.0.1:9000", "http://127.0.0.1:9000"),
    ("http://[::1]:9000", "http://[::1]:9000"),
])
def test_valid_endpoints(url, expected):
    assert validate_endpoint(url) == expected


@pytest.mark.parametrize("url", [
    "http://api.example.com",
    "ftp://api.example.com",
    "not a url",
    "",
])
def test_invalid_endpoints(url):
    with pytest.raises(ConfigurationError):
        validate_endpoint(url)


def test_defaults(store_path):
    config = WalletConfig()

    assert config.environment == "staging"
    assert config.api_base_url == BASE_URLS["staging"]
    assert config.delegation_url == DEFAULT_DELEGATION_URL
    assert config.store_path == store_path


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("AGENT_WALLET_ENV", "PRODUCTION")
    monkeypatch.setenv("AGENT_WALLET_DELEGATION_URL", "https://delegate.example.com/")
    monkeypatch.setenv("AGENT_WALLET_STORE_PATH", str(tmp_path / "w.json"))
    monkeypatch.setenv("AGENT_WALLET_HTTP_TIMEOUT", "12.5")

    config = WalletConfig.from_env()

    assert config.environment == "production"
    assert config.api_base_url == "https://www.crossmint.com/api"
    assert config.delegation_url == "https://delegate.example.com/"
    assert config.store_path == tmp_path / "w.json"
    assert config.http_timeout == 12.5


def test_api_base_override(monkeypatch):
    monkeypatch.setenv("AGENT_WALLET_API_BASE", "http://localhost:3000/api/")
    assert WalletConfig.from_env().api_base_url == "http://localhost:3000/api"


def test_insecure_override_is_rejected(monkeypatch):
    monkeypatch.setenv("AGENT_WALLET_API_BASE", "http://evil.example.com/api")
    with pytest.raises(ConfigurationError, match="https"):
        WalletConfig.from_env()


def test_unknown_environment():
    with pytest.raises(ConfigurationError, match="Unknown environment"):
        WalletConfig(environment="mainnet-beta")


def test_bad_timeout(monkeypatch):
    monkeypatch.setenv("AGENT_WALLET_HTTP_TIMEOUT", "soon")
    with pytest.raises(ConfigurationError, match="AGENT_WALLET_HTTP_TIMEOUT"):
        WalletConfig.from_env()


def test_explorer_link(store_path):
    assert WalletConfig().explorer_link("abc") == "https://explorer.solana.com/tx/abc?cluster=devnet"
    assert WalletConfig(environment="production").explorer_link("abc") == "https://explorer.solana.com/tx/abc"


def test_default_store_path_uses_data_dir(monkeypatch):
    monkeypatch.delenv("AGENT_WALLET_STORE_PATH", raising=False)
    monkeypatch.setattr("appdirs.user_data_dir", lambda name: f"/data/{name}")

    assert default_store_path() == Path("/data/agent-wallet/wallets.json")
