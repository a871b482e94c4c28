"""
Tests for the agent-wallet command line interface.
"""
import json
from unittest.mock import MagicMock

import pytest

from agent_wallet_sdk.cli import build_parser, main
from agent_wallet_sdk.models import OperationResult
from agent_wallet_sdk.wallet import WalletService
from conftest import CUSTODY_ADDRESS, WALLETS


def _output(capsys):
    return json.loads(capsys.readouterr().out)


@pytest.fixture
def service(config, key_store, clock):
    return WalletService(config=config, store=key_store, clock=clock, sleep=clock.sleep)


def test_setup_and_configure(service, capsys):
    assert main(["setup"], service=service) == 0
    setup = _output(capsys)
    assert setup["ok"] is True
    assert "configure?pubkey=" in setup["value"]["delegation_url"]

    assert main(["configure", CUSTODY_ADDRESS, "sk_test"], service=service) == 0
    configured = _output(capsys)
    assert configured["value"]["custody_address"] == CUSTODY_ADDRESS

    assert main(["info"], service=service) == 0
    assert _output(capsys)["value"]["configured"] is True


def test_failure_exit_code(service, capsys):
    assert main(["balance"], service=service) == 1

    out = _output(capsys)
    assert out["ok"] is False
    assert out["error"]["kind"] == "NotFoundError"


def test_send_prints_transaction(service, capsys, requests_mock):
    main(["setup"], service=service)
    main(["configure", CUSTODY_ADDRESS, "sk_test"], service=service)
    capsys.readouterr()
    requests_mock.post(f"{WALLETS}/tokens/solana%3Ausdc/transfers", json={
        "id": "t1", "status": "success", "txId": "chain1", "internal": "not printed",
    })

    assert main(["send", "Recipient1", "5"], service=service) == 0

    out = _output(capsys)
    assert out["value"]["id"] == "t1"
    assert out["value"]["status"] == "success"
    assert "raw" not in out["value"]
    assert requests_mock.last_request.json()["amount"] == "5"


def test_agent_option_is_passed_through():
    service = MagicMock(spec=WalletService)
    service.order_status.return_value = OperationResult.success({"orderId": "o1"})

    assert main(["--agent", "shopper", "order-status", "o1", "--client-secret", "cs"], service=service) == 0

    service.order_status.assert_called_once_with("o1", client_secret="cs", agent_id="shopper")


def test_buy_arguments():
    service = MagicMock(spec=WalletService)
    service.purchase.return_value = OperationResult.success({"orderId": "o1"})

    main([
        "buy", "B000TEST", "--email", "ada@example.com", "--name", "Ada", "--line1", "1 Main St",
        "--city", "Springfield", "--postal-code", "12345", "--country", "US",
    ], service=service)

    args, kwargs = service.purchase.call_args
    assert args == ("B000TEST",)
    assert kwargs["postal_code"] == "12345"
    assert kwargs["line2"] is None
    assert kwargs["currency"] == "usdc"
    assert kwargs["agent_id"] == "main"


def test_tx_status_wait_flag():
    service = MagicMock(spec=WalletService)
    service.transaction_status.return_value = OperationResult.success({"id": "t1"})

    main(["tx-status", "t1", "--wait", "--timeout", "10"], service=service)

    service.transaction_status.assert_called_once_with("t1", agent_id="main", wait=True, timeout=10.0)


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_configuration_error_on_startup(monkeypatch, capsys):
    monkeypatch.setenv("AGENT_WALLET_ENV", "moon")

    assert main(["info"]) == 1
    assert _output(capsys)["error"]["kind"] == "ConfigurationError"
