"""
Command line interface: ``agent-wallet <command>``.

Each command runs one WalletService operation and prints its result as JSON.
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import TRANSFER_WAIT_TIMEOUT
from .exceptions import ConfigurationError
from .models import OperationResult
from .wallet import DEFAULT_AGENT_ID, WalletService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-wallet",
        description="Delegated-signer wallet for autonomous agents.")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v",
        help="Enable debug logging",
        action="store_true"
    )
    parser.add_argument(
        "--agent",
        help="Agent identity (default: %(default)s)",
        default=DEFAULT_AGENT_ID
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("setup", help="Create the local signer and print the authorization URL")

    configure = commands.add_parser("configure", help="Attach the custody wallet and API key")
    configure.add_argument("custody_address", help="Smart wallet address shown after authorization")
    configure.add_argument("api_key", help="API key shown after authorization")

    commands.add_parser("info", help="Show the local wallet configuration")
    commands.add_parser("balance", help="Show SOL and USDC balances")

    send = commands.add_parser("send", help="Send tokens from the custody wallet")
    send.add_argument("to", help="Recipient address")
    send.add_argument("amount", help="Amount in token units, e.g. 10 or 0.5")
    send.add_argument("--token", default="usdc", help="usdc, sol or a token mint address")
    send.add_argument("--wait", action="store_true", help="Wait for the transfer to settle")
    send.add_argument("--timeout", type=float, default=TRANSFER_WAIT_TIMEOUT, help="Seconds to wait")

    tx_status = commands.add_parser("tx-status", help="Show a transaction's status")
    tx_status.add_argument("transaction_id")
    tx_status.add_argument("--wait", action="store_true", help="Wait for a terminal status")
    tx_status.add_argument("--timeout", type=float, default=TRANSFER_WAIT_TIMEOUT, help="Seconds to wait")

    buy = commands.add_parser("buy", help="Buy a product and pay from the custody wallet")
    buy.add_argument("product", help="ASIN, product URL or amazon: locator")
    buy.add_argument("--email", required=True)
    buy.add_argument("--name", required=True)
    buy.add_argument("--line1", required=True)
    buy.add_argument("--line2")
    buy.add_argument("--city", required=True)
    buy.add_argument("--state")
    buy.add_argument("--postal-code", required=True)
    buy.add_argument("--country", required=True)
    buy.add_argument("--currency", default="usdc")

    order_status = commands.add_parser("order-status", help="Show an order's status")
    order_status.add_argument("order_id")
    order_status.add_argument("--client-secret", help="Client secret returned at order creation")

    return parser


def run_command(service: WalletService, args: argparse.Namespace) -> OperationResult:
    agent = args.agent
    if args.command == "setup":
        return service.setup(agent_id=agent)
    if args.command == "configure":
        return service.configure(args.custody_address, args.api_key, agent_id=agent)
    if args.command == "info":
        return service.wallet_info(agent_id=agent)
    if args.command == "balance":
        return service.balance(agent_id=agent)
    if args.command == "send":
        return service.transfer(
            args.to, args.amount, token=args.token, agent_id=agent, wait=args.wait, timeout=args.timeout
        )
    if args.command == "tx-status":
        return service.transaction_status(
            args.transaction_id, agent_id=agent, wait=args.wait, timeout=args.timeout
        )
    if args.command == "buy":
        return service.purchase(
            args.product,
            email=args.email,
            name=args.name,
            line1=args.line1,
            line2=args.line2,
            city=args.city,
            state=args.state,
            postal_code=args.postal_code,
            country=args.country,
            currency=args.currency,
            agent_id=agent,
        )
    if args.command == "order-status":
        return service.order_status(args.order_id, client_secret=args.client_secret, agent_id=agent)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None, service: Optional[WalletService] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if service is None:
        try:
            service = WalletService()
        except ConfigurationError as e:
            result = OperationResult.failure(e)
            print(json.dumps(result.model_dump(mode="json"), indent=2))
            return 1

    result = run_command(service, args)
    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
