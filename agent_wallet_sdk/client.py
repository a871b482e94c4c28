"""
RemoteClient - HTTP client for the custodial wallet and order services.
"""
import logging
import urllib.parse
from typing import Any, Dict, List, Optional, Sequence

import requests

from .config import DEFAULT_HTTP_TIMEOUT, WalletConfig
from .exceptions import ProtocolError, RemoteConnectionError, RemoteError
from .models import ApiSession, CreatedOrder, Order, OrderRequest, RemoteTransaction, TokenBalance
from .utils import sanitize_payload, short

WALLETS_API_VERSION = "2025-06-09"
ORDERS_API_VERSION = "2022-06-09"


def _quote(value: str) -> str:
    return urllib.parse.quote(str(value), safe="")


class RemoteClient:
    """
    Stateless request executor for the remote wallet API.

    The client injects the API key header, encodes and decodes JSON and
    turns non-2xx responses into RemoteError. It never retries: only the
    caller knows whether a request is safe to repeat.
    """

    def __init__(
        self,
        config: Optional[WalletConfig] = None,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the client.

        Args:
            config: SDK configuration (used for explorer links and timeout)
            timeout: Per-request timeout in seconds
            http: Optional requests session to reuse
            logger: Optional logger instance to use for debug/info logging
        """
        self.config = config
        if timeout is None:
            timeout = config.http_timeout if config else DEFAULT_HTTP_TIMEOUT
        self.timeout = timeout
        self.http = http or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def call(
        self,
        session: ApiSession,
        method: str,
        path: str,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Execute one request.

        Args:
            session: Endpoint and API key
            method: HTTP method
            path: Path below the endpoint base, starting with '/'
            body: Optional JSON body
            headers: Extra headers
            params: Query string parameters

        Returns:
            Decoded JSON body ({} for an empty body)

        Raises:
            RemoteError: If the service answers with a non-2xx status
            RemoteConnectionError: If the service cannot be reached
            ProtocolError: If a 2xx body is not JSON
        """
        url = f"{session.endpoint_base}{path}"
        request_headers = {
            "X-API-KEY": session.api_key,
            "Content-Type": "application/json",
        }
        if headers:
            request_headers.update(headers)

        if body is not None:
            self.logger.debug(f"{method} {path} body={sanitize_payload(body)}")
        else:
            self.logger.debug(f"{method} {path}")

        try:
            response = self.http.request(
                method,
                url,
                json=body,
                headers=request_headers,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.logger.warning(f"{method} {path} failed: {e}")
            raise RemoteConnectionError(f"Request to {path} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            self.logger.info(f"{method} {path} returned HTTP {response.status_code}")
            raise RemoteError(response.status_code, response.text)

        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            self.logger.warning(f"Unexpected Content-Type: {content_type} (expected application/json)")

        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON response from {path}: {e}")

    # ------------------------------------------------------------------
    # Wallets API
    # ------------------------------------------------------------------

    def _wallet_path(self, wallet_address: str, suffix: str = "") -> str:
        return f"/{WALLETS_API_VERSION}/wallets/{_quote(wallet_address)}{suffix}"

    def get_balances(
        self,
        session: ApiSession,
        wallet_address: str,
        tokens: Sequence[str] = ("sol", "usdc"),
        chain: str = "solana",
    ) -> List[TokenBalance]:
        data = self.call(
            session,
            "GET",
            self._wallet_path(wallet_address, "/balances"),
            params={"tokens": ",".join(tokens), "chains": chain},
        )
        if not isinstance(data, list):
            return []
        return [TokenBalance.from_api(item) for item in data if isinstance(item, dict)]

    def create_transfer(
        self,
        session: ApiSession,
        wallet_address: str,
        token_locator: str,
        recipient: str,
        amount: str,
        signer: str,
    ) -> RemoteTransaction:
        data = self.call(
            session,
            "POST",
            self._wallet_path(wallet_address, f"/tokens/{_quote(token_locator)}/transfers"),
            body={"recipient": recipient, "amount": amount, "signer": signer},
        )
        return self._transaction(data)

    def get_transaction(self, session: ApiSession, wallet_address: str, transaction_id: str) -> RemoteTransaction:
        data = self.call(
            session,
            "GET",
            self._wallet_path(wallet_address, f"/transactions/{_quote(transaction_id)}"),
        )
        return self._transaction(data, transaction_id)

    def create_transaction(
        self,
        session: ApiSession,
        wallet_address: str,
        serialized_transaction: str,
        signer: Optional[str] = None,
    ) -> RemoteTransaction:
        params: Dict[str, Any] = {"transaction": serialized_transaction}
        if signer:
            params["signer"] = signer
        data = self.call(
            session,
            "POST",
            self._wallet_path(wallet_address, "/transactions"),
            body={"params": params},
        )
        return self._transaction(data)

    def submit_approval(
        self,
        session: ApiSession,
        wallet_address: str,
        transaction_id: str,
        signer: str,
        signature: str,
    ) -> RemoteTransaction:
        data = self.call(
            session,
            "POST",
            self._wallet_path(wallet_address, f"/transactions/{_quote(transaction_id)}/approvals"),
            body={"approvals": [{"signer": signer, "signature": signature}]},
        )
        self.logger.info(f"Submitted approval for transaction {short(transaction_id, 10)}")
        return self._transaction(data, transaction_id)

    def _transaction(self, data: Any, fallback_id: Optional[str] = None) -> RemoteTransaction:
        tx = RemoteTransaction.from_api(data, fallback_id)
        reference = tx.on_chain_reference()
        if reference and not tx.explorer_link and self.config:
            tx = tx.model_copy(update={"explorer_link": self.config.explorer_link(reference)})
        return tx

    # ------------------------------------------------------------------
    # Orders API
    # ------------------------------------------------------------------

    @staticmethod
    def _order_headers(client_secret: Optional[str]) -> Optional[Dict[str, str]]:
        return {"Authorization": client_secret} if client_secret else None

    def create_order(self, session: ApiSession, request: OrderRequest) -> CreatedOrder:
        data = self.call(session, "POST", f"/{ORDERS_API_VERSION}/orders", body=request.to_api())
        if not isinstance(data, dict):
            raise ProtocolError(f"Expected an order object, got {type(data).__name__}")

        # The service wraps the order as {order, clientSecret}; accept a bare order too
        order_data = data["order"] if isinstance(data.get("order"), dict) else data
        return CreatedOrder(order=Order.from_api(order_data), client_secret=data.get("clientSecret"))

    def get_order(self, session: ApiSession, order_id: str, client_secret: Optional[str] = None) -> Order:
        data = self.call(
            session,
            "GET",
            f"/{ORDERS_API_VERSION}/orders/{_quote(order_id)}",
            headers=self._order_headers(client_secret),
        )
        return Order.from_api(data, order_id)

    def submit_payment_confirmation(
        self,
        session: ApiSession,
        order_id: str,
        on_chain_reference: str,
        client_secret: Optional[str] = None,
    ) -> Order:
        data = self.call(
            session,
            "POST",
            f"/{ORDERS_API_VERSION}/orders/{_quote(order_id)}/payment",
            body={"type": "crypto-tx-id", "txId": on_chain_reference},
            headers=self._order_headers(client_secret),
        )
        if isinstance(data, dict) and isinstance(data.get("order"), dict):
            data = data["order"]
        return Order.from_api(data, order_id)
