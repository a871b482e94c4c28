"""
WalletService - caller-facing facade over the keystore and the orchestrators.

Every public method returns an OperationResult; exceptions never cross
this boundary.
"""
import logging
from typing import Any, Callable, Dict, Optional

from .client import RemoteClient
from .config import TRANSFER_WAIT_TIMEOUT, WalletConfig
from .exceptions import ConfigurationError, NotFoundError, ValidationError, WalletError
from .identity import attach_credential, get_or_create_wallet, get_wallet
from .identity.key_store import KeyStore
from .identity.types import WalletIdentity
from .models import (
    ApiSession, OperationResult, OrderLineItemRequest, OrderPaymentRequest, OrderRecipient,
    OrderRequest, PhysicalAddress
)
from .purchase import PurchaseAttempt, PurchaseOrchestrator
from .transfer import TransferOrchestrator
from .utils import build_delegation_url, build_product_locator, build_token_locator

logger = logging.getLogger(__name__)

DEFAULT_AGENT_ID = "main"


class WalletService:
    """
    High-level wallet operations for one process.

    Example:
        service = WalletService()
        result = service.setup()
        print(result.value["delegation_url"])
    """

    def __init__(
        self,
        config: Optional[WalletConfig] = None,
        client: Optional[RemoteClient] = None,
        store: Optional[KeyStore] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize the service.

        Args:
            config: SDK configuration (defaults to WalletConfig.from_env())
            client: Remote client (defaults to one built from config)
            store: Keystore (defaults to the file at config.store_path)
            clock: Monotonic clock used by polling
            sleep: Sleep function used by polling
        """
        self.config = config or WalletConfig.from_env()
        self.store = store or KeyStore(self.config.store_path)
        self.client = client or RemoteClient(self.config)
        self.transfers = TransferOrchestrator(self.client, self.config, clock=clock, sleep=sleep)
        self.purchases = PurchaseOrchestrator(self.client, self.config, clock=clock, sleep=sleep)

    def _run(
        self,
        operation: str,
        fn: Callable[[], Any],
        details: Optional[Callable[[], Dict[str, Any]]] = None,
    ) -> OperationResult:
        try:
            return OperationResult.success(fn())
        except WalletError as e:
            logger.info(f"{operation} failed: {type(e).__name__}: {e}")
            return OperationResult.failure(e, details() if details else None)
        except Exception as e:
            logger.exception(f"Unexpected error during {operation}")
            return OperationResult.failure(e, details() if details else None)

    def _identity(self, agent_id: str) -> WalletIdentity:
        identity = get_wallet(agent_id, self.store)
        if identity is None:
            raise NotFoundError(
                f"No wallet found for agent \"{agent_id}\". Run setup first.", agent_id=agent_id
            )
        return identity

    def _configured(self, agent_id: str):
        identity = self._identity(agent_id)
        if not identity.is_usable:
            raise ConfigurationError(
                f"Wallet for agent \"{agent_id}\" is not configured. "
                f"Authorize the signer and run configure with the wallet address and API key."
            )
        session = ApiSession.create(self.config.api_base_url, identity.api_key)
        return identity, session

    def setup(self, agent_id: str = DEFAULT_AGENT_ID) -> OperationResult:
        """Create the agent's signer (once) and return where to authorize it."""
        def run() -> Dict[str, Any]:
            identity = get_or_create_wallet(agent_id, self.store)
            if identity.is_usable:
                return {
                    "agent_id": agent_id,
                    "address": identity.address,
                    "already_configured": True,
                    "custody_address": identity.custody_address,
                }
            return {
                "agent_id": agent_id,
                "address": identity.address,
                "already_configured": False,
                "delegation_url": build_delegation_url(self.config.delegation_url, identity.address),
            }

        return self._run("setup", run)

    def configure(self, custody_address: str, api_key: str, agent_id: str = DEFAULT_AGENT_ID) -> OperationResult:
        """Attach the custody wallet address and API key from the owner's authorization."""
        def run() -> Dict[str, Any]:
            identity = attach_credential(agent_id, custody_address, api_key, self.store)
            return {
                "agent_id": agent_id,
                "address": identity.address,
                "custody_address": identity.custody_address,
                "configured_at": identity.credential.configured_at,
            }

        return self._run("configure", run)

    def wallet_info(self, agent_id: str = DEFAULT_AGENT_ID) -> OperationResult:
        def run() -> Dict[str, Any]:
            identity = self._identity(agent_id)
            info = {
                "agent_id": agent_id,
                "address": identity.address,
                "created_at": identity.created_at,
                "configured": identity.is_usable,
                "custody_address": identity.custody_address,
                "environment": self.config.environment,
            }
            if identity.credential:
                info["configured_at"] = identity.credential.configured_at
            else:
                info["delegation_url"] = build_delegation_url(self.config.delegation_url, identity.address)
            return info

        return self._run("wallet info", run)

    def balance(self, agent_id: str = DEFAULT_AGENT_ID) -> OperationResult:
        def run():
            identity, session = self._configured(agent_id)
            return self.client.get_balances(session, identity.custody_address)

        return self._run("balance", run)

    def transfer(
        self,
        to: str,
        amount: str,
        token: str = "usdc",
        agent_id: str = DEFAULT_AGENT_ID,
        wait: bool = False,
        timeout: float = TRANSFER_WAIT_TIMEOUT,
    ) -> OperationResult:
        """
        Send tokens from the custody wallet.

        With ``wait`` the transfer is polled until it settles or ``timeout``
        seconds pass; the returned status may then still be pending.
        """
        def run():
            identity, session = self._configured(agent_id)
            if not token or not token.strip():
                raise ValidationError("Token is required", field="token")
            tx = self.transfers.transfer(
                session, identity, identity.custody_address, to, build_token_locator(token), amount
            )
            if wait and not tx.status.is_terminal:
                tx = self.transfers.wait_for_terminal(session, identity, tx.id, timeout=timeout)
            return tx

        return self._run("transfer", run)

    def transaction_status(
        self,
        transaction_id: str,
        agent_id: str = DEFAULT_AGENT_ID,
        wait: bool = False,
        timeout: float = TRANSFER_WAIT_TIMEOUT,
    ) -> OperationResult:
        def run():
            identity, session = self._configured(agent_id)
            if wait:
                return self.transfers.wait_for_terminal(session, identity, transaction_id, timeout=timeout)
            return self.transfers.get_status(session, identity, transaction_id)

        return self._run("transaction status", run)

    def purchase(
        self,
        product: str,
        email: str,
        name: str,
        line1: str,
        city: str,
        postal_code: str,
        country: str,
        line2: Optional[str] = None,
        state: Optional[str] = None,
        currency: str = "usdc",
        agent_id: str = DEFAULT_AGENT_ID,
    ) -> OperationResult:
        """
        Buy a product and pay from the custody wallet.

        Args:
            product: ASIN, product URL or ``amazon:`` locator
            email: Recipient and receipt email
            name, line1, line2, city, state, postal_code, country: Shipping address
            currency: Payment currency
            agent_id: Agent whose wallet pays

        On failure after the order was created, ``error.details`` holds the
        ``order_id``, ``transaction_id`` and ``client_secret`` to pass to
        ``complete_purchase``.
        """
        def run():
            identity, session = self._configured(agent_id)
            if not product or not product.strip():
                raise ValidationError("Product is required", field="product")
            request = OrderRequest(
                recipient=OrderRecipient(
                    email=email or "",
                    physical_address=PhysicalAddress(
                        name=name or "",
                        line1=line1 or "",
                        line2=line2,
                        city=city or "",
                        state=state,
                        postal_code=postal_code or "",
                        country=country or "",
                    ),
                ),
                payment=OrderPaymentRequest(
                    receipt_email=email or "",
                    currency=currency,
                    payer_address=identity.custody_address,
                ),
                line_items=[OrderLineItemRequest(product_locator=build_product_locator(product.strip()))],
            )
            return self.purchases.purchase(session, identity, request, attempt)

        attempt = PurchaseAttempt()
        return self._run("purchase", run, attempt.recovery_details)

    def complete_purchase(
        self,
        order_id: str,
        transaction_id: str,
        client_secret: Optional[str] = None,
        agent_id: str = DEFAULT_AGENT_ID,
    ) -> OperationResult:
        """Finish a purchase interrupted after its payment was approved."""
        def run():
            identity, session = self._configured(agent_id)
            return self.purchases.resume(
                session, order_id, identity.custody_address, transaction_id, client_secret
            )

        return self._run(
            "complete purchase",
            run,
            lambda: {"order_id": order_id, "transaction_id": transaction_id, "client_secret": client_secret},
        )

    def order_status(
        self,
        order_id: str,
        client_secret: Optional[str] = None,
        agent_id: str = DEFAULT_AGENT_ID,
    ) -> OperationResult:
        def run():
            _, session = self._configured(agent_id)
            if not order_id:
                raise ValidationError("Order ID is required", field="order_id")
            return self.client.get_order(session, order_id, client_secret)

        return self._run("order status", run)
