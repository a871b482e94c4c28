"""
PurchaseOrchestrator - order creation, payment approval, broadcast wait and
payment confirmation for delegated-signer purchases.

A purchase is not successful until the order service has accepted the
payment confirmation carrying the on-chain reference. Funds can move
on-chain without that call, so every path that stops early raises.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .client import RemoteClient
from .config import BROADCAST_WAIT_TIMEOUT, POLL_INTERVAL, WalletConfig
from .exceptions import (
    ApprovalMissingError, BroadcastTimeoutError, ConfigurationError, InsufficientFundsError, ProtocolError,
    RemoteError, TransactionFailedError, ValidationError, WalletError
)
from .identity.types import WalletIdentity
from .models import ApiSession, Order, OrderRequest, PurchaseResult, RemoteTransaction
from .polling import is_transient, poll
from .transfer import INSUFFICIENT_FUNDS_CODE, translate_remote_error
from .utils import short, signer_locator

logger = logging.getLogger(__name__)


class PurchaseState(str, Enum):
    QUOTE_REQUESTED = "quote-requested"
    TX_CREATED = "tx-created"
    SIGNED = "signed"
    AWAITING_BROADCAST = "awaiting-broadcast"
    BROADCAST = "broadcast"
    CONFIRMED = "confirmed"
    FAILED = "failed"


_TRANSITIONS = {
    PurchaseState.QUOTE_REQUESTED: (PurchaseState.TX_CREATED,),
    PurchaseState.TX_CREATED: (PurchaseState.SIGNED,),
    PurchaseState.SIGNED: (PurchaseState.AWAITING_BROADCAST,),
    PurchaseState.AWAITING_BROADCAST: (PurchaseState.BROADCAST,),
    PurchaseState.BROADCAST: (PurchaseState.CONFIRMED,),
    PurchaseState.CONFIRMED: (),
    PurchaseState.FAILED: (),
}

_FAILURE_REASONS = (
    (InsufficientFundsError, "insufficient-funds"),
    (BroadcastTimeoutError, "broadcast-timeout"),
    (ApprovalMissingError, "approval-missing"),
    (TransactionFailedError, "transaction-failed"),
)


@dataclass
class PurchaseAttempt:
    """
    Progress of one purchase.

    Holds everything needed to resume an interrupted purchase: the order id,
    its client secret and the payment transaction id.
    """
    state: PurchaseState = PurchaseState.QUOTE_REQUESTED
    order: Optional[Order] = None
    client_secret: Optional[str] = field(default=None, repr=False)
    transaction_id: Optional[str] = None
    on_chain_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    history: List[PurchaseState] = field(default_factory=lambda: [PurchaseState.QUOTE_REQUESTED])

    @property
    def order_id(self) -> Optional[str]:
        return self.order.order_id if self.order else None

    def advance(self, state: PurchaseState):
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid purchase transition {self.state.value} -> {state.value}")
        logger.info(f"Purchase {short(self.order_id or '', 10)}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, reason: str):
        if self.state in (PurchaseState.CONFIRMED, PurchaseState.FAILED):
            return
        logger.info(f"Purchase {short(self.order_id or '', 10)}: {self.state.value} -> failed ({reason})")
        self.state = PurchaseState.FAILED
        self.failure_reason = reason
        self.history.append(PurchaseState.FAILED)

    def recovery_details(self) -> Dict[str, Optional[str]]:
        """Ids needed to finish this purchase with ``PurchaseOrchestrator.resume``."""
        return {
            "state": self.state.value,
            "order_id": self.order_id,
            "transaction_id": self.transaction_id,
            "client_secret": self.client_secret,
            "on_chain_reference": self.on_chain_reference,
            "failure_reason": self.failure_reason,
        }


def _for_order(order_id: Optional[str]) -> str:
    return f" (order {order_id})" if order_id else ""


def _failure_reason(exc: Exception) -> str:
    for exc_type, reason in _FAILURE_REASONS:
        if isinstance(exc, exc_type):
            return reason
    return type(exc).__name__


class PurchaseOrchestrator:
    """Runs purchases paid from the agent's custody wallet."""

    def __init__(
        self,
        client: RemoteClient,
        config: Optional[WalletConfig] = None,
        broadcast_timeout: float = BROADCAST_WAIT_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.client = client
        self.config = config or client.config or WalletConfig()
        self.broadcast_timeout = broadcast_timeout
        self.poll_interval = poll_interval
        self.clock = clock
        self.sleep = sleep

    def purchase(
        self,
        session: ApiSession,
        identity: WalletIdentity,
        request: OrderRequest,
        attempt: Optional[PurchaseAttempt] = None,
    ) -> PurchaseResult:
        """
        Buy the order's line items and confirm the payment.

        Args:
            session: Endpoint and API key
            identity: Agent identity holding the signer key
            request: Order to place; ``payment.payer_address`` is the custody wallet
            attempt: Optional tracker, updated in place as the purchase progresses

        Returns:
            PurchaseResult with the order as returned by payment confirmation

        Raises:
            ValidationError: If required order fields are missing
            InsufficientFundsError: If the payer cannot cover the order
            ProtocolError: If the order carries no payable transaction for an
                unknown reason, or the transaction has several pending approvals
            ApprovalMissingError: If the transaction has no approval challenge
            SigningError: If the approval challenge cannot be signed
            TransactionFailedError: If the payment transaction fails on-chain
            BroadcastTimeoutError: If no on-chain reference appears in time
            OperationFailedError: If a remote step fails for another reason
        """
        missing = request.missing_fields()
        if missing:
            raise ValidationError(f"Missing required order fields: {', '.join(missing)}", field=missing[0])

        attempt = attempt if attempt is not None else PurchaseAttempt()
        try:
            return self._run(session, identity, request, attempt)
        except Exception as e:
            attempt.fail(_failure_reason(e))
            raise

    def _run(
        self,
        session: ApiSession,
        identity: WalletIdentity,
        request: OrderRequest,
        attempt: PurchaseAttempt,
    ) -> PurchaseResult:
        signer = identity.signer()
        payer = request.payment.payer_address

        try:
            created = self.client.create_order(session, request)
        except RemoteError as e:
            raise translate_remote_error("create order", e) from e

        order = created.order
        attempt.order = order
        attempt.client_secret = created.client_secret
        logger.info(f"Created order {short(order.order_id, 10)} (phase: {order.phase.value})")

        serialized = order.serialized_transaction
        if not serialized:
            reason = order.failure_reason
            if reason and reason.code == INSUFFICIENT_FUNDS_CODE:
                raise InsufficientFundsError(f"Insufficient funds: {reason.message or 'payer balance too low'}")
            raise ProtocolError(
                f"Order created but no serialized transaction returned. "
                f"Payment status: {order.payment_status or 'unknown'}"
            )

        try:
            tx = self.client.create_transaction(session, payer, serialized, signer_locator(signer.address))
        except RemoteError as e:
            raise translate_remote_error("create payment transaction", e) from e
        attempt.transaction_id = tx.id
        attempt.advance(PurchaseState.TX_CREATED)

        challenges = [approval for approval in tx.pending_approvals if approval.message]
        if not challenges:
            raise ApprovalMissingError("Transaction created but no message to sign", transaction_id=tx.id)
        if len(challenges) > 1:
            raise ProtocolError(
                f"Transaction {tx.id} has {len(challenges)} pending approvals; expected exactly one"
            )

        signature = signer.sign_challenge(challenges[0].message)
        attempt.advance(PurchaseState.SIGNED)

        try:
            self.client.submit_approval(session, payer, tx.id, signer_locator(signer.address), signature)
        except RemoteError as e:
            raise translate_remote_error("submit approval", e) from e
        attempt.advance(PurchaseState.AWAITING_BROADCAST)

        reference, _ = self.await_broadcast(session, payer, tx.id, order_id=order.order_id)
        attempt.on_chain_reference = reference
        attempt.advance(PurchaseState.BROADCAST)

        confirmed = self.confirm_payment(
            session, order.order_id, reference, created.client_secret, previous=order
        )
        attempt.order = confirmed
        attempt.advance(PurchaseState.CONFIRMED)

        return PurchaseResult(
            order=confirmed,
            transaction_id=tx.id,
            on_chain_reference=reference,
            explorer_link=self.config.explorer_link(reference),
            client_secret=created.client_secret,
        )

    def await_broadcast(
        self,
        session: ApiSession,
        payer_address: str,
        transaction_id: str,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
        order_id: Optional[str] = None,
    ) -> Tuple[str, RemoteTransaction]:
        """
        Poll the payment transaction until it has an on-chain reference.

        Callable on its own to recover a purchase interrupted after approval.

        Returns:
            (on-chain reference, last transaction read)

        Raises:
            ConfigurationError: If the payer wallet address is empty
            ValidationError: If the transaction id is empty
            TransactionFailedError: If the transaction reaches a failure status
            BroadcastTimeoutError: If no reference appears before the deadline
        """
        if not payer_address:
            raise ConfigurationError("Payer wallet address is required. Configure the wallet first.")
        if not transaction_id:
            raise ValidationError("Transaction ID is required", field="transaction_id")

        timeout = self.broadcast_timeout if timeout is None else timeout
        interval = self.poll_interval if interval is None else interval

        try:
            tx = poll(
                lambda: self.client.get_transaction(session, payer_address, transaction_id),
                lambda t: t.on_chain_reference() is not None or t.status.is_failure,
                timeout=timeout,
                interval=interval,
                clock=self.clock,
                sleep=self.sleep,
                description=f"broadcast of {short(transaction_id, 10)}",
            )
        except WalletError as e:
            # poll only lets a transient error escape once the deadline has passed
            if is_transient(e):
                raise BroadcastTimeoutError(
                    f"Timeout waiting for transaction {transaction_id}{_for_order(order_id)} "
                    f"to be broadcast on-chain: {e}",
                    transaction_id=transaction_id,
                    order_id=order_id,
                ) from e
            if isinstance(e, RemoteError):
                raise translate_remote_error("read payment transaction", e) from e
            raise

        reference = tx.on_chain_reference()
        if reference:
            logger.info(f"Transaction {short(transaction_id, 10)} broadcast as {short(reference, 10)}")
            return reference, tx

        if tx.status.is_failure:
            raise TransactionFailedError(
                f"Transaction {transaction_id} failed: {tx.raw}",
                transaction_id=transaction_id,
                status=tx.status.value,
            )

        raise BroadcastTimeoutError(
            f"Timeout waiting for transaction {transaction_id}{_for_order(order_id)} to be broadcast on-chain "
            f"(last status: {tx.status.value})",
            transaction_id=transaction_id,
            order_id=order_id,
            last_status=tx.status.value,
        )

    def confirm_payment(
        self,
        session: ApiSession,
        order_id: str,
        on_chain_reference: str,
        client_secret: Optional[str] = None,
        previous: Optional[Order] = None,
    ) -> Order:
        """
        Tell the order service which on-chain transaction paid the order.

        Safe to repeat with the same order id and reference.

        Raises:
            ValidationError: If the order id or reference is empty
            OperationFailedError: If the service rejects the confirmation
        """
        if not order_id:
            raise ValidationError("Order ID is required", field="order_id")
        if not on_chain_reference:
            raise ValidationError("On-chain reference is required", field="on_chain_reference")

        try:
            order = self.client.submit_payment_confirmation(
                session, order_id, on_chain_reference, client_secret
            )
        except RemoteError as e:
            logger.error(
                f"Payment confirmation for order {order_id} with {on_chain_reference} failed; "
                f"retry it before reporting the purchase"
            )
            raise translate_remote_error("confirm payment", e) from e

        if previous is not None and not previous.phase.can_transition_to(order.phase):
            logger.warning(
                f"Order {short(order_id, 10)} moved backwards: {previous.phase.value} -> {order.phase.value}"
            )
        logger.info(f"Confirmed payment for order {short(order_id, 10)} (phase: {order.phase.value})")
        return order

    def resume(
        self,
        session: ApiSession,
        order_id: str,
        payer_address: str,
        transaction_id: str,
        client_secret: Optional[str] = None,
    ) -> PurchaseResult:
        """
        Finish a purchase whose payment was approved but never confirmed.

        Waits for the on-chain reference of ``transaction_id`` and submits the
        payment confirmation for ``order_id``.
        """
        if not order_id:
            raise ValidationError("Order ID is required", field="order_id")
        if not payer_address:
            raise ConfigurationError("Payer wallet address is required. Configure the wallet first.")
        if not transaction_id:
            raise ValidationError("Transaction ID is required", field="transaction_id")

        reference, _ = self.await_broadcast(session, payer_address, transaction_id, order_id=order_id)
        order = self.confirm_payment(session, order_id, reference, client_secret)
        return PurchaseResult(
            order=order,
            transaction_id=transaction_id,
            on_chain_reference=reference,
            explorer_link=self.config.explorer_link(reference),
            client_secret=client_secret,
        )
