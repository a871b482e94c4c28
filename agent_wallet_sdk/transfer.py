"""
TransferOrchestrator - drives one token transfer through create, approve and settle.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from .client import RemoteClient
from .config import POLL_INTERVAL, TRANSFER_WAIT_TIMEOUT, WalletConfig
from .exceptions import (
    ConfigurationError, InsufficientFundsError, OperationFailedError, RemoteError, ValidationError
)
from .identity.types import WalletIdentity
from .models import ApiSession, RemoteTransaction, TransactionStatus
from .polling import poll
from .utils import short, signer_locator

logger = logging.getLogger(__name__)

INSUFFICIENT_FUNDS_CODE = "insufficient-funds"


def _validate_amount(amount: str) -> str:
    amount = str(amount).strip()
    if not amount:
        raise ValidationError("Amount is required", field="amount")
    try:
        value = Decimal(amount)
    except InvalidOperation:
        raise ValidationError(f"Amount must be a number, got '{amount}'", field="amount")
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"Amount must be greater than zero, got '{amount}'", field="amount")
    return amount


def _custody_address(identity: WalletIdentity) -> str:
    if not identity.custody_address:
        raise ConfigurationError("Custody wallet address is required. Configure the wallet first.")
    return identity.custody_address


def translate_remote_error(operation: str, error: RemoteError) -> Exception:
    """
    Map a remote failure onto the error a caller can act on.

    Known failure codes become their typed error; anything else is wrapped
    in OperationFailedError naming the step that failed.
    """
    if error.failure_code == INSUFFICIENT_FUNDS_CODE:
        return InsufficientFundsError(f"Insufficient funds to {operation}: {error.body}")
    return OperationFailedError(operation, error)


class TransferOrchestrator:
    """Creates transfers and signs their approval challenge with the agent's key."""

    def __init__(
        self,
        client: RemoteClient,
        config: Optional[WalletConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.client = client
        self.config = config or client.config
        self.clock = clock
        self.sleep = sleep

    def transfer(
        self,
        session: ApiSession,
        identity: WalletIdentity,
        from_custody_address: str,
        to: str,
        token_locator: str,
        amount: str,
    ) -> RemoteTransaction:
        """
        Create a transfer and approve it with the delegated signer.

        Transfers that the service settles without an approval step are
        returned as created, without signing anything.

        Args:
            session: Endpoint and API key
            identity: Agent identity holding the signer key
            from_custody_address: Smart wallet the funds leave
            to: Recipient address
            token_locator: Token locator, e.g. ``solana:sol``
            amount: Decimal amount in token units

        Returns:
            The transaction as reported after approval (or after creation)

        Raises:
            ValidationError: If an argument is empty or the amount is not positive
            InsufficientFundsError: If the wallet cannot cover the transfer
            OperationFailedError: If a remote step fails for another reason
            SigningError: If the approval challenge cannot be signed
        """
        if not from_custody_address:
            raise ConfigurationError("Custody wallet address is required. Configure the wallet first.")
        if not to or not to.strip():
            raise ValidationError("Recipient is required", field="to")
        if not token_locator or not token_locator.strip():
            raise ValidationError("Token is required", field="token")
        amount = _validate_amount(amount)

        signer = identity.signer()
        signer_id = signer_locator(signer.address)

        try:
            created = self.client.create_transfer(
                session, from_custody_address, token_locator, to.strip(), amount, signer_id
            )
        except RemoteError as e:
            raise translate_remote_error("create transfer", e) from e

        logger.info(
            f"Created transfer {short(created.id, 10)} of {amount} {token_locator} "
            f"to {short(to)} (status: {created.status.value})"
        )

        approval = created.pending_approvals[0] if created.pending_approvals else None
        if not created.awaiting_approval or approval is None or not approval.message:
            return created

        signature = signer.sign_challenge(approval.message)

        try:
            approved = self.client.submit_approval(
                session, from_custody_address, created.id, signer_id, signature
            )
        except RemoteError as e:
            raise translate_remote_error("approve transfer", e) from e

        # The approval response may omit the status
        if not approved.raw.get("status"):
            approved = approved.model_copy(update={"status": TransactionStatus.PENDING})
        return approved

    def get_status(self, session: ApiSession, identity: WalletIdentity, transaction_id: str) -> RemoteTransaction:
        """Read a transaction once."""
        custody_address = _custody_address(identity)
        if not transaction_id:
            raise ValidationError("Transaction ID is required", field="transaction_id")
        return self.client.get_transaction(session, custody_address, transaction_id)

    def wait_for_terminal(
        self,
        session: ApiSession,
        identity: WalletIdentity,
        transaction_id: str,
        timeout: float = TRANSFER_WAIT_TIMEOUT,
        interval: float = POLL_INTERVAL,
    ) -> RemoteTransaction:
        """
        Poll a transaction until it succeeds or fails.

        On timeout the last observed (non-terminal) transaction is returned;
        check ``status.is_terminal`` to tell a timeout from a settled transfer.
        """
        custody_address = _custody_address(identity)
        if not transaction_id:
            raise ValidationError("Transaction ID is required", field="transaction_id")

        tx = poll(
            lambda: self.client.get_transaction(session, custody_address, transaction_id),
            lambda t: t.status.is_terminal,
            timeout=timeout,
            interval=interval,
            clock=self.clock,
            sleep=self.sleep,
            description=f"transaction {short(transaction_id, 10)}",
        )
        if not tx.status.is_terminal:
            logger.info(f"Transaction {short(transaction_id, 10)} still {tx.status.value} after {timeout}s")
        return tx
