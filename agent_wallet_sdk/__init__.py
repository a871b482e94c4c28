"""
Agent wallet SDK - delegated-signer transfers and purchases for autonomous agents.

The agent holds its Ed25519 key locally and only ever sends signatures to
the custodial wallet service.
"""
from .version import __version__
from .client import RemoteClient
from .config import WalletConfig
from .exceptions import (
    WalletError, ConfigurationError, NotFoundError, KeyNotFoundError, ValidationError,
    RemoteConnectionError, RemoteError, OperationFailedError, ProtocolError,
    InsufficientFundsError, ApprovalMissingError, SigningError, TransactionFailedError,
    BroadcastTimeoutError
)
from .identity import (
    get_or_create_wallet, get_wallet, attach_credential, delete_wallet, list_wallets,
    is_wallet_configured, WalletIdentity, DelegationCredential, KeyStore
)
from .models import (
    ApiSession, TransactionStatus, OrderPhase, RemoteTransaction, TokenBalance, Order,
    OrderRequest, PurchaseResult, OperationResult
)
from .polling import poll
from .purchase import PurchaseOrchestrator, PurchaseAttempt, PurchaseState
from .signer import LocalSigner, Signer, sign_message, verify_signature
from .transfer import TransferOrchestrator
from .utils import build_delegation_url, build_token_locator, build_product_locator
from .wallet import WalletService

__all__ = [
    "__version__",
    "RemoteClient",
    "WalletConfig",
    "WalletService",
    "TransferOrchestrator",
    "PurchaseOrchestrator",
    "PurchaseAttempt",
    "PurchaseState",
    "poll",
    "LocalSigner",
    "Signer",
    "sign_message",
    "verify_signature",
    "get_or_create_wallet",
    "get_wallet",
    "attach_credential",
    "delete_wallet",
    "list_wallets",
    "is_wallet_configured",
    "WalletIdentity",
    "DelegationCredential",
    "KeyStore",
    "ApiSession",
    "TransactionStatus",
    "OrderPhase",
    "RemoteTransaction",
    "TokenBalance",
    "Order",
    "OrderRequest",
    "PurchaseResult",
    "OperationResult",
    "build_delegation_url",
    "build_token_locator",
    "build_product_locator",
    "WalletError",
    "ConfigurationError",
    "NotFoundError",
    "KeyNotFoundError",
    "ValidationError",
    "RemoteConnectionError",
    "RemoteError",
    "OperationFailedError",
    "ProtocolError",
    "InsufficientFundsError",
    "ApprovalMissingError",
    "SigningError",
    "TransactionFailedError",
    "BroadcastTimeoutError",
]
