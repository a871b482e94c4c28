"""
Exceptions for the agent wallet SDK.
"""
import json
from typing import Any, Dict, Optional, Tuple

_FAILURE_CODE_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("code",),
    ("error", "code"),
    ("failureReason", "code"),
    ("payment", "failureReason", "code"),
)


def _lookup(data: Any, path: Tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class WalletError(Exception):
    """Base exception for all wallet SDK errors."""
    pass


class ConfigurationError(WalletError):
    """Raised when a credential, API key or endpoint setting is missing or invalid."""
    pass


class NotFoundError(WalletError):
    """Raised when no wallet identity exists for an agent."""

    def __init__(self, message: str, agent_id: Optional[str] = None):
        self.agent_id = agent_id
        super().__init__(message)


class KeyNotFoundError(NotFoundError):
    """Raised when signing is requested for an agent without a keypair."""
    pass


class ValidationError(WalletError):
    """Raised when a required request field is missing or malformed."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class RemoteConnectionError(WalletError):
    """Raised when the remote service cannot be reached."""
    pass


class RemoteError(WalletError):
    """Raised when the remote service returns a non-2xx response."""

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Remote service returned HTTP {status_code}: {body}")

    @property
    def json_body(self) -> Optional[Dict[str, Any]]:
        """Response body parsed as a JSON object, or None."""
        try:
            data = json.loads(self.body)
        except (TypeError, ValueError):
            return None
        return data if isinstance(data, dict) else None

    @property
    def failure_code(self) -> Optional[str]:
        """
        Machine-readable failure code carried in the response body.

        Looks at ``code``, ``error.code``, ``failureReason.code`` and
        ``payment.failureReason.code``, in that order.
        """
        data = self.json_body
        if not data:
            return None

        for path in _FAILURE_CODE_PATHS:
            code = _lookup(data, path)
            if isinstance(code, str) and code:
                return code
        return None

    @property
    def is_transient(self) -> bool:
        """Whether a retry of the same read may succeed."""
        return self.status_code == 429 or self.status_code >= 500


class OperationFailedError(RemoteError):
    """Raised by orchestrators when a remote step fails for an unrecognized reason."""

    def __init__(self, operation: str, cause: RemoteError):
        self.operation = operation
        super().__init__(
            cause.status_code,
            cause.body,
            f"Failed to {operation}: HTTP {cause.status_code} {cause.body}",
        )


class ProtocolError(WalletError):
    """Raised when a successful response does not have the expected shape."""
    pass


class InsufficientFundsError(WalletError):
    """Raised when the paying wallet cannot cover a transfer or order."""
    pass


class ApprovalMissingError(WalletError):
    """Raised when the remote service omits an expected approval challenge."""

    def __init__(self, message: str, transaction_id: Optional[str] = None):
        self.transaction_id = transaction_id
        super().__init__(message)


class SigningError(WalletError):
    """Raised when an approval challenge cannot be decoded or signed."""
    pass


class TransactionFailedError(WalletError):
    """Raised when a remote transaction reaches a failure status mid-purchase."""

    def __init__(self, message: str, transaction_id: Optional[str] = None, status: Optional[str] = None):
        self.transaction_id = transaction_id
        self.status = status
        super().__init__(message)


class BroadcastTimeoutError(WalletError):
    """
    Raised when no on-chain reference appears before the broadcast deadline.

    Carries the order and transaction ids so the purchase can be resumed.
    """

    def __init__(
        self,
        message: str,
        transaction_id: Optional[str] = None,
        order_id: Optional[str] = None,
        last_status: Optional[str] = None,
    ):
        self.transaction_id = transaction_id
        self.order_id = order_id
        self.last_status = last_status
        super().__init__(message)
