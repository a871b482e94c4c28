"""
Data models for the agent wallet SDK.

Remote JSON is normalized into these models once, at the client boundary.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigurationError, ProtocolError


class TransactionStatus(str, Enum):
    """Lifecycle status of a remote wallet transaction"""
    CREATED = "created"
    AWAITING_APPROVAL = "awaiting-approval"
    PENDING = "pending"
    SUCCESS = "success"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "TransactionStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_success(self) -> bool:
        return self in (TransactionStatus.SUCCESS, TransactionStatus.COMPLETED)

    @property
    def is_failure(self) -> bool:
        return self in (
            TransactionStatus.FAILED,
            TransactionStatus.REJECTED,
            TransactionStatus.CANCELLED,
        )

    @property
    def is_terminal(self) -> bool:
        return self.is_success or self.is_failure


class OrderPhase(str, Enum):
    """Phase of a purchase order"""
    QUOTE = "quote"
    PAYMENT = "payment"
    DELIVERY = "delivery"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "OrderPhase":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (OrderPhase.COMPLETED, OrderPhase.FAILED)

    def can_transition_to(self, next_phase: "OrderPhase") -> bool:
        """
        Whether an order may move from this phase to ``next_phase``.

        Phases only move forward, except that ``failed`` is reachable from
        anywhere. Unknown phases are not judged.
        """
        if next_phase is OrderPhase.FAILED:
            return True
        if self is OrderPhase.FAILED:
            return False
        if OrderPhase.UNKNOWN in (self, next_phase):
            return True
        return _PHASE_RANK[next_phase] >= _PHASE_RANK[self]


_PHASE_RANK = {
    OrderPhase.QUOTE: 0,
    OrderPhase.PAYMENT: 1,
    OrderPhase.DELIVERY: 2,
    OrderPhase.COMPLETED: 3,
}


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def _normalize(cls, fields: Dict[str, Any], what: str):
        try:
            return cls.model_validate(fields)
        except PydanticValidationError as e:
            raise ProtocolError(f"Unexpected {what} response shape: {e}") from e


class ApiSession(BaseModel):
    """Endpoint and API key threaded through every remote call"""
    model_config = ConfigDict(frozen=True)

    endpoint_base: str
    api_key: str = Field(repr=False)

    @classmethod
    def create(cls, endpoint_base: str, api_key: Optional[str]) -> "ApiSession":
        if not api_key:
            raise ConfigurationError("API key is required. Configure the wallet with its API key first.")
        return cls(endpoint_base=endpoint_base.rstrip("/"), api_key=api_key)


# ---------------------------------------------------------------------------
# Wallet transactions
# ---------------------------------------------------------------------------

class OnChainInfo(_ApiModel):
    status: Optional[str] = None
    chain: Optional[str] = None
    tx_id: Optional[str] = Field(None, alias="txId")
    hash: Optional[str] = None


class PendingApproval(_ApiModel):
    """Challenge the delegated signer must sign before submission"""
    signer: Optional[str] = None
    message: Optional[str] = None


class RemoteTransaction(_ApiModel):
    """Transaction as reported by the remote wallet service"""
    id: str
    status: TransactionStatus = TransactionStatus.UNKNOWN
    tx_id: Optional[str] = Field(None, alias="txId")
    hash: Optional[str] = None
    explorer_link: Optional[str] = Field(None, alias="explorerLink")
    on_chain: Optional[OnChainInfo] = Field(None, alias="onChain")
    pending_approvals: List[PendingApproval] = Field(default_factory=list)
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False, exclude=True)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value: Any) -> TransactionStatus:
        return TransactionStatus.parse(value)

    @classmethod
    def from_api(cls, data: Any, fallback_id: Optional[str] = None) -> "RemoteTransaction":
        """
        Normalize a transaction response.

        Args:
            data: Decoded JSON body
            fallback_id: Id to use when the body omits one (approval responses)

        Raises:
            ProtocolError: If the body is not an object or carries no id
        """
        if not isinstance(data, dict):
            raise ProtocolError(f"Expected a transaction object, got {type(data).__name__}")

        tx_id = data.get("id") or fallback_id
        if not tx_id:
            raise ProtocolError(f"Transaction response is missing an id: {data}")

        approvals = data.get("approvals") or {}
        pending = approvals.get("pending") if isinstance(approvals, dict) else None

        fields = {
            "id": tx_id,
            "status": data.get("status"),
            "txId": data.get("txId"),
            "hash": data.get("hash"),
            "explorerLink": data.get("explorerLink"),
            "onChain": data.get("onChain") if isinstance(data.get("onChain"), dict) else None,
            "pending_approvals": [p for p in (pending or []) if isinstance(p, dict)],
            "raw": data,
        }
        return cls._normalize(fields, "transaction")

    @property
    def awaiting_approval(self) -> bool:
        return self.status is TransactionStatus.AWAITING_APPROVAL

    def on_chain_reference(self) -> Optional[str]:
        """
        Network-level transaction id, if the service has reported one.

        Lookup order:
        1. ``onChain.txId``
        2. top-level ``txId``
        3. only once the status is success/completed: ``hash``,
           ``onChain.hash``, ``transactionHash``, ``signature``
        """
        if self.on_chain and self.on_chain.tx_id:
            return self.on_chain.tx_id
        if self.tx_id:
            return self.tx_id
        if not self.status.is_success:
            return None

        fallbacks = [
            self.hash,
            self.on_chain.hash if self.on_chain else None,
            self.raw.get("transactionHash"),
            self.raw.get("signature"),
        ]
        for candidate in fallbacks:
            if isinstance(candidate, str) and candidate:
                return candidate
        return None


class TokenBalance(_ApiModel):
    token: str
    amount: str
    decimals: int = 9
    raw_amount: Optional[str] = Field(None, alias="rawAmount")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "TokenBalance":
        raw_amount = data.get("rawAmount")
        return cls._normalize({
            "token": data.get("symbol") or "Unknown",
            "amount": str(data.get("amount") or "0"),
            "decimals": data.get("decimals") or 9,
            "rawAmount": str(raw_amount) if raw_amount is not None else None,
        }, "balance")


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

class Money(_ApiModel):
    amount: str
    currency: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_str(cls, value: Any) -> str:
        return str(value)


def _money(value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, dict) or value.get("amount") is None:
        return None
    currency = value.get("currency")
    return {"amount": value["amount"], "currency": currency if isinstance(currency, str) else None}


class OrderQuote(_ApiModel):
    status: Optional[str] = None
    total_price: Optional[Money] = Field(None, alias="totalPrice")


class FailureReason(_ApiModel):
    code: Optional[str] = None
    message: Optional[str] = None


class OrderPayment(_ApiModel):
    status: Optional[str] = None
    serialized_transaction: Optional[str] = None
    failure_reason: Optional[FailureReason] = Field(None, alias="failureReason")


class PackageTracking(_ApiModel):
    carrier_name: Optional[str] = Field(None, alias="carrierName")
    tracking_number: Optional[str] = Field(None, alias="carrierTrackingNumber")


class DeliveryItem(_ApiModel):
    status: Optional[str] = None
    package_tracking: Optional[PackageTracking] = Field(None, alias="packageTracking")


class OrderDelivery(_ApiModel):
    status: Optional[str] = None
    items: List[DeliveryItem] = Field(default_factory=list)


class LineItem(_ApiModel):
    title: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[Money] = None


class Order(_ApiModel):
    """Purchase order as reported by the order service"""
    order_id: str = Field(..., alias="orderId")
    phase: OrderPhase = OrderPhase.UNKNOWN
    quote: Optional[OrderQuote] = None
    payment: Optional[OrderPayment] = None
    delivery: Optional[OrderDelivery] = None
    line_items: List[LineItem] = Field(default_factory=list, alias="lineItems")
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False, exclude=True)

    @field_validator("phase", mode="before")
    @classmethod
    def parse_phase(cls, value: Any) -> OrderPhase:
        return OrderPhase.parse(value)

    @classmethod
    def from_api(cls, data: Any, fallback_id: Optional[str] = None) -> "Order":
        """
        Normalize an order response.

        Sub-objects in an unexpected shape are dropped rather than failing
        the whole order.

        Args:
            data: Decoded JSON body
            fallback_id: Id to use when the body omits one (the order id the
                request was made for)

        Raises:
            ProtocolError: If the body is not an object or carries no order id
        """
        if not isinstance(data, dict):
            raise ProtocolError(f"Expected an order object, got {type(data).__name__}")
        order_id = data.get("orderId") or fallback_id
        if not order_id:
            raise ProtocolError(f"Order response is missing an orderId: {data}")

        payment = data.get("payment")
        if isinstance(payment, dict):
            preparation = payment.get("preparation") if isinstance(payment.get("preparation"), dict) else {}
            payment = {
                "status": payment.get("status"),
                "serialized_transaction": preparation.get("serializedTransaction"),
                "failureReason": payment.get("failureReason") if isinstance(payment.get("failureReason"), dict) else None,
            }
        else:
            payment = None

        line_items = []
        items = data.get("lineItems")
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict):
                continue
            metadata = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
            line_items.append({
                "title": metadata.get("title"),
                "image_url": metadata.get("imageUrl"),
                "price": _money(metadata.get("price")),
            })

        quote = data.get("quote")
        if isinstance(quote, dict):
            quote = {"status": quote.get("status"), "totalPrice": _money(quote.get("totalPrice"))}
        else:
            quote = None

        delivery = data.get("delivery")
        if isinstance(delivery, dict):
            delivery_items = delivery.get("items")
            delivery = {
                "status": delivery.get("status"),
                "items": [
                    {
                        "status": item.get("status"),
                        "packageTracking": (
                            item.get("packageTracking") if isinstance(item.get("packageTracking"), dict) else None
                        ),
                    }
                    for item in (delivery_items if isinstance(delivery_items, list) else [])
                    if isinstance(item, dict)
                ],
            }
        else:
            delivery = None

        fields = {
            "orderId": order_id,
            "phase": data.get("phase"),
            "quote": quote,
            "payment": payment,
            "delivery": delivery,
            "lineItems": line_items,
            "raw": data,
        }
        return cls._normalize(fields, "order")

    @property
    def payment_status(self) -> Optional[str]:
        return self.payment.status if self.payment else None

    @property
    def delivery_status(self) -> Optional[str]:
        return self.delivery.status if self.delivery else None

    @property
    def serialized_transaction(self) -> Optional[str]:
        return self.payment.serialized_transaction if self.payment else None

    @property
    def failure_reason(self) -> Optional[FailureReason]:
        return self.payment.failure_reason if self.payment else None

    @property
    def title(self) -> Optional[str]:
        return self.line_items[0].title if self.line_items else None

    @property
    def tracking(self) -> List[PackageTracking]:
        if not self.delivery:
            return []
        return [item.package_tracking for item in self.delivery.items if item.package_tracking]


class CreatedOrder(_ApiModel):
    order: Order
    client_secret: Optional[str] = Field(None, repr=False)


# ---------------------------------------------------------------------------
# Order requests
# ---------------------------------------------------------------------------

class PhysicalAddress(_ApiModel):
    name: str
    line1: str
    line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: str = Field(..., alias="postalCode")
    country: str


class OrderRecipient(_ApiModel):
    email: str
    physical_address: PhysicalAddress = Field(..., alias="physicalAddress")


class OrderPaymentRequest(_ApiModel):
    receipt_email: str = Field(..., alias="receiptEmail")
    method: str = "solana"
    currency: str = "usdc"
    payer_address: str = Field(..., alias="payerAddress")


class OrderLineItemRequest(_ApiModel):
    product_locator: str = Field(..., alias="productLocator")


class OrderRequest(_ApiModel):
    """Body of an order creation request"""
    recipient: OrderRecipient
    payment: OrderPaymentRequest
    line_items: List[OrderLineItemRequest] = Field(..., alias="lineItems")

    def missing_fields(self) -> List[str]:
        """Names of required fields that are empty."""
        address = self.recipient.physical_address
        required = {
            "recipient.email": self.recipient.email,
            "recipient.physicalAddress.name": address.name,
            "recipient.physicalAddress.line1": address.line1,
            "recipient.physicalAddress.city": address.city,
            "recipient.physicalAddress.postalCode": address.postal_code,
            "recipient.physicalAddress.country": address.country,
            "payment.receiptEmail": self.payment.receipt_email,
            "payment.currency": self.payment.currency,
            "payment.payerAddress": self.payment.payer_address,
        }
        missing = [name for name, value in required.items() if not (value or "").strip()]
        if not self.line_items:
            missing.append("lineItems")
        missing.extend(
            f"lineItems[{index}].productLocator"
            for index, item in enumerate(self.line_items)
            if not item.product_locator.strip()
        )
        return missing

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PurchaseResult(_ApiModel):
    """Outcome of a confirmed purchase"""
    order: Order
    transaction_id: str
    on_chain_reference: str
    explorer_link: str
    client_secret: Optional[str] = Field(None, repr=False)

    @property
    def order_id(self) -> str:
        return self.order.order_id


# ---------------------------------------------------------------------------
# Caller-facing results
# ---------------------------------------------------------------------------

class ErrorInfo(_ApiModel):
    kind: str
    message: str
    status_code: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class OperationResult(_ApiModel):
    """Result or typed failure returned by the wallet facade"""
    ok: bool
    value: Any = None
    error: Optional[ErrorInfo] = None

    @classmethod
    def success(cls, value: Any) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: Exception, details: Optional[Dict[str, Any]] = None) -> "OperationResult":
        """
        Failure result for ``exc``.

        ``details`` carries whatever the caller needs to retry or resume,
        e.g. the order id and client secret of an interrupted purchase.
        """
        return cls(
            ok=False,
            error=ErrorInfo(
                kind=type(exc).__name__,
                message=str(exc),
                status_code=getattr(exc, "status_code", None),
                details={key: value for key, value in (details or {}).items() if value is not None},
            ),
        )
