"""Data Transfer Objects for the settlement application layer."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ...domain.errors import SettlementErrorType
from ...domain.settlement.entities import (
    CompletedTransaction,
    SettlementLedger,
    SettlementOutcome,
    UnreconciledPayment,
)
from ..shared.serializers import Amount, CamelModel


# Backend wire DTOs
class CreateOrderRequestDTO(CamelModel):
    """Ask the backend for a gateway order covering one chunk."""

    amount: Amount
    description: str = ""


class CreateOrderResponseDTO(CamelModel):
    """Backend order response; any of the fields may be missing on a bad reply."""

    order_id: Optional[str] = None
    amount: Optional[Amount] = None
    currency: Optional[str] = None
    key_id: Optional[str] = None
    error: Optional[Any] = None


class VerifyPaymentRequestDTO(CamelModel):
    """Checkout result bound to the chunk amount and the request's due ceiling."""

    order_id: str
    payment_id: str
    signature: str
    amount: Amount
    total_due: Amount
    description: str = ""


class VerifyPaymentResponseDTO(CamelModel):
    """Verification result. Extra keys are settlement metadata from the backend."""

    model_config = ConfigDict(extra="allow")

    success: bool = False
    error: Optional[Any] = None

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


# Checkout DTOs
class CheckoutOptionsDTO(CamelModel):
    """Options the checkout SDK is opened with."""

    key: str
    amount: Amount
    currency: str
    order_id: str
    name: str
    description: str = ""
    prefill: dict[str, str] = Field(default_factory=dict)
    notes: dict[str, str] = Field(default_factory=dict)


class CheckoutSessionDTO(CamelModel):
    """A prepared checkout for one attempt of one chunk."""

    session_id: str = Field(default_factory=lambda: uuid4().hex)
    options: CheckoutOptionsDTO


class CheckoutResultDTO(CamelModel):
    """Terminal signal from the checkout: success, cancellation or provider error."""

    status: Literal["success", "cancelled", "failed"]
    external_order_id: Optional[str] = None
    external_payment_id: Optional[str] = None
    external_signature: Optional[str] = None
    error: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def check_success_fields(self) -> "CheckoutResultDTO":
        if self.status == "success" and not (
            self.external_order_id
            and self.external_payment_id
            and self.external_signature
        ):
            raise ValueError(
                "A successful checkout must carry order id, payment id and signature"
            )
        return self

    @classmethod
    def success(
        cls, order_id: str, payment_id: str, signature: str
    ) -> "CheckoutResultDTO":
        return cls(
            status="success",
            external_order_id=order_id,
            external_payment_id=payment_id,
            external_signature=signature,
        )

    @classmethod
    def cancelled(cls) -> "CheckoutResultDTO":
        return cls(status="cancelled")

    @classmethod
    def failed(cls, error: dict[str, Any]) -> "CheckoutResultDTO":
        return cls(status="failed", error=error)


class SubmitCheckoutResultDTO(CheckoutResultDTO):
    """Checkout outcome posted back by the browser for an awaiting session."""

    session_id: Optional[str] = None

    def to_result(self) -> CheckoutResultDTO:
        return CheckoutResultDTO.model_validate(
            self.model_dump(exclude={"session_id"})
        )


# Progress and results
class ProgressSnapshotDTO(CamelModel):
    """Read-only view of a settlement run at one point in time."""

    model_config = ConfigDict(frozen=True)

    status: Literal["idle", "running", "completed"] = "idle"
    current_sequence: Optional[int] = None
    total_chunks: int = 0
    current_amount: Optional[Amount] = None
    requested_amount: Amount = Decimal("0")
    settled_amount: Amount = Decimal("0")
    awaiting_checkout: bool = False
    outcome: Optional[SettlementOutcome] = None
    message: Optional[str] = None

    @property
    def remaining_amount(self) -> Decimal:
        return self.requested_amount - self.settled_amount


class SettlementResultDTO(BaseModel):
    """Aggregate result of a fully settled request."""

    total_settled: Amount
    transaction_count: int
    last_transaction: Optional[CompletedTransaction]
    ledger: SettlementLedger


# Booking DTOs
class CustomerContactDTO(CamelModel):
    username: Optional[str] = None
    business_name: Optional[str] = None
    email: Optional[str] = None
    phone_no: Optional[str] = None


class BookingDTO(CamelModel):
    """The subset of a cylinder booking the payment flow needs."""

    id: str = Field(..., alias="_id", min_length=1)
    status: str
    payment_status: str = "pending"
    payment_method: str = "online"
    quantity: int = Field(0, ge=0)
    cylinder_price: Amount = Decimal("0")
    customer: Optional[CustomerContactDTO] = None


# API DTOs
class StartSettlementRequestDTO(CamelModel):
    """Request body for starting a settlement run."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "amount": 60000,
                "totalDue": 60000,
                "description": "Payment for stock received from admin",
            }
        }
    )

    amount: Amount
    custom_amount: Optional[Amount] = None
    total_due: Amount
    description: str = Field("", max_length=500)
    prefill: dict[str, str] = Field(default_factory=dict)
    notes: dict[str, str] = Field(default_factory=dict)


class SettlementRunResponseDTO(CamelModel):
    """Current view of a settlement run for polling clients."""

    run_id: str
    progress: ProgressSnapshotDTO
    pending_checkout: Optional[CheckoutSessionDTO] = None
    total_settled: Amount = Decimal("0")
    transactions: list[CompletedTransaction] = Field(default_factory=list)
    unreconciled_payments: list[UnreconciledPayment] = Field(default_factory=list)
    error_type: Optional[SettlementErrorType] = None
    error_message: Optional[str] = None
