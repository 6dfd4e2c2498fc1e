"""Settlement domain entities: PaymentRequest, TransactionChunk and SettlementLedger."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


ChunkState = Literal["pending", "in_flight", "settled", "failed"]
SettlementOutcome = Literal["all_settled", "user_cancelled", "hard_failure"]


class PaymentRequest(BaseModel):
    """User-level payment intent. Frozen once settlement begins."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal
    custom_amount: Optional[Decimal] = None
    total_due: Decimal
    description: str = ""
    prefill: dict[str, str] = Field(default_factory=dict)
    notes: dict[str, str] = Field(default_factory=dict)

    @property
    def payable_amount(self) -> Decimal:
        """Amount this request settles: the partial amount if given, else the total."""
        if self.custom_amount is not None:
            return self.custom_amount
        return self.amount


class TransactionChunk(BaseModel):
    """One unit of work in the settlement queue."""

    sequence_number: int = Field(..., ge=1)
    amount: Decimal
    state: ChunkState = "pending"
    attempts: int = 0

    def start(self) -> None:
        """Move the chunk in flight for a new gateway attempt."""
        if self.state != "pending":
            raise ValueError(
                f"Chunk {self.sequence_number} cannot start from state {self.state!r}."
            )
        self.state = "in_flight"
        self.attempts += 1

    def settle(self) -> None:
        if self.state != "in_flight":
            raise ValueError(
                f"Chunk {self.sequence_number} cannot settle from state {self.state!r}."
            )
        self.state = "settled"

    def requeue(self) -> None:
        """Return an in-flight chunk to the queue after an amount-limit rejection."""
        if self.state != "in_flight":
            raise ValueError(
                f"Chunk {self.sequence_number} cannot be requeued from state {self.state!r}."
            )
        self.state = "pending"

    def fail(self) -> None:
        if self.state in ("settled", "failed"):
            raise ValueError(f"Chunk {self.sequence_number} is already {self.state}.")
        self.state = "failed"


class CompletedTransaction(BaseModel):
    """A chunk confirmed by both the gateway and the backend."""

    sequence_number: int
    amount: Decimal
    external_order_id: str
    external_payment_id: str
    external_signature: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    settled_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UnreconciledPayment(BaseModel):
    """A checkout reported success but the backend could not verify it."""

    sequence_number: int
    amount: Decimal
    external_order_id: str
    external_payment_id: str
    external_signature: str
    reason: str
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SettlementLedger(BaseModel):
    """In-memory record of one settlement run."""

    requested_amount: Decimal
    transactions: list[CompletedTransaction] = Field(default_factory=list)
    unreconciled_payments: list[UnreconciledPayment] = Field(default_factory=list)
    outcome: Optional[SettlementOutcome] = None
    message: Optional[str] = None

    @property
    def total_settled(self) -> Decimal:
        return sum((tx.amount for tx in self.transactions), Decimal("0"))

    @property
    def remaining_amount(self) -> Decimal:
        return self.requested_amount - self.total_settled

    @property
    def last_transaction(self) -> Optional[CompletedTransaction]:
        return self.transactions[-1] if self.transactions else None

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not None

    def record(self, transaction: CompletedTransaction) -> None:
        if self.is_terminal:
            raise ValueError("Ledger is already closed.")
        self.transactions.append(transaction)

    def record_unreconciled(self, payment: UnreconciledPayment) -> None:
        self.unreconciled_payments.append(payment)

    def close(self, outcome: SettlementOutcome, message: Optional[str] = None) -> None:
        """Set the terminal outcome. A ledger is closed exactly once."""
        if self.is_terminal:
            raise ValueError(f"Ledger is already closed with outcome {self.outcome!r}.")
        self.outcome = outcome
        self.message = message
