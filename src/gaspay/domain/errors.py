"""Domain-specific exceptions.

Every terminal settlement failure is one of the ``SettlementError`` subclasses
below. Raw gateway/backend error payloads are mapped onto them once, by the
failure classifier, so the orchestrator only ever deals with these types.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Literal, Optional

if TYPE_CHECKING:
    from .settlement.entities import SettlementLedger

SettlementErrorType = Literal[
    "validation",
    "amount_limit",
    "user_cancelled",
    "verification_failed",
    "transport",
    "gateway",
]


class SettlementError(Exception):
    """Base class for settlement failures.

    ``settled_amount`` is the amount already charged (irreversibly) when the
    error halted the run; ``ledger`` is attached by the orchestrator.
    """

    error_type: SettlementErrorType = "gateway"

    def __init__(
        self,
        message: str,
        *,
        settled_amount: Decimal = Decimal("0"),
        raw: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.settled_amount = settled_amount
        self.raw = raw
        self.ledger: Optional["SettlementLedger"] = None

    def attach_ledger(self, ledger: "SettlementLedger") -> None:
        self.ledger = ledger
        self.settled_amount = ledger.total_settled


class PaymentValidationError(SettlementError, ValueError):
    """Raised for malformed or out-of-range payment requests."""

    error_type: SettlementErrorType = "validation"


class AmountLimitExceededError(SettlementError):
    """Raised when the gateway rejects a transaction for exceeding its limit."""

    error_type: SettlementErrorType = "amount_limit"


class UserCancelledError(SettlementError):
    """Raised when the user dismisses the checkout."""

    error_type: SettlementErrorType = "user_cancelled"


class VerificationFailedError(SettlementError):
    """Raised when the gateway took the money but the backend did not confirm it."""

    error_type: SettlementErrorType = "verification_failed"


class TransportError(SettlementError):
    """Raised for SDK load failures, unreachable backends and malformed responses."""

    error_type: SettlementErrorType = "transport"


class GatewayError(SettlementError):
    """Raised for any other checkout or backend rejection."""

    error_type: SettlementErrorType = "gateway"


class BackendRejectedError(Exception):
    """Raw rejection returned by the backend, before classification.

    ``payload`` is the decoded JSON error body (or the response text).
    """

    def __init__(self, payload: Any, *, status_code: Optional[int] = None) -> None:
        super().__init__(str(payload))
        self.payload = payload
        self.status_code = status_code


class BookingAlreadyPaidError(Exception):
    """Raised when a payment is requested for a booking that is already paid."""
