"""Pure validation functions for settlement requests.

These functions contain business rules that can be tested in isolation
without any backend or checkout collaborator.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ....domain.errors import BookingAlreadyPaidError, PaymentValidationError


def validate_payment_amounts(
    amount: Decimal,
    custom_amount: Optional[Decimal],
    total_due: Decimal,
) -> Decimal:
    """Validate a payment request's amounts and return the payable amount. Pure function.

    Args:
        amount: The target total amount
        custom_amount: Optional explicit partial amount
        total_due: Outstanding due ceiling

    Returns:
        The amount to settle: ``custom_amount`` when given, else ``amount``.

    Raises:
        PaymentValidationError: If an amount is not positive or the payable
            amount exceeds the due ceiling.
    """
    if amount <= 0:
        raise PaymentValidationError(f"Payment amount must be positive. Got {amount}")
    if total_due <= 0:
        raise PaymentValidationError(f"Total due must be positive. Got {total_due}")

    if custom_amount is not None:
        if custom_amount <= 0:
            raise PaymentValidationError(
                f"Custom amount must be positive. Got {custom_amount}"
            )
        if custom_amount > total_due:
            raise PaymentValidationError(
                f"Custom amount {custom_amount} exceeds total due {total_due}"
            )
        return custom_amount

    if amount > total_due:
        raise PaymentValidationError(
            f"Payment amount {amount} exceeds total due {total_due}"
        )
    return amount


def validate_settlement_limits(safe_limit: Decimal, retry_floor: Decimal) -> None:
    """Validate the per-transaction ceiling and the retry floor.

    Raises:
        ValueError: If the ceiling is not positive or the floor is not below it.
    """
    if safe_limit <= 0:
        raise ValueError(f"Safe transaction limit must be positive. Got {safe_limit}")
    if retry_floor < 0:
        raise ValueError(f"Retry floor cannot be negative. Got {retry_floor}")
    if retry_floor >= safe_limit:
        raise ValueError(
            f"Retry floor {retry_floor} must be below the safe limit {safe_limit}"
        )


def validate_booking_payable(
    status: str,
    payment_status: str,
    payment_method: str,
) -> None:
    """Check that a booking can be paid online now.

    Raises:
        BookingAlreadyPaidError: If the booking is already paid.
        PaymentValidationError: If the cylinder is not delivered yet or the
            booking is set for cash payment.
    """
    if payment_status == "paid":
        raise BookingAlreadyPaidError("This booking is already paid")
    if status != "delivered":
        raise PaymentValidationError(
            "Payment can only be made after the cylinder is delivered. "
            "Please wait for delivery confirmation."
        )
    if payment_method != "online":
        raise PaymentValidationError(
            "This booking is set for cash payment. "
            "Please contact your agent for cash payment."
        )
