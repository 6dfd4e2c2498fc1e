"""Payment requests for customer cylinder bookings."""

from __future__ import annotations

from ...domain.settlement.entities import PaymentRequest
from .checkout_options import build_prefill
from .dtos import BookingDTO
from .use_cases.settlement_validators import validate_booking_payable


def booking_description(booking_id: str) -> str:
    return f"Payment for booking #{booking_id[-8:].upper()}"


def payment_request_from_booking(booking: BookingDTO) -> PaymentRequest:
    """Build the payment request for a delivered, online-paid booking.

    Raises:
        BookingAlreadyPaidError: If the booking is already paid.
        PaymentValidationError: If the booking cannot be paid online yet.
    """
    validate_booking_payable(
        booking.status, booking.payment_status, booking.payment_method
    )

    total = booking.cylinder_price * booking.quantity
    customer = booking.customer
    prefill = (
        build_prefill(
            name=customer.username or customer.business_name,
            email=customer.email,
            phone=customer.phone_no,
        )
        if customer
        else {}
    )
    return PaymentRequest(
        amount=total,
        total_due=total,
        description=booking_description(booking.id),
        prefill=prefill,
        notes={"bookingId": booking.id},
    )
