"""Building the options a checkout is opened with."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from ...domain.errors import TransportError
from .dtos import CheckoutOptionsDTO, CreateOrderResponseDTO

logger = logging.getLogger(__name__)

_MOBILE_RE = re.compile(r"^[6-9]\d{9}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def format_phone_number(phone: Any) -> str:
    """Normalise a phone number to a 10-digit Indian mobile number, or ``""``.

    Non-digits are stripped, a leading ``91`` country code is dropped from
    12-digit numbers and longer numbers keep their last 10 digits.
    """
    if not phone:
        return ""
    cleaned = re.sub(r"\D", "", str(phone).strip())
    if cleaned.startswith("91") and len(cleaned) == 12:
        cleaned = cleaned[2:]
    if len(cleaned) > 10:
        cleaned = cleaned[-10:]
    if _MOBILE_RE.match(cleaned):
        return cleaned
    logger.debug("Dropping invalid phone number from prefill (length %d)", len(cleaned))
    return ""


def build_prefill(
    name: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> dict[str, str]:
    """Checkout prefill with only the fields that are present and well formed."""
    prefill: dict[str, str] = {}
    if name and name.strip():
        prefill["name"] = name.strip()
    if email and _EMAIL_RE.match(email.strip()):
        prefill["email"] = email.strip()
    contact = format_phone_number(phone)
    if contact:
        prefill["contact"] = contact
    return prefill


def build_checkout_options(
    order: CreateOrderResponseDTO,
    *,
    merchant_name: str,
    description: str,
    default_currency: str = "INR",
    prefill: Optional[dict[str, str]] = None,
    notes: Optional[dict[str, str]] = None,
) -> CheckoutOptionsDTO:
    """Turn a backend order into checkout options.

    Raises:
        TransportError: If the order has no id, no gateway key or no amount.
    """
    if not order.order_id:
        raise TransportError("Failed to create payment order", raw=order.error)
    if not order.key_id:
        raise TransportError(
            "Payment gateway configuration error. Please contact support."
        )
    if order.amount is None:
        raise TransportError("Payment order response is missing the amount")

    return CheckoutOptionsDTO(
        key=order.key_id,
        amount=order.amount,
        currency=order.currency or default_currency,
        order_id=order.order_id,
        name=merchant_name,
        description=description,
        prefill=dict(prefill or {}),
        notes=dict(notes or {}),
    )
