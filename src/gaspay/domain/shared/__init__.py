"""Shared domain utilities.

This package is domain-accessible and should not depend on application code.
"""

from .checkout_protocol import (
    CheckoutGatewayLoader,
    CheckoutGatewayProtocol,
    InteractiveCheckoutProtocol,
)
from .payment_backend_protocol import PaymentBackendProtocol

__all__ = [
    "CheckoutGatewayLoader",
    "CheckoutGatewayProtocol",
    "InteractiveCheckoutProtocol",
    "PaymentBackendProtocol",
]
