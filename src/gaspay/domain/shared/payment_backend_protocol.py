"""Protocol interface for the REST backend's payment endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, Type
from types import TracebackType

if TYPE_CHECKING:
    from ...application.settlement.dtos import (
        CreateOrderRequestDTO,
        CreateOrderResponseDTO,
        VerifyPaymentRequestDTO,
        VerifyPaymentResponseDTO,
    )


class PaymentBackendProtocol(Protocol):
    """Order creation and payment verification, authenticated with a session token.

    Implementations raise on rejection; the raised object is handed to the
    failure classifier unchanged.
    """

    async def create_order(
        self, dto: "CreateOrderRequestDTO"
    ) -> "CreateOrderResponseDTO":
        """Create a gateway order for one chunk amount.

        Args:
            dto: Amount and description for the order

        Returns:
            Order id, amount, currency and the gateway key id
        """
        ...

    async def verify_payment(
        self, dto: "VerifyPaymentRequestDTO"
    ) -> "VerifyPaymentResponseDTO":
        """Verify the gateway signature for a completed checkout.

        Args:
            dto: Order id, payment id, signature, amount and due ceiling

        Returns:
            Verification result with any settlement metadata
        """
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
        ...

    async def __aenter__(self: "PaymentBackendProtocol") -> "PaymentBackendProtocol":
        ...

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        ...
