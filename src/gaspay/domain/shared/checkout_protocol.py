"""Protocol interface for checkout gateway implementations.

The checkout is the third-party hosted payment flow presented to the payer.
The orchestrator depends only on this contract, so the concrete SDK handle
(browser-driven, console, or a test double) is injected rather than reached
through global state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Protocol

if TYPE_CHECKING:
    # Avoid circular imports by only importing types during type checking
    from ...application.settlement.dtos import (
        CheckoutOptionsDTO,
        CheckoutResultDTO,
        CheckoutSessionDTO,
    )


class CheckoutGatewayProtocol(Protocol):
    """Protocol defining the two operations the orchestrator needs from a checkout."""

    async def create_checkout_session(
        self, options: "CheckoutOptionsDTO"
    ) -> "CheckoutSessionDTO":
        """Prepare a checkout session for one gateway order.

        Args:
            options: Key, amount, currency, order id and display fields

        Returns:
            A session handle to pass to ``open_checkout_session``
        """
        ...

    async def open_checkout_session(
        self, session: "CheckoutSessionDTO"
    ) -> "CheckoutResultDTO":
        """Present the checkout and wait until the payer finishes with it.

        There is no timeout: the payer may keep the checkout open indefinitely.

        Args:
            session: Session created by ``create_checkout_session``

        Returns:
            The checkout outcome: success with payment id and signature,
            cancellation, or a provider error object
        """
        ...


class InteractiveCheckoutProtocol(CheckoutGatewayProtocol, Protocol):
    """A checkout completed by a remote front end that reports the outcome back."""

    @property
    def pending_session(self) -> "Optional[CheckoutSessionDTO]":
        """The session awaiting the payer, if any."""
        ...

    def resolve(
        self, result: "CheckoutResultDTO", session_id: "Optional[str]" = None
    ) -> None:
        """Complete the open session with the payer's outcome."""
        ...


# Factory type for lazily creating the session-scoped checkout gateway.
# Returns None while the underlying SDK is not yet available.
CheckoutGatewayLoader = Callable[[], "CheckoutGatewayProtocol | None"]
