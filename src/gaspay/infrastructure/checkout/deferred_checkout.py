"""Checkout driven by a remote front end.

The real checkout widget runs in the payer's browser. This gateway publishes
the session the browser should open and suspends the settlement until the
browser posts the outcome back through ``resolve``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ...application.settlement.dtos import (
    CheckoutOptionsDTO,
    CheckoutResultDTO,
    CheckoutSessionDTO,
)

logger = logging.getLogger(__name__)


class CheckoutNotAwaitingError(LookupError):
    """Raised when a result is posted but no matching checkout is open."""


class DeferredCheckoutGateway:
    """Holds at most one open checkout session at a time."""

    def __init__(self) -> None:
        self._pending_session: Optional[CheckoutSessionDTO] = None
        self._pending_result: Optional[asyncio.Future[CheckoutResultDTO]] = None

    @property
    def pending_session(self) -> Optional[CheckoutSessionDTO]:
        """The session the front end should open, if one is awaiting the payer."""
        return self._pending_session

    async def create_checkout_session(
        self, options: CheckoutOptionsDTO
    ) -> CheckoutSessionDTO:
        return CheckoutSessionDTO(options=options)

    async def open_checkout_session(
        self, session: CheckoutSessionDTO
    ) -> CheckoutResultDTO:
        if self._pending_result is not None and not self._pending_result.done():
            raise RuntimeError("Another checkout session is already open")

        future: asyncio.Future[CheckoutResultDTO] = (
            asyncio.get_running_loop().create_future()
        )
        self._pending_session = session
        self._pending_result = future
        logger.info(
            "Checkout session %s open for order %s",
            session.session_id,
            session.options.order_id,
        )
        try:
            return await future
        finally:
            self._pending_session = None
            self._pending_result = None

    def resolve(self, result: CheckoutResultDTO, session_id: Optional[str] = None) -> None:
        """Complete the open checkout with ``result``.

        Raises:
            CheckoutNotAwaitingError: If no checkout is open, or ``session_id``
                names a different session.
        """
        session = self._pending_session
        future = self._pending_result
        if session is None or future is None or future.done():
            raise CheckoutNotAwaitingError("No checkout is awaiting a result")
        if session_id is not None and session_id != session.session_id:
            raise CheckoutNotAwaitingError(
                f"Checkout session {session_id} is not awaiting a result"
            )
        future.set_result(result)
