"""Checkout for the command-line runner: the operator completes payment out of band."""

from __future__ import annotations

import asyncio
from typing import Callable

from ...application.settlement.dtos import (
    CheckoutOptionsDTO,
    CheckoutResultDTO,
    CheckoutSessionDTO,
)


class ConsoleCheckoutGateway:
    """Prints the checkout options and reads the outcome from the terminal.

    An empty payment id cancels; ``fail: <reason>`` reports a provider error.
    """

    def __init__(
        self,
        *,
        read_line: Callable[[str], str] = input,
        write_line: Callable[[str], None] = print,
    ) -> None:
        self._read_line = read_line
        self._write_line = write_line

    async def create_checkout_session(
        self, options: CheckoutOptionsDTO
    ) -> CheckoutSessionDTO:
        return CheckoutSessionDTO(options=options)

    async def open_checkout_session(
        self, session: CheckoutSessionDTO
    ) -> CheckoutResultDTO:
        options = session.options
        self._write_line(
            f"\n{options.name}: pay {options.amount} {options.currency} "
            f"for order {options.order_id} (key {options.key})"
        )
        if options.description:
            self._write_line(f"  {options.description}")

        payment_id = (
            await asyncio.to_thread(
                self._read_line, "Payment id (blank to cancel, 'fail: reason'): "
            )
        ).strip()
        if not payment_id:
            return CheckoutResultDTO.cancelled()
        if payment_id.lower().startswith("fail:"):
            reason = payment_id.split(":", 1)[1].strip() or "Payment failed"
            return CheckoutResultDTO.failed({"description": reason})

        signature = (await asyncio.to_thread(self._read_line, "Signature: ")).strip()
        if not signature:
            return CheckoutResultDTO.cancelled()
        return CheckoutResultDTO.success(options.order_id, payment_id, signature)
