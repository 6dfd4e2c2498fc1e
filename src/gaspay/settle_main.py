"""Settle one payment from the terminal.

Usage: ``gaspay-settle AMOUNT [TOTAL_DUE] [DESCRIPTION]``

``PAYMENT_AMOUNT``, ``PAYMENT_TOTAL_DUE`` and ``PAYMENT_DESCRIPTION`` are used
when the arguments are omitted. The payer completes each checkout out of band
and types the gateway's payment id and signature back in.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from decimal import Decimal, InvalidOperation
from typing import Optional

from .application.settlement.dtos import SettlementResultDTO
from .application.settlement.use_cases.settlement import SettlementOrchestrator
from .domain.errors import SettlementError
from .domain.settlement.entities import PaymentRequest
from .envs.settlement_env import Settings, get_settings
from .infrastructure.backend.payment_backend_client import PaymentBackendClient
from .infrastructure.checkout.checkout_handle import CheckoutHandle
from .infrastructure.checkout.console_checkout import ConsoleCheckoutGateway


def _arg_or_env(position: int, env_name: str) -> Optional[str]:
    if len(sys.argv) > position:
        return sys.argv[position]
    return os.getenv(env_name)


def _parse_request() -> PaymentRequest:
    raw_amount = _arg_or_env(1, "PAYMENT_AMOUNT")
    if not raw_amount:
        raise SystemExit(__doc__)
    raw_total_due = _arg_or_env(2, "PAYMENT_TOTAL_DUE") or raw_amount
    description = _arg_or_env(3, "PAYMENT_DESCRIPTION") or "Payment"
    try:
        amount = Decimal(raw_amount)
        total_due = Decimal(raw_total_due)
    except InvalidOperation:
        raise SystemExit(f"Invalid amount: {raw_amount!r} / {raw_total_due!r}") from None
    return PaymentRequest(amount=amount, total_due=total_due, description=description)


async def settle_from_console(
    settings: Settings, request: PaymentRequest
) -> SettlementResultDTO:
    checkout = CheckoutHandle(lambda: ConsoleCheckoutGateway())
    async with PaymentBackendClient(
        settings.backend_base_url,
        settings.backend_auth_token,
        timeout=settings.http_timeout_seconds,
        create_order_path=settings.create_order_path,
        verify_path=settings.verify_payment_path,
    ) as backend:
        orchestrator = SettlementOrchestrator(
            backend,
            checkout,
            safe_limit=settings.safe_transaction_limit,
            retry_floor=settings.min_retry_amount,
            pacing_delay=settings.pacing_delay_seconds,
            merchant_name=settings.merchant_name,
            default_currency=settings.default_currency,
        )
        orchestrator.progress.subscribe(
            lambda s: print(
                f"[{s.status}] chunk {s.current_sequence}/{s.total_chunks} "
                f"settled {s.settled_amount} of {s.requested_amount}"
            )
        )
        return await orchestrator.settle(request)


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings()
    if not settings.backend_auth_token:
        raise SystemExit("BACKEND_AUTH_TOKEN is required")
    request = _parse_request()

    try:
        result = asyncio.run(settle_from_console(settings, request))
    except SettlementError as e:
        print(f"Settlement stopped: {e.message}")
        print(f"Settled before stopping: {e.settled_amount}")
        sys.exit(1)

    print(
        f"Settled {result.total_settled} in {result.transaction_count} transaction(s)"
    )
    if result.last_transaction is not None:
        print(f"Last payment id: {result.last_transaction.external_payment_id}")


if __name__ == "__main__":
    main()
