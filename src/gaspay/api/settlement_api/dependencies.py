"""FastAPI dependencies for the settlement API."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ...application.settlement.progress import ProgressReporter
from ...application.settlement.use_cases.settlement import SettlementOrchestrator
from ...application.settlement.use_cases.settlement_runs import SettlementRunService
from ...domain.shared import CheckoutGatewayProtocol, PaymentBackendProtocol
from ...envs.settlement_env import Settings as SettlementSettings
from ...infrastructure.backend.payment_backend_client import PaymentBackendClient
from ...infrastructure.checkout.deferred_checkout import DeferredCheckoutGateway


def build_settlement_run_service(settings: SettlementSettings) -> SettlementRunService:
    """Wire the run service to the HTTP backend and browser-driven checkouts."""

    def backend_factory(auth_token: str) -> PaymentBackendProtocol:
        return PaymentBackendClient(
            settings.backend_base_url,
            auth_token,
            timeout=settings.http_timeout_seconds,
            create_order_path=settings.create_order_path,
            verify_path=settings.verify_payment_path,
        )

    def orchestrator_factory(
        backend: PaymentBackendProtocol,
        checkout: CheckoutGatewayProtocol,
        progress: ProgressReporter,
    ) -> SettlementOrchestrator:
        return SettlementOrchestrator(
            backend,
            checkout,
            safe_limit=settings.safe_transaction_limit,
            retry_floor=settings.min_retry_amount,
            pacing_delay=settings.pacing_delay_seconds,
            merchant_name=settings.merchant_name,
            default_currency=settings.default_currency,
            progress=progress,
        )

    return SettlementRunService(
        backend_factory=backend_factory,
        checkout_factory=DeferredCheckoutGateway,
        orchestrator_factory=orchestrator_factory,
        retention_seconds=settings.run_retention_seconds,
    )


def get_settlement_run_service(request: Request) -> SettlementRunService:
    """Get the process-wide settlement run service."""
    return request.app.state.settlement_runs


def get_auth_token(authorization: Optional[str] = Header(None)) -> str:
    """Caller's session token, forwarded verbatim to the backend."""
    if not authorization or not authorization.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required. Please login again.",
        )
    return authorization
