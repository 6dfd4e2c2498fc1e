"""Use case tests for SettlementRunService with a browser-driven checkout."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Callable

import pytest

from gaspay.application.settlement.dtos import (
    BookingDTO,
    StartSettlementRequestDTO,
    SubmitCheckoutResultDTO,
)
from gaspay.application.settlement.progress import ProgressReporter
from gaspay.application.settlement.use_cases.settlement import SettlementOrchestrator
from gaspay.application.settlement.use_cases.settlement_runs import (
    RunNotFoundError,
    SettlementRunService,
)
from gaspay.domain.errors import BookingAlreadyPaidError, PaymentValidationError
from gaspay.domain.shared import CheckoutGatewayProtocol, PaymentBackendProtocol
from gaspay.infrastructure.checkout.deferred_checkout import (
    CheckoutNotAwaitingError,
    DeferredCheckoutGateway,
)
from tests.fixtures import InMemoryPaymentBackend, RecordingSleep


async def _until(condition: Callable[[], bool]) -> None:
    for _ in range(100):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def backends() -> list[InMemoryPaymentBackend]:
    return []


def _make_service(
    backends: list[InMemoryPaymentBackend],
    *,
    verify_success: bool = True,
    **service_kwargs: Any,
) -> SettlementRunService:
    def backend_factory(auth_token: str) -> PaymentBackendProtocol:
        backend = InMemoryPaymentBackend(verify_success=verify_success)
        backends.append(backend)
        return backend

    def orchestrator_factory(
        backend: PaymentBackendProtocol,
        checkout: CheckoutGatewayProtocol,
        progress: ProgressReporter,
    ) -> SettlementOrchestrator:
        return SettlementOrchestrator(
            backend,
            checkout,
            safe_limit=Decimal("25000"),
            retry_floor=Decimal("1000"),
            progress=progress,
            sleep=RecordingSleep(),
        )

    return SettlementRunService(
        backend_factory=backend_factory,
        checkout_factory=DeferredCheckoutGateway,
        orchestrator_factory=orchestrator_factory,
        **service_kwargs,
    )


@pytest.fixture
def service(backends: list[InMemoryPaymentBackend]) -> SettlementRunService:
    return _make_service(backends)


def _success(run_view) -> SubmitCheckoutResultDTO:
    session = run_view.pending_checkout
    n = session.options.notes["chunk"]
    return SubmitCheckoutResultDTO(
        status="success",
        session_id=session.session_id,
        external_order_id=session.options.order_id,
        external_payment_id=f"pay_{n}",
        external_signature=f"sig_{n}",
    )


@pytest.mark.asyncio
async def test_run_settles_as_browser_reports_each_checkout(
    service: SettlementRunService,
    backends: list[InMemoryPaymentBackend],
) -> None:
    view = await service.start_run(
        StartSettlementRequestDTO(amount=Decimal("60000"), total_due=Decimal("60000")),
        "session-token",
    )

    assert view.progress.status == "running"
    assert view.progress.total_chunks == 3
    assert view.pending_checkout is not None
    assert view.pending_checkout.options.amount == Decimal("25000")

    for _ in range(3):
        await _until(lambda: service.get_run(view.run_id).pending_checkout is not None)
        await service.submit_checkout_result(
            view.run_id, _success(service.get_run(view.run_id))
        )

    await _until(lambda: service.get_run(view.run_id).progress.status == "completed")
    final = service.get_run(view.run_id)
    assert final.progress.outcome == "all_settled"
    assert final.total_settled == Decimal("60000")
    assert final.error_type is None
    assert [t.amount for t in final.transactions] == [
        Decimal("25000"),
        Decimal("25000"),
        Decimal("10000"),
    ]
    await _until(lambda: backends[0].closed)

    await service.aclose()


@pytest.mark.asyncio
async def test_cancelled_checkout_ends_run_with_partial_settlement(
    service: SettlementRunService,
) -> None:
    view = await service.start_run(
        StartSettlementRequestDTO(amount=Decimal("60000"), total_due=Decimal("60000")),
        "session-token",
    )
    await service.submit_checkout_result(view.run_id, _success(view))
    await _until(lambda: service.get_run(view.run_id).pending_checkout is not None)

    await service.submit_checkout_result(
        view.run_id, SubmitCheckoutResultDTO(status="cancelled")
    )
    await _until(lambda: service.get_run(view.run_id).progress.status == "completed")

    final = service.get_run(view.run_id)
    assert final.progress.outcome == "user_cancelled"
    assert final.error_type == "user_cancelled"
    assert final.error_message == "Payment cancelled"
    assert final.total_settled == Decimal("25000")
    assert final.progress.remaining_amount == Decimal("35000")

    await service.aclose()


@pytest.mark.asyncio
async def test_invalid_request_is_rejected_before_run_starts(
    service: SettlementRunService,
    backends: list[InMemoryPaymentBackend],
) -> None:
    with pytest.raises(PaymentValidationError):
        await service.start_run(
            StartSettlementRequestDTO(
                amount=Decimal("60000"),
                custom_amount=Decimal("70000"),
                total_due=Decimal("60000"),
            ),
            "session-token",
        )

    assert backends[0].orders == []
    assert backends[0].closed


@pytest.mark.asyncio
async def test_booking_run_uses_booking_total(service: SettlementRunService) -> None:
    booking = BookingDTO.model_validate(
        {
            "_id": "65f1c2d3e4a5b6c7d8e9f0a1",
            "status": "delivered",
            "quantity": 2,
            "cylinderPrice": 1100,
        }
    )

    view = await service.start_booking_run(booking, "session-token")

    assert view.progress.requested_amount == Decimal("2200")
    assert view.pending_checkout is not None
    assert view.pending_checkout.options.description == "Payment for booking #D8E9F0A1"
    assert view.pending_checkout.options.notes["bookingId"] == "65f1c2d3e4a5b6c7d8e9f0a1"

    await service.aclose()


@pytest.mark.asyncio
async def test_paid_booking_is_rejected(service: SettlementRunService) -> None:
    booking = BookingDTO.model_validate(
        {"_id": "b1", "status": "delivered", "paymentStatus": "paid"}
    )

    with pytest.raises(BookingAlreadyPaidError):
        await service.start_booking_run(booking, "session-token")


@pytest.mark.asyncio
async def test_unknown_run_raises(service: SettlementRunService) -> None:
    with pytest.raises(RunNotFoundError):
        service.get_run("missing")
    with pytest.raises(RunNotFoundError):
        await service.discard_run("missing")


@pytest.mark.asyncio
async def test_result_for_finished_run_is_rejected(service: SettlementRunService) -> None:
    view = await service.start_run(
        StartSettlementRequestDTO(amount=Decimal("100"), total_due=Decimal("100")),
        "session-token",
    )
    await service.submit_checkout_result(view.run_id, _success(view))
    await _until(lambda: service.get_run(view.run_id).progress.status == "completed")

    with pytest.raises(CheckoutNotAwaitingError):
        await service.submit_checkout_result(
            view.run_id, SubmitCheckoutResultDTO(status="cancelled")
        )


@pytest.mark.asyncio
async def test_discarding_run_stops_it(
    service: SettlementRunService,
    backends: list[InMemoryPaymentBackend],
) -> None:
    view = await service.start_run(
        StartSettlementRequestDTO(amount=Decimal("60000"), total_due=Decimal("60000")),
        "session-token",
    )

    await service.discard_run(view.run_id)

    assert backends[0].closed
    with pytest.raises(RunNotFoundError):
        service.get_run(view.run_id)


@pytest.mark.asyncio
async def test_unverified_payment_is_reported_as_verification_failure(
    backends: list[InMemoryPaymentBackend],
) -> None:
    service = _make_service(backends, verify_success=False)
    view = await service.start_run(
        StartSettlementRequestDTO(amount=Decimal("100"), total_due=Decimal("100")),
        "session-token",
    )

    await service.submit_checkout_result(view.run_id, _success(view))
    await _until(lambda: service.get_run(view.run_id).progress.status == "completed")

    final = service.get_run(view.run_id)
    assert final.progress.outcome == "hard_failure"
    assert final.error_type == "verification_failed"
    assert final.error_message
    assert [p.external_payment_id for p in final.unreconciled_payments] == ["pay_1"]
    assert final.total_settled == Decimal("0")

    await service.aclose()


@pytest.mark.asyncio
async def test_finished_runs_are_evicted_after_retention(
    backends: list[InMemoryPaymentBackend],
) -> None:
    now = [0.0]
    service = _make_service(backends, retention_seconds=60.0, clock=lambda: now[0])

    finished = await service.start_run(
        StartSettlementRequestDTO(amount=Decimal("100"), total_due=Decimal("100")),
        "session-token",
    )
    await service.submit_checkout_result(
        finished.run_id, SubmitCheckoutResultDTO(status="cancelled")
    )
    await _until(lambda: backends[0].closed)

    running = await service.start_run(
        StartSettlementRequestDTO(amount=Decimal("100"), total_due=Decimal("100")),
        "session-token",
    )

    now[0] = 59.0
    assert service.get_run(finished.run_id).error_type == "user_cancelled"

    now[0] = 60.0
    with pytest.raises(RunNotFoundError):
        service.get_run(finished.run_id)

    # A run still awaiting checkout is kept however long it waits.
    now[0] = 3600.0
    assert service.get_run(running.run_id).pending_checkout is not None

    await service.aclose()
