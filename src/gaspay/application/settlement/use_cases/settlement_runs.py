"""In-memory settlement runs driven by a remote front end."""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable, Optional
from uuid import uuid4

from ....domain.errors import SettlementError
from ....domain.settlement.entities import PaymentRequest
from ....domain.shared import (
    CheckoutGatewayProtocol,
    InteractiveCheckoutProtocol,
    PaymentBackendProtocol,
)
from ..booking import payment_request_from_booking
from ..dtos import (
    BookingDTO,
    SettlementRunResponseDTO,
    StartSettlementRequestDTO,
    SubmitCheckoutResultDTO,
)
from ..progress import ProgressReporter
from .settlement import SettlementOrchestrator

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str], PaymentBackendProtocol]
CheckoutFactory = Callable[[], InteractiveCheckoutProtocol]
OrchestratorFactory = Callable[
    [PaymentBackendProtocol, CheckoutGatewayProtocol, ProgressReporter],
    SettlementOrchestrator,
]

DEFAULT_RUN_RETENTION_SECONDS = 300.0


class RunNotFoundError(LookupError):
    """Raised when a settlement run id is unknown."""


class SettlementRun:
    """One settlement run: its orchestrator, checkout and background task."""

    def __init__(
        self,
        run_id: str,
        orchestrator: SettlementOrchestrator,
        checkout: InteractiveCheckoutProtocol,
    ) -> None:
        self.run_id = run_id
        self.orchestrator = orchestrator
        self.checkout = checkout
        self.task: Optional[asyncio.Task[None]] = None
        self.error: Optional[SettlementError] = None
        self.finished_at: Optional[float] = None

    def view(self) -> SettlementRunResponseDTO:
        ledger = self.orchestrator.ledger
        return SettlementRunResponseDTO(
            run_id=self.run_id,
            progress=self.orchestrator.progress.snapshot(),
            pending_checkout=self.checkout.pending_session,
            total_settled=ledger.total_settled if ledger else Decimal("0"),
            transactions=list(ledger.transactions) if ledger else [],
            unreconciled_payments=list(ledger.unreconciled_payments) if ledger else [],
            error_type=self.error.error_type if self.error else None,
            error_message=self.error.message if self.error else None,
        )


class SettlementRunService:
    """Starts, tracks and discards settlement runs.

    Nothing is persisted: runs live as long as this service (one process).
    A finished run stays pollable for ``retention_seconds`` and is then
    dropped.
    """

    def __init__(
        self,
        backend_factory: BackendFactory,
        checkout_factory: CheckoutFactory,
        orchestrator_factory: OrchestratorFactory,
        *,
        retention_seconds: float = DEFAULT_RUN_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend_factory = backend_factory
        self._checkout_factory = checkout_factory
        self._orchestrator_factory = orchestrator_factory
        self._retention_seconds = retention_seconds
        self._clock = clock
        self._runs: dict[str, SettlementRun] = {}

    async def start_run(
        self, dto: StartSettlementRequestDTO, auth_token: str
    ) -> SettlementRunResponseDTO:
        request = PaymentRequest(
            amount=dto.amount,
            custom_amount=dto.custom_amount,
            total_due=dto.total_due,
            description=dto.description,
            prefill=dto.prefill,
            notes=dto.notes,
        )
        return await self._start(request, auth_token)

    async def start_booking_run(
        self, booking: BookingDTO, auth_token: str
    ) -> SettlementRunResponseDTO:
        """Start a run for a booking.

        Raises:
            BookingAlreadyPaidError: If the booking is already paid.
            PaymentValidationError: If the booking cannot be paid online.
        """
        return await self._start(payment_request_from_booking(booking), auth_token)

    async def _start(
        self, request: PaymentRequest, auth_token: str
    ) -> SettlementRunResponseDTO:
        self._prune()
        checkout = self._checkout_factory()
        progress = ProgressReporter()
        backend = self._backend_factory(auth_token)
        orchestrator = self._orchestrator_factory(backend, checkout, progress)
        try:
            # Reject invalid requests before any background work starts.
            orchestrator.build_queue(request)
        except SettlementError:
            await backend.aclose()
            raise

        run = SettlementRun(uuid4().hex, orchestrator, checkout)
        self._runs[run.run_id] = run
        run.task = asyncio.create_task(self._drive(run, request, backend))
        # Let the run reach its first suspension point before reporting.
        await asyncio.sleep(0)
        logger.info("Started settlement run %s", run.run_id)
        return run.view()

    async def _drive(
        self,
        run: SettlementRun,
        request: PaymentRequest,
        backend: PaymentBackendProtocol,
    ) -> None:
        try:
            await run.orchestrator.settle(request)
        except SettlementError as exc:
            run.error = exc
        except Exception:
            logger.exception("Settlement run %s crashed", run.run_id)
            raise
        finally:
            run.finished_at = self._clock()
            await backend.aclose()

    def _prune(self) -> None:
        now = self._clock()
        expired = [
            run_id
            for run_id, run in self._runs.items()
            if run.finished_at is not None
            and now - run.finished_at >= self._retention_seconds
        ]
        for run_id in expired:
            del self._runs[run_id]
        if expired:
            logger.info("Evicted %d finished settlement run(s)", len(expired))

    def _get(self, run_id: str) -> SettlementRun:
        self._prune()
        try:
            return self._runs[run_id]
        except KeyError:
            raise RunNotFoundError(f"Settlement run {run_id} not found") from None

    def get_run(self, run_id: str) -> SettlementRunResponseDTO:
        return self._get(run_id).view()

    async def submit_checkout_result(
        self, run_id: str, dto: SubmitCheckoutResultDTO
    ) -> SettlementRunResponseDTO:
        """Deliver the payer's checkout outcome to the run awaiting it.

        Raises:
            RunNotFoundError: If the run is unknown.
            LookupError: If the run has no checkout awaiting a result.
        """
        run = self._get(run_id)
        run.checkout.resolve(dto.to_result(), dto.session_id)
        await asyncio.sleep(0)
        return run.view()

    async def discard_run(self, run_id: str) -> None:
        run = self._runs.pop(run_id, None)
        if run is None:
            raise RunNotFoundError(f"Settlement run {run_id} not found")
        await self._stop(run)

    async def aclose(self) -> None:
        runs = list(self._runs.values())
        self._runs.clear()
        for run in runs:
            await self._stop(run)

    async def _stop(self, run: SettlementRun) -> None:
        if run.task is None or run.task.done():
            return
        run.task.cancel()
        try:
            await run.task
        except asyncio.CancelledError:
            logger.info("Settlement run %s discarded while in progress", run.run_id)
