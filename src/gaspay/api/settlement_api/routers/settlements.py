"""Settlement run API routes."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from prometheus_client import Histogram

from ....application.settlement.dtos import (
    BookingDTO,
    SettlementRunResponseDTO,
    StartSettlementRequestDTO,
    SubmitCheckoutResultDTO,
)
from ....application.settlement.use_cases.settlement_runs import (
    RunNotFoundError,
    SettlementRunService,
)
from ....domain.errors import BookingAlreadyPaidError, PaymentValidationError
from ..dependencies import get_auth_token, get_settlement_run_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settlements", tags=["settlements"])


settlement_request_duration_seconds = Histogram(
    "settlement_request_duration_seconds",
    "Wall time to handle a settlement API request",
    ["endpoint", "status"],
)


def _observe(endpoint: str, outcome: str, start_time: float) -> None:
    elapsed = time.perf_counter() - start_time
    settlement_request_duration_seconds.labels(endpoint=endpoint, status=outcome).observe(
        elapsed
    )


@router.post(
    "",
    response_model=SettlementRunResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_settlement(
    payload: StartSettlementRequestDTO,
    auth_token: str = Depends(get_auth_token),
    service: SettlementRunService = Depends(get_settlement_run_service),
) -> SettlementRunResponseDTO:
    """Validate a payment request and start settling it in the background."""
    start_time = time.perf_counter()
    try:
        result = await service.start_run(payload, auth_token)
        _observe("start", "success", start_time)
        return result
    except PaymentValidationError as e:
        _observe("start", "client_error", start_time)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except Exception as e:
        _observe("start", "server_error", start_time)
        logger.exception("Failed to start settlement")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to start settlement: {str(e)}",
        )


@router.post(
    "/bookings",
    response_model=SettlementRunResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_booking_settlement(
    booking: BookingDTO,
    auth_token: str = Depends(get_auth_token),
    service: SettlementRunService = Depends(get_settlement_run_service),
) -> SettlementRunResponseDTO:
    """Start settling a delivered, online-paid cylinder booking."""
    start_time = time.perf_counter()
    try:
        result = await service.start_booking_run(booking, auth_token)
        _observe("start_booking", "success", start_time)
        return result
    except BookingAlreadyPaidError as e:
        _observe("start_booking", "client_error", start_time)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except PaymentValidationError as e:
        _observe("start_booking", "client_error", start_time)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except Exception as e:
        _observe("start_booking", "server_error", start_time)
        logger.exception("Failed to start booking settlement")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to start settlement: {str(e)}",
        )


@router.get("/{run_id}", response_model=SettlementRunResponseDTO)
async def get_settlement(
    run_id: str = Path(..., description="Settlement run identifier"),
    service: SettlementRunService = Depends(get_settlement_run_service),
) -> SettlementRunResponseDTO:
    """Current progress, pending checkout and settled transactions of a run."""
    try:
        return service.get_run(run_id)
    except RunNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/{run_id}/checkout-result",
    response_model=SettlementRunResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_checkout_result(
    payload: SubmitCheckoutResultDTO,
    run_id: str = Path(..., description="Settlement run identifier"),
    service: SettlementRunService = Depends(get_settlement_run_service),
) -> SettlementRunResponseDTO:
    """Report the payer's checkout outcome for the run's open checkout."""
    start_time = time.perf_counter()
    try:
        result = await service.submit_checkout_result(run_id, payload)
        _observe("checkout_result", "success", start_time)
        return result
    except RunNotFoundError as e:
        _observe("checkout_result", "client_error", start_time)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except LookupError as e:
        _observe("checkout_result", "client_error", start_time)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.delete(
    "/{run_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def discard_settlement(
    run_id: str = Path(..., description="Settlement run identifier"),
    service: SettlementRunService = Depends(get_settlement_run_service),
) -> Response:
    try:
        await service.discard_run(run_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except RunNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
