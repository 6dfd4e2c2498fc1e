from __future__ import annotations

import json
from typing import Any, Optional, Type
from types import TracebackType

import httpx

from ...application.settlement.dtos import (
    CreateOrderRequestDTO,
    CreateOrderResponseDTO,
    VerifyPaymentRequestDTO,
    VerifyPaymentResponseDTO,
)
from ...domain.errors import BackendRejectedError
from ...middleware.timing import log_timing
from ..http.http_client import AsyncHttpClient

DEFAULT_CREATE_ORDER_PATH = "/api/agent/payment/create-order"
DEFAULT_VERIFY_PATH = "/api/agent/payment/verify"


def _error_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError):
        return response.text


class PaymentBackendClient:
    """Asynchronous client for the backend's payment endpoints.

    The session token is sent verbatim in the ``Authorization`` header.
    Rejections (non-2xx, or a 2xx body carrying ``error``) are raised as
    ``BackendRejectedError`` with the decoded body, for the failure
    classifier to interpret. Connection problems propagate as httpx errors.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str,
        *,
        timeout: float = 10.0,
        create_order_path: str = DEFAULT_CREATE_ORDER_PATH,
        verify_path: str = DEFAULT_VERIFY_PATH,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not auth_token:
            raise ValueError("Authentication required. Please login again.")
        self._http = AsyncHttpClient(
            base_url,
            timeout=timeout,
            headers={"Authorization": auth_token, "Accept": "application/json"},
            transport=transport,
        )
        self._create_order_path = create_order_path
        self._verify_path = verify_path

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._http.post(path, json=payload)
        except httpx.HTTPStatusError as e:
            raise BackendRejectedError(
                _error_payload(e.response), status_code=e.response.status_code
            ) from e

        data = resp.json()
        if not isinstance(data, dict):
            raise BackendRejectedError(data, status_code=resp.status_code)
        if data.get("error"):
            raise BackendRejectedError(data, status_code=resp.status_code)
        return data

    @log_timing("backend_create_order")
    async def create_order(self, dto: CreateOrderRequestDTO) -> CreateOrderResponseDTO:
        """Create a gateway order for one chunk.

        The JSON response is validated into ``CreateOrderResponseDTO``; missing
        fields are left for the caller to judge.
        """
        data = await self._post(
            self._create_order_path, dto.model_dump(mode="json", by_alias=True)
        )
        return CreateOrderResponseDTO.model_validate(data)

    @log_timing("backend_verify_payment")
    async def verify_payment(
        self, dto: VerifyPaymentRequestDTO
    ) -> VerifyPaymentResponseDTO:
        """Ask the backend to verify a checkout's signature for one chunk."""
        data = await self._post(
            self._verify_path, dto.model_dump(mode="json", by_alias=True)
        )
        return VerifyPaymentResponseDTO.model_validate(data)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "PaymentBackendClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
