from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type
from types import TracebackType

import httpx


class AsyncHttpClient:
    """Thin asynchronous HTTP client wrapper around httpx.AsyncClient.

    - Normalizes base URLs and paths.
    - Applies a default timeout and default headers.
    - Raises for non-successful responses.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        *,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers=dict(headers or {}),
            transport=transport,
        )

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    async def post(
        self,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        resp = await self._client.post(self._url(path), json=json, **kwargs)
        resp.raise_for_status()
        return resp

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHttpClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
