"""Session-scoped, lazily initialised handle to the checkout SDK."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ...application.settlement.dtos import (
    CheckoutOptionsDTO,
    CheckoutResultDTO,
    CheckoutSessionDTO,
)
from ...domain.errors import TransportError
from ...domain.shared import CheckoutGatewayLoader, CheckoutGatewayProtocol

logger = logging.getLogger(__name__)

SDK_WAIT_ATTEMPTS = 50
SDK_WAIT_INTERVAL_SECONDS = 0.1


class CheckoutHandle:
    """Resolves the checkout gateway once per session and delegates to it.

    The SDK may still be loading when the first payment starts, so the
    loader is polled (50 times, 100 ms apart by default) before giving up
    with a ``TransportError``. Once resolved, the gateway is reused.
    """

    def __init__(
        self,
        loader: CheckoutGatewayLoader,
        *,
        wait_attempts: int = SDK_WAIT_ATTEMPTS,
        wait_interval: float = SDK_WAIT_INTERVAL_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._loader = loader
        self._wait_attempts = wait_attempts
        self._wait_interval = wait_interval
        self._sleep = sleep
        self._gateway: Optional[CheckoutGatewayProtocol] = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._gateway is not None

    async def gateway(self) -> CheckoutGatewayProtocol:
        if self._gateway is not None:
            return self._gateway

        async with self._lock:
            if self._gateway is not None:
                return self._gateway
            for attempt in range(self._wait_attempts + 1):
                gateway = self._loader()
                if gateway is not None:
                    self._gateway = gateway
                    logger.debug("Checkout SDK available after %d wait(s)", attempt)
                    return gateway
                if attempt < self._wait_attempts:
                    await self._sleep(self._wait_interval)

        logger.error("Checkout SDK did not load after %d attempts", self._wait_attempts)
        raise TransportError(
            "Checkout SDK not loaded. Please refresh the page and try again."
        )

    async def create_checkout_session(
        self, options: CheckoutOptionsDTO
    ) -> CheckoutSessionDTO:
        gateway = await self.gateway()
        return await gateway.create_checkout_session(options)

    async def open_checkout_session(
        self, session: CheckoutSessionDTO
    ) -> CheckoutResultDTO:
        gateway = await self.gateway()
        return await gateway.open_checkout_session(session)
