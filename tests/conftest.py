"""Shared pytest fixtures for settlement tests."""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from gaspay.application.settlement.progress import ProgressReporter
from gaspay.application.settlement.use_cases.settlement import SettlementOrchestrator
from gaspay.envs.api_env import Settings as ApiSettings
from gaspay.envs.settlement_env import Settings as SettlementSettings
from tests.fixtures import InMemoryPaymentBackend, RecordingSleep, ScriptedCheckoutGateway


@pytest.fixture
def settlement_settings() -> SettlementSettings:
    """Settlement settings pointing at a backend that is never contacted."""
    return SettlementSettings(
        backend_base_url="http://backend.test",
        backend_auth_token="session-token",
    )


@pytest.fixture
def api_settings(settlement_settings: SettlementSettings) -> ApiSettings:
    return ApiSettings(settlement=settlement_settings)


@pytest_asyncio.fixture
async def backend() -> AsyncGenerator[InMemoryPaymentBackend, None]:
    """Create an in-memory payment backend."""
    client = InMemoryPaymentBackend()
    yield client
    await client.aclose()


@pytest.fixture
def checkout() -> ScriptedCheckoutGateway:
    """Checkout where every payer completes payment."""
    return ScriptedCheckoutGateway()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def progress() -> ProgressReporter:
    return ProgressReporter()


@pytest.fixture
def orchestrator(
    backend: InMemoryPaymentBackend,
    checkout: ScriptedCheckoutGateway,
    sleep: RecordingSleep,
    progress: ProgressReporter,
) -> SettlementOrchestrator:
    """Orchestrator with default limits (25000 ceiling, 1000 floor)."""
    return SettlementOrchestrator(
        backend,
        checkout,
        safe_limit=Decimal("25000"),
        retry_floor=Decimal("1000"),
        pacing_delay=1.0,
        progress=progress,
        sleep=sleep,
    )
