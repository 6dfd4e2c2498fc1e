"""Test fixtures for in-memory implementations."""

from .in_memory_backend import AMOUNT_LIMIT_PAYLOAD, InMemoryPaymentBackend
from .scripted_checkout import RecordingSleep, ScriptedCheckoutGateway

__all__ = [
    "AMOUNT_LIMIT_PAYLOAD",
    "InMemoryPaymentBackend",
    "RecordingSleep",
    "ScriptedCheckoutGateway",
]
