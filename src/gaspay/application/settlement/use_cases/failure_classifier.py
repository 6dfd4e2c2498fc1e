"""Classification of raw gateway/backend failures.

Provider error shapes are inconsistent: structured checkout error objects,
backend JSON bodies, HTTP errors and plain exceptions all reach the
orchestrator. Everything is mapped here, once, onto the ``SettlementError``
union. Amount-limit matching is deliberately loose because the real limit is
undocumented: a false negative turns a recoverable rejection into a hard
failure, a false positive costs one extra halving.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal

import httpx
from pydantic import ValidationError

from ....domain.errors import (
    AmountLimitExceededError,
    BackendRejectedError,
    GatewayError,
    SettlementError,
    TransportError,
    VerificationFailedError,
)

FailureStage = Literal["order", "checkout", "verify"]

DEFAULT_LIMIT_SUBSTRINGS: tuple[str, ...] = (
    "amount exceeds",
    "exceeds maximum amount",
    "maximum amount allowed",
    "amount limit",
    "transaction limit",
)

DEFAULT_LIMIT_CODES: frozenset[str] = frozenset(
    {
        "amount_exceeds_limit",
        "amount_limit_exceeded",
        "amount_exceeds_maximum",
        "transaction_amount_limit_exceeded",
    }
)

_TEXT_KEYS = ("error", "description", "message", "detail", "reason", "step")
_CODE_KEYS = ("code", "reason")


@dataclass(frozen=True)
class AmountLimitRules:
    """Patterns that identify an amount-limit rejection for one provider."""

    substrings: tuple[str, ...] = DEFAULT_LIMIT_SUBSTRINGS
    codes: frozenset[str] = field(default_factory=lambda: DEFAULT_LIMIT_CODES)

    def matches_text(self, text: str) -> bool:
        lowered = text.lower()
        return any(pattern in lowered for pattern in self.substrings)

    def matches_code(self, code: str) -> bool:
        return code.lower() in self.codes


DEFAULT_RULES = AmountLimitRules()


def _payload_of(raw: Any) -> Any:
    """Unwrap exceptions to the payload they carry."""
    if isinstance(raw, SettlementError):
        return raw.raw if raw.raw is not None else raw.message
    if isinstance(raw, BackendRejectedError):
        return raw.payload
    if isinstance(raw, httpx.HTTPStatusError):
        try:
            return raw.response.json()
        except (json.JSONDecodeError, ValueError):
            return raw.response.text
    if isinstance(raw, BaseException):
        return str(raw)
    return raw


def _walk(payload: Any) -> Iterator[tuple[str, str]]:
    """Yield ``(key, text)`` pairs for every string in an error payload."""
    if isinstance(payload, str):
        yield "", payload
    elif isinstance(payload, dict):
        for key, value in payload.items():
            if isinstance(value, str):
                yield str(key), value
            elif isinstance(value, (dict, list)):
                yield from _walk(value)
    elif isinstance(payload, list):
        for item in payload:
            yield from _walk(item)


def is_amount_limit_error(raw: Any, rules: AmountLimitRules = DEFAULT_RULES) -> bool:
    """Return True if ``raw`` says the transaction amount exceeds a limit. Pure function."""
    for key, text in _walk(_payload_of(raw)):
        if key in _CODE_KEYS and rules.matches_code(text):
            return True
        if key in ("",) + _TEXT_KEYS and rules.matches_text(text):
            return True
    return False


def describe_failure(raw: Any, default: str) -> str:
    """Pick the most human-readable message out of an error payload."""
    payload = _payload_of(raw)
    if isinstance(payload, str):
        return payload or default
    if isinstance(payload, dict):
        inner = payload.get("error")
        if isinstance(inner, str) and inner:
            return inner
        if isinstance(inner, dict):
            for key in ("description", "message", "reason"):
                if isinstance(inner.get(key), str) and inner[key]:
                    return inner[key]
        for key in ("description", "message", "detail"):
            if isinstance(payload.get(key), str) and payload[key]:
                return payload[key]
    return default


class FailureClassifier:
    """Maps raw failures onto the settlement error union."""

    def __init__(self, rules: AmountLimitRules = DEFAULT_RULES) -> None:
        self.rules = rules

    def is_amount_limit(self, raw: Any) -> bool:
        return is_amount_limit_error(raw, self.rules)

    def classify(self, raw: Any, *, stage: FailureStage) -> SettlementError:
        if isinstance(raw, SettlementError):
            return raw

        if stage == "verify":
            return VerificationFailedError(
                describe_failure(raw, "Payment verification failed"), raw=raw
            )

        if self.is_amount_limit(raw):
            return AmountLimitExceededError(
                describe_failure(raw, "Transaction amount exceeds the gateway limit"),
                raw=raw,
            )

        if isinstance(raw, httpx.TimeoutException):
            return TransportError(f"Payment backend timed out: {raw}", raw=raw)
        if isinstance(raw, httpx.RequestError):
            return TransportError(f"Could not connect to payment backend: {raw}", raw=raw)
        if isinstance(raw, (ValidationError, json.JSONDecodeError)):
            return TransportError(f"Malformed response from payment backend: {raw}", raw=raw)

        if stage == "checkout":
            return GatewayError(
                describe_failure(raw, "Payment failed. Please try again."), raw=raw
            )
        if isinstance(raw, (BackendRejectedError, httpx.HTTPStatusError)):
            return GatewayError(
                describe_failure(raw, "Failed to create payment order"), raw=raw
            )
        return TransportError(
            describe_failure(raw, "Failed to initialize payment"), raw=raw
        )
