"""Unit tests for mapping raw failures onto settlement errors."""

from __future__ import annotations

import json

import httpx
import pytest
from pydantic import ValidationError

from gaspay.application.settlement.dtos import CreateOrderResponseDTO
from gaspay.application.settlement.use_cases.failure_classifier import (
    AmountLimitRules,
    FailureClassifier,
    describe_failure,
    is_amount_limit_error,
)
from gaspay.domain.errors import (
    AmountLimitExceededError,
    BackendRejectedError,
    GatewayError,
    TransportError,
    UserCancelledError,
    VerificationFailedError,
)


def _status_error(status_code: int, body: object) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://backend.test/api/agent/payment/create-order")
    response = httpx.Response(status_code, json=body, request=request)
    return httpx.HTTPStatusError("rejected", request=request, response=response)


class TestIsAmountLimitError:
    """Test is_amount_limit_error function."""

    @pytest.mark.parametrize(
        "raw",
        [
            "Amount exceeds maximum amount allowed.",
            {"description": "Transaction amount limit reached"},
            {"error": {"description": "Amount exceeds the limit for this account"}},
            {"error": {"code": "BAD_REQUEST_ERROR", "reason": "amount_exceeds_limit"}},
            {"code": "TRANSACTION_AMOUNT_LIMIT_EXCEEDED"},
            [{"message": "maximum amount allowed is 10000"}],
        ],
    )
    def test_matches_limit_shapes(self, raw: object) -> None:
        assert is_amount_limit_error(raw)

    @pytest.mark.parametrize(
        "raw",
        [
            "Card declined",
            {"error": {"description": "Insufficient balance"}},
            {"code": "BAD_REQUEST_ERROR"},
            {},
            None,
        ],
    )
    def test_ignores_other_failures(self, raw: object) -> None:
        assert not is_amount_limit_error(raw)

    def test_unwraps_backend_rejection(self) -> None:
        raw = BackendRejectedError({"error": "Amount exceeds maximum amount allowed."})
        assert is_amount_limit_error(raw)

    def test_unwraps_http_status_error_body(self) -> None:
        raw = _status_error(400, {"error": {"description": "amount exceeds limit"}})
        assert is_amount_limit_error(raw)

    def test_rules_can_be_swapped_per_provider(self) -> None:
        rules = AmountLimitRules(substrings=("montant trop élevé",), codes=frozenset())
        assert is_amount_limit_error({"message": "Montant trop élevé"}, rules)
        assert not is_amount_limit_error("Amount exceeds maximum amount", rules)


class TestDescribeFailure:
    def test_prefers_nested_description(self) -> None:
        raw = {"error": {"code": "X", "description": "Card declined"}}
        assert describe_failure(raw, "fallback") == "Card declined"

    def test_top_level_error_string(self) -> None:
        assert describe_failure({"error": "Order not found"}, "fallback") == "Order not found"

    def test_falls_back_to_default(self) -> None:
        assert describe_failure({"code": 42}, "fallback") == "fallback"


class TestFailureClassifier:
    """Test FailureClassifier.classify."""

    def setup_method(self) -> None:
        self.classifier = FailureClassifier()

    def test_settlement_errors_pass_through(self) -> None:
        error = UserCancelledError("Payment cancelled")
        assert self.classifier.classify(error, stage="checkout") is error

    def test_limit_rejection_at_order_stage(self) -> None:
        raw = BackendRejectedError(
            {"error": {"description": "Amount exceeds maximum amount allowed."}},
            status_code=400,
        )
        failure = self.classifier.classify(raw, stage="order")

        assert isinstance(failure, AmountLimitExceededError)
        assert failure.message == "Amount exceeds maximum amount allowed."
        assert failure.raw is raw

    def test_limit_rejection_at_checkout_stage(self) -> None:
        failure = self.classifier.classify(
            {"reason": "amount_exceeds_limit", "description": "Payment failed"},
            stage="checkout",
        )
        assert isinstance(failure, AmountLimitExceededError)

    def test_other_checkout_failures_are_gateway_errors(self) -> None:
        failure = self.classifier.classify(
            {"description": "Card declined"}, stage="checkout"
        )
        assert isinstance(failure, GatewayError)
        assert failure.message == "Card declined"

    def test_backend_rejection_is_gateway_error(self) -> None:
        failure = self.classifier.classify(
            _status_error(500, {"error": "Failed to create order"}), stage="order"
        )
        assert isinstance(failure, GatewayError)
        assert failure.message == "Failed to create order"

    def test_timeout_is_transport_error(self) -> None:
        failure = self.classifier.classify(httpx.ReadTimeout("timed out"), stage="order")
        assert isinstance(failure, TransportError)
        assert "timed out" in failure.message

    def test_connection_error_is_transport_error(self) -> None:
        failure = self.classifier.classify(
            httpx.ConnectError("connection refused"), stage="order"
        )
        assert isinstance(failure, TransportError)

    def test_malformed_response_is_transport_error(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            CreateOrderResponseDTO.model_validate({"orderId": 42})
        failure = self.classifier.classify(exc_info.value, stage="order")
        assert isinstance(failure, TransportError)

        failure = self.classifier.classify(
            json.JSONDecodeError("Expecting value", "<html>", 0), stage="order"
        )
        assert isinstance(failure, TransportError)

    def test_verify_stage_is_always_verification_failure(self) -> None:
        """Once money moved, every failure means the charge is unconfirmed."""
        for raw in (
            httpx.ReadTimeout("timed out"),
            BackendRejectedError({"error": "Invalid signature"}),
            {"error": "Amount exceeds maximum amount allowed."},
        ):
            failure = self.classifier.classify(raw, stage="verify")
            assert isinstance(failure, VerificationFailedError)

    def test_unknown_exception_is_transport_error(self) -> None:
        failure = self.classifier.classify(RuntimeError("boom"), stage="order")
        assert isinstance(failure, TransportError)
        assert failure.message == "boom"
