from __future__ import annotations

import os
from decimal import Decimal
from urllib.parse import urlparse

from pydantic import BaseModel, field_validator, model_validator


class Settings(BaseModel):
    """Typed settlement settings built from environment variables."""

    backend_base_url: str
    backend_auth_token: str = ""
    create_order_path: str = "/api/agent/payment/create-order"
    verify_payment_path: str = "/api/agent/payment/verify"
    http_timeout_seconds: float = 10.0

    # Chunking
    safe_transaction_limit: Decimal = Decimal("25000")
    min_retry_amount: Decimal = Decimal("1000")
    pacing_delay_seconds: float = 1.0
    run_retention_seconds: float = 300.0

    # Checkout display
    merchant_name: str = "GASCo"
    default_currency: str = "INR"

    @field_validator("backend_base_url")
    @classmethod
    def validate_backend_base_url(cls, v: str) -> str:
        if not v:
            raise ValueError("Backend base URL cannot be empty")
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"}:
            raise ValueError("Backend base URL must start with http:// or https://")
        if not parsed.netloc:
            raise ValueError("Backend base URL must include a host")
        return v

    @field_validator("safe_transaction_limit")
    @classmethod
    def validate_safe_transaction_limit(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("SAFE_TRANSACTION_LIMIT must be positive")
        return v

    @field_validator(
        "pacing_delay_seconds", "http_timeout_seconds", "run_retention_seconds"
    )
    @classmethod
    def validate_non_negative_seconds(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Delays and timeouts cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_retry_floor(self) -> "Settings":
        if not (0 <= self.min_retry_amount < self.safe_transaction_limit):
            raise ValueError(
                "MIN_RETRY_AMOUNT must be non-negative and below SAFE_TRANSACTION_LIMIT"
            )
        return self


def get_settings() -> Settings:
    """Return typed settings instance sourced from env vars."""
    backend_base_url = os.environ.get("BACKEND_BASE_URL")
    if not backend_base_url:
        raise ValueError("BACKEND_BASE_URL is required")
    return Settings(
        backend_base_url=backend_base_url,
        backend_auth_token=os.environ.get("BACKEND_AUTH_TOKEN", ""),
        create_order_path=os.environ.get(
            "CREATE_ORDER_PATH", "/api/agent/payment/create-order"
        ),
        verify_payment_path=os.environ.get(
            "VERIFY_PAYMENT_PATH", "/api/agent/payment/verify"
        ),
        http_timeout_seconds=float(os.environ.get("HTTP_TIMEOUT_SECONDS", "10")),
        safe_transaction_limit=Decimal(os.environ.get("SAFE_TRANSACTION_LIMIT", "25000")),
        min_retry_amount=Decimal(os.environ.get("MIN_RETRY_AMOUNT", "1000")),
        pacing_delay_seconds=float(os.environ.get("PACING_DELAY_SECONDS", "1.0")),
        run_retention_seconds=float(os.environ.get("RUN_RETENTION_SECONDS", "300")),
        merchant_name=os.environ.get("MERCHANT_NAME", "GASCo"),
        default_currency=os.environ.get("DEFAULT_CURRENCY", "INR"),
    )
