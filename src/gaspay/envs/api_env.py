from __future__ import annotations

import os

from pydantic import BaseModel

from .settlement_env import Settings as SettlementSettings
from .settlement_env import get_settings as get_settlement_settings


class Settings(BaseModel):
    """Typed settlement API settings built from environment variables."""

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    api_cors_origins: list[str] = ["*"]

    # Application settings
    app_name: str = "GasPay"
    app_version: str = "1.0.0"

    settlement: SettlementSettings


def get_settings() -> Settings:
    """Return typed settings instance sourced from env vars."""
    return Settings(
        api_host=os.environ.get("API_HOST", "0.0.0.0"),
        api_port=int(os.environ.get("API_PORT", "8000")),
        api_debug=os.environ.get("API_DEBUG", "false").lower() == "true",
        api_cors_origins=os.environ.get("API_CORS_ORIGINS", "*").split(","),
        app_name=os.environ.get("APP_NAME", "GasPay"),
        app_version=os.environ.get("APP_VERSION", "1.0.0"),
        settlement=get_settlement_settings(),
    )
