from __future__ import annotations

import asyncio
import logging
import sys
import uvicorn

# Install uvloop for better async performance (Linux/macOS only)
if sys.platform != "win32":
    try:
        import uvloop

        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    except ImportError:
        pass  # uvloop not available, continue with default event loop

from .envs.api_env import get_settings


def main() -> None:
    """Main entry point for the settlement API."""

    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.api_debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"Starting {settings.app_name} v{settings.app_version}")
    print(f"Payment backend: {settings.settlement.backend_base_url}")
    print(f"API will be available at: http://{settings.api_host}:{settings.api_port}")
    print(f"API Documentation: http://{settings.api_host}:{settings.api_port}/docs")

    # Runs are held in process memory, so the API always serves from one worker.
    uvicorn.run(
        "gaspay.api.settlement_api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        workers=1,
        log_level="debug" if settings.api_debug else "info",
    )


if __name__ == "__main__":
    main()
