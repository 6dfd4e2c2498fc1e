from __future__ import annotations

import functools
import inspect
import logging
import time
from typing import Optional

logger = logging.getLogger("gaspay.timing")


def log_timing(tag: Optional[str] = None):
    """Log the wall time of an async call at debug level."""

    def decorator(func):
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"log_timing expects a coroutine function, got {func!r}")

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            t0 = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                dt_ms = (time.perf_counter() - t0) * 1000.0
                logger.debug("[%s] %.3fms", tag or func.__name__, dt_ms)

        return async_wrapper

    return decorator
