from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Awaitable, Callable, TypeVar

from schoolcomms.config import settings


logger = logging.getLogger('schoolcomms.metrics')

T = TypeVar('T')


def timed_service(
    label: str,
    *,
    threshold_ms: int | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Log a ``service_timer`` line when an async service call runs slow."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        threshold_value = threshold_ms if threshold_ms is not None else settings.metrics_slow_ms

        @wraps(func)
        async def wrapper(*args: object, **kwargs: object) -> T:
            started = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                duration_ms = (time.perf_counter() - started) * 1000.0
                if duration_ms >= threshold_value:
                    logger.info('service_timer label=%s duration_ms=%.2f', label, duration_ms)

        return wrapper

    return decorator
