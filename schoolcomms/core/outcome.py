from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Awaitable, Callable, Generic, TypeVar

from schoolcomms.core.errors import MessagingError, TransientStoreError
from schoolcomms.gateway.base import StoreError


logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Value-or-error result returned by every store-facing operation."""

    ok: bool
    value: T | None = None
    error: MessagingError | None = None

    @classmethod
    def success(cls, value: T | None = None) -> 'Outcome[T]':
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: MessagingError) -> 'Outcome[T]':
        return cls(ok=False, error=error)

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> T:
        if not self.ok:
            raise self.error or MessagingError()
        return self.value  # type: ignore[return-value]


def guarded(label: str) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Outcome[Any]]]]:
    """Wrap a coroutine so that nothing raises past the service boundary.

    The wrapped coroutine returns a plain value on success; messaging errors
    become failures as-is, store errors become retryable failures and anything
    else is logged and reported as a generic failure.
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Outcome[Any]]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Outcome[Any]:
            try:
                result = await func(*args, **kwargs)
            except MessagingError as exc:
                logger.info('%s_rejected code=%s reason=%s', label, exc.code, exc.message)
                return Outcome.failure(exc)
            except StoreError as exc:
                logger.warning('%s_store_unavailable error=%s', label, exc)
                return Outcome.failure(TransientStoreError('Service temporarily unavailable, please retry'))
            except Exception:
                logger.exception('%s_failed', label)
                return Outcome.failure(MessagingError())
            if isinstance(result, Outcome):
                return result
            return Outcome.success(result)

        return wrapper

    return decorator
