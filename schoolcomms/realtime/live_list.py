from __future__ import annotations

import logging
from typing import Awaitable, Callable, Generic, TypeVar

from schoolcomms.core.errors import MessagingError
from schoolcomms.core.outcome import Outcome


logger = logging.getLogger(__name__)

T = TypeVar('T')

Fetcher = Callable[[], Awaitable[Outcome[T]]]


class LiveList(Generic[T]):
    """Locally held result of a fetcher, replaced wholesale on every refresh.

    A refresh that completes after a newer refresh started, or after the list
    was closed, is dropped so an old response never overwrites a newer one.
    """

    def __init__(
        self,
        fetcher: Fetcher[T],
        *,
        label: str,
        initial: T | None = None,
        on_change: Callable[['LiveList[T]'], Awaitable[None]] | None = None,
    ) -> None:
        self._fetcher = fetcher
        self.label = label
        self.value: T | None = initial
        self.error: MessagingError | None = None
        self.loading = False
        self.closed = False
        self.generation = 0
        self.refresh_count = 0
        self._on_change = on_change

    async def refresh(self) -> Outcome[T] | None:
        if self.closed:
            return None
        self.generation += 1
        generation = self.generation
        self.loading = True
        outcome = await self._fetcher()
        if self.closed or generation != self.generation:
            logger.debug('live_list_stale_result label=%s generation=%s current=%s', self.label, generation, self.generation)
            return None
        self.loading = False
        self.refresh_count += 1
        if outcome.ok:
            self.value = outcome.value
            self.error = None
        else:
            # Keep showing the last good value alongside the error.
            self.error = outcome.error
            logger.info('live_list_refresh_failed label=%s code=%s', self.label, outcome.error.code if outcome.error else None)
        if self._on_change is not None:
            await self._on_change(self)
        return outcome

    def close(self) -> None:
        self.closed = True
        self.loading = False
