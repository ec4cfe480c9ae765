from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable


logger = logging.getLogger(__name__)


class Poller:
    """Runs ``action`` immediately and then every ``interval`` seconds."""

    def __init__(self, action: Callable[[], Awaitable[Any]], interval: float, *, label: str) -> None:
        self.action = action
        self.interval = interval
        self.label = label
        self.ticks = 0
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run(self) -> None:
        while self._running:
            await self._tick()
            await asyncio.sleep(self.interval)

    async def _tick(self) -> None:
        self.ticks += 1
        try:
            await self.action()
        except Exception:
            logger.exception('poll_tick_failed label=%s tick=%s', self.label, self.ticks)
