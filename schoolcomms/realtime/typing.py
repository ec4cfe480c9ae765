from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from schoolcomms.config import settings
from schoolcomms.core.time_provider import default_time_provider
from schoolcomms.gateway import DataStoreGateway, PresenceChannel
from schoolcomms.schemas import TypingEntry


logger = logging.getLogger(__name__)

UNNAMED_TYPIST = 'Someone'


def typing_channel_name(conversation_id: str) -> str:
    return f'typing:{conversation_id}'


def typing_label(entries: list[TypingEntry]) -> str:
    if not entries:
        return ''
    if len(entries) == 1:
        return f'{entries[0].name or UNNAMED_TYPIST} is typing...'
    return f'{len(entries)} people are typing...'


class TypingIndicator:
    """Who else is typing in one conversation.

    Typing state rides on a presence channel keyed by user, so a reconnect
    replaces the old entry. ``set_typing(True)`` announces and arms an expiry
    that withdraws the entry after ``expire_after`` seconds without another
    keystroke. Readers also drop entries older than ``stale_after`` in case a
    typist vanished without withdrawing.
    """

    def __init__(
        self,
        gateway: DataStoreGateway,
        conversation_id: str,
        user_id: str,
        name: str = '',
        *,
        expire_after: float | None = None,
        stale_after: float | None = None,
        on_change: Callable[[list[TypingEntry]], Awaitable[None]] | None = None,
    ) -> None:
        self.gateway = gateway
        self.conversation_id = conversation_id
        self.user_id = user_id
        self.name = name
        self.expire_after = settings.typing_timeout_seconds if expire_after is None else expire_after
        self.stale_after = settings.typing_stale_seconds if stale_after is None else stale_after
        self.channel_name = typing_channel_name(conversation_id)
        self._on_change = on_change
        self._entries: list[TypingEntry] = []
        self._channel: PresenceChannel | None = None
        self._expiry: asyncio.Task | None = None

    @property
    def started(self) -> bool:
        return self._channel is not None

    @property
    def is_typing(self) -> bool:
        return self._expiry is not None

    async def start(self) -> 'TypingIndicator':
        if self._channel is None:
            self._channel = self.gateway.presence_channel(self.channel_name, key=self.user_id)
            self._channel.on_sync(self._handle_sync)
            await self._channel.subscribe()
        return self

    async def stop(self) -> None:
        channel = self._channel
        if channel is None:
            return
        self._cancel_expiry()
        self._channel = None
        self._on_change = None
        await channel.untrack()
        await channel.unsubscribe()
        self._entries = []

    async def set_typing(self, active: bool) -> None:
        if self._channel is None:
            return
        self._cancel_expiry()
        if not active:
            await self._channel.untrack()
            return
        await self._channel.track(
            {'id': self.user_id, 'name': self.name, 'started_at': default_time_provider.now()}
        )
        self._expiry = asyncio.create_task(self._expire())

    @property
    def typing_users(self) -> list[TypingEntry]:
        now = default_time_provider.now()
        return [
            entry
            for entry in self._entries
            if entry.id != self.user_id and (now - entry.started_at).total_seconds() <= self.stale_after
        ]

    @property
    def label(self) -> str:
        return typing_label(self.typing_users)

    def _cancel_expiry(self) -> None:
        if self._expiry is not None:
            self._expiry.cancel()
        self._expiry = None

    async def _expire(self) -> None:
        await asyncio.sleep(self.expire_after)
        self._expiry = None
        if self._channel is not None:
            logger.debug('typing_expired conversation_id=%s user_id=%s', self.conversation_id, self.user_id)
            await self._channel.untrack()

    async def _handle_sync(self, entries: list[dict]) -> None:
        self._entries = [TypingEntry.model_validate(entry) for entry in entries]
        if self._on_change is not None:
            await self._on_change(self.typing_users)
