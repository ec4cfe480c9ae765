from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from schoolcomms.config import settings
from schoolcomms.core.time_provider import default_time_provider
from schoolcomms.gateway import DataStoreGateway, PresenceChannel, SubscriptionStatus
from schoolcomms.schemas import PresenceEntry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresenceIdentity:
    id: str
    name: str
    type: str


class PresenceTracker:
    """Who is online on a presence channel.

    With an identity the tracker announces itself each time the channel
    reports SUBSCRIBED, which covers reconnects. Without one it only observes.
    Every sync replaces ``online`` with the full snapshot.
    """

    def __init__(
        self,
        gateway: DataStoreGateway,
        identity: PresenceIdentity | None = None,
        *,
        channel_name: str | None = None,
        on_change: Callable[[list[PresenceEntry]], Awaitable[None]] | None = None,
    ) -> None:
        self.gateway = gateway
        self.identity = identity
        self.channel_name = channel_name or settings.presence_channel_name
        self.online: list[PresenceEntry] = []
        self.announcements = 0
        self._on_change = on_change
        self._channel: PresenceChannel | None = None

    @classmethod
    def observer(cls, gateway: DataStoreGateway, **kwargs) -> 'PresenceTracker':
        return cls(gateway, None, **kwargs)

    @property
    def started(self) -> bool:
        return self._channel is not None

    async def start(self) -> None:
        if self._channel is not None:
            return
        key = self.identity.id if self.identity else None
        self._channel = self.gateway.presence_channel(self.channel_name, key=key)
        self._channel.on_sync(self._handle_sync)
        await self._channel.subscribe(self._handle_status)

    async def stop(self, *, notify: bool = True) -> None:
        channel = self._channel
        if channel is None:
            return
        self._channel = None
        if not notify:
            self._on_change = None
        if self.identity is not None:
            await channel.untrack()
        await channel.unsubscribe()
        self.online = []
        logger.info('presence_stopped channel=%s user_id=%s', self.channel_name, self.identity.id if self.identity else None)

    def is_online(self, user_id: str) -> bool:
        return any(entry.id == user_id for entry in self.online)

    async def _handle_status(self, status: SubscriptionStatus) -> None:
        if status != SubscriptionStatus.SUBSCRIBED or self.identity is None or self._channel is None:
            return
        await self._channel.track(
            {
                'id': self.identity.id,
                'name': self.identity.name,
                'type': self.identity.type,
                'online_at': default_time_provider.now(),
            }
        )
        self.announcements += 1
        logger.info('presence_announced channel=%s user_id=%s', self.channel_name, self.identity.id)

    async def _handle_sync(self, entries: list[dict]) -> None:
        self.online = [PresenceEntry.model_validate(entry) for entry in entries]
        if self._on_change is not None:
            await self._on_change(list(self.online))
