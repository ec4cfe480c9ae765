from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

from schoolcomms.gateway.base import PresenceChannel, Row, StatusHandler, SubscriptionStatus, SyncHandler


logger = logging.getLogger(__name__)


class InMemoryPresenceChannel(PresenceChannel):
    def __init__(self, hub: 'PresenceHub', name: str, key: str | None) -> None:
        self.hub = hub
        self.name = name
        self.key = key or str(uuid4())
        self.payload: Row | None = None
        self.joined = False
        self._sync_handlers: list[SyncHandler] = []
        self._on_status: StatusHandler | None = None

    def on_sync(self, handler: SyncHandler) -> None:
        self._sync_handlers.append(handler)

    async def subscribe(self, on_status: StatusHandler | None = None) -> None:
        self._on_status = on_status
        await self.hub._join(self)
        await self._notify_status(SubscriptionStatus.SUBSCRIBED)
        await self._deliver_sync(self.hub.snapshot(self.name))

    async def track(self, payload: Row) -> None:
        if not self.joined:
            raise RuntimeError('Presence channel is not subscribed')
        self.payload = dict(payload)
        await self.hub._broadcast_sync(self.name)

    async def untrack(self) -> None:
        if self.payload is None:
            return
        self.payload = None
        await self.hub._broadcast_sync(self.name)

    async def unsubscribe(self) -> None:
        if not self.joined:
            return
        self._sync_handlers.clear()
        self._on_status = None
        await self.hub._leave(self)

    def state(self) -> list[Row]:
        return self.hub.snapshot(self.name)

    async def _notify_status(self, status: SubscriptionStatus) -> None:
        if self._on_status is None:
            return
        try:
            await self._on_status(status)
        except Exception:
            logger.exception('presence_status_handler_failed channel=%s status=%s', self.name, status.value)

    async def _deliver_sync(self, snapshot: list[Row]) -> None:
        for handler in list(self._sync_handlers):
            try:
                await handler([dict(entry) for entry in snapshot])
            except Exception:
                logger.exception('presence_sync_handler_failed channel=%s', self.name)


class PresenceHub:
    """In-process presence state per channel name; nothing is persisted."""

    def __init__(self) -> None:
        self._members: dict[str, dict[str, InMemoryPresenceChannel]] = {}
        self._lock = asyncio.Lock()

    def channel(self, name: str, *, key: str | None = None) -> InMemoryPresenceChannel:
        return InMemoryPresenceChannel(self, name, key)

    def snapshot(self, name: str) -> list[Row]:
        members = self._members.get(name, {})
        return [dict(member.payload) for member in members.values() if member.payload is not None]

    def member_count(self, name: str) -> int:
        return len(self._members.get(name, {}))

    async def _join(self, channel: InMemoryPresenceChannel) -> None:
        async with self._lock:
            members = self._members.setdefault(channel.name, {})
            previous = members.get(channel.key)
            if previous is not None and previous is not channel:
                # Same key reconnecting: the newer connection owns the entry.
                previous.joined = False
                previous.payload = None
                logger.info('presence_member_replaced channel=%s key=%s', channel.name, channel.key)
            members[channel.key] = channel
            channel.joined = True

    async def _leave(self, channel: InMemoryPresenceChannel) -> None:
        async with self._lock:
            members = self._members.get(channel.name)
            if members is not None:
                if members.get(channel.key) is channel:
                    del members[channel.key]
                if not members:
                    del self._members[channel.name]
            channel.joined = False
            channel.payload = None
        await self._broadcast_sync(channel.name)

    async def _broadcast_sync(self, name: str) -> None:
        async with self._lock:
            members = list(self._members.get(name, {}).values())
        snapshot = self.snapshot(name)
        for member in members:
            await member._deliver_sync(snapshot)

    async def reset_connections(self, name: str | None = None) -> None:
        """Drop every connection and reconnect it, losing all announcements.

        Trackers observe CLOSED then SUBSCRIBED and must announce again.
        """
        names = [name] if name is not None else list(self._members)
        for channel_name in names:
            async with self._lock:
                members = list(self._members.get(channel_name, {}).values())
                for member in members:
                    member.payload = None
            logger.info('presence_connections_reset channel=%s members=%s', channel_name, len(members))
            for member in members:
                await member._notify_status(SubscriptionStatus.CLOSED)
            await self._broadcast_sync(channel_name)
            for member in members:
                if member.joined:
                    await member._notify_status(SubscriptionStatus.SUBSCRIBED)
