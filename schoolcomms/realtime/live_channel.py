from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence

from schoolcomms.gateway import ChangeEvent, ChangeSubscription, ChangeType, DataStoreGateway, SubscriptionStatus


logger = logging.getLogger(__name__)


class ChannelState(str, Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    SUBSCRIBED = 'subscribed'


@dataclass(frozen=True)
class Watch:
    table: str
    event_types: tuple[ChangeType, ...] = (ChangeType.ALL,)
    filters: tuple[Any, ...] = field(default_factory=tuple)


class LiveUpdateChannel:
    """Change subscriptions for one view.

    Every matching change calls ``on_change``; the owner re-fetches instead of
    merging the event. After a dropped connection comes back, ``on_reconnect``
    runs once so changes missed while disconnected are picked up.
    """

    def __init__(
        self,
        gateway: DataStoreGateway,
        watches: Sequence[Watch],
        on_change: Callable[[ChangeEvent], Awaitable[None]],
        *,
        label: str,
        on_reconnect: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        self.gateway = gateway
        self.watches = tuple(watches)
        self.label = label
        self.state = ChannelState.DISCONNECTED
        self._on_change = on_change
        self._on_reconnect = on_reconnect
        self._subscriptions: list[ChangeSubscription] = []
        self._closed = False
        self._dropped = False

    @property
    def active(self) -> bool:
        return not self._closed and bool(self._subscriptions)

    async def subscribe(self) -> None:
        if self._closed:
            raise RuntimeError(f'Channel {self.label} was unsubscribed')
        if self._subscriptions:
            return
        self.state = ChannelState.CONNECTING
        for watch in self.watches:
            subscription = await self.gateway.subscribe_changes(
                watch.table,
                self._handle_event,
                event_types=watch.event_types,
                filters=watch.filters,
                on_status=self._handle_status,
            )
            self._subscriptions.append(subscription)
        logger.info('live_channel_subscribed label=%s watches=%s', self.label, len(self.watches))

    async def unsubscribe(self) -> None:
        self._closed = True
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        self.state = ChannelState.DISCONNECTED
        logger.info('live_channel_unsubscribed label=%s', self.label)

    async def _handle_event(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        await self._on_change(event)

    async def _handle_status(self, status: SubscriptionStatus) -> None:
        if self._closed:
            return
        if status == SubscriptionStatus.SUBSCRIBED:
            if self.state == ChannelState.SUBSCRIBED:
                return
            self.state = ChannelState.SUBSCRIBED
            if self._dropped:
                self._dropped = False
                logger.info('live_channel_reconnected label=%s', self.label)
                if self._on_reconnect is not None:
                    await self._on_reconnect()
            return
        if self.state != ChannelState.DISCONNECTED:
            logger.warning('live_channel_dropped label=%s status=%s', self.label, status.value)
        self.state = ChannelState.DISCONNECTED
        self._dropped = True
