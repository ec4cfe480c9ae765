from __future__ import annotations

import asyncio
import logging

from schoolcomms.gateway.base import ChangeEvent, ChangeSubscription, SubscriptionStatus


logger = logging.getLogger(__name__)


class ChangeBus:
    """Fans committed row changes out to table subscriptions."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[ChangeSubscription]] = {}

    def add(self, subscription: ChangeSubscription) -> ChangeSubscription:
        subscription._cancel = self._remove
        self._subscriptions.setdefault(subscription.table, []).append(subscription)
        return subscription

    def _remove(self, subscription: ChangeSubscription) -> None:
        subs = self._subscriptions.get(subscription.table)
        if subs and subscription in subs:
            subs.remove(subscription)
            if not subs:
                del self._subscriptions[subscription.table]

    def subscriber_count(self, table: str | None = None) -> int:
        if table is not None:
            return len(self._subscriptions.get(table, []))
        return sum(len(subs) for subs in self._subscriptions.values())

    async def emit(self, event: ChangeEvent) -> None:
        handlers = [sub for sub in self._subscriptions.get(event.table, []) if sub.wants(event)]
        if not handlers:
            return
        await asyncio.gather(*(self._deliver(sub, event) for sub in handlers))

    async def emit_status(self, status: SubscriptionStatus) -> None:
        subs = [sub for table_subs in self._subscriptions.values() for sub in table_subs]
        await asyncio.gather(*(self._deliver_status(sub, status) for sub in subs if sub.on_status))

    async def _deliver(self, sub: ChangeSubscription, event: ChangeEvent) -> None:
        # A subscription cancelled while earlier handlers ran gets nothing.
        if not sub.active:
            return
        try:
            await sub.on_event(event)
        except Exception:
            logger.exception('change_handler_failed table=%s event=%s', event.table, event.event_type.value)

    async def _deliver_status(self, sub: ChangeSubscription, status: SubscriptionStatus) -> None:
        if not sub.active or sub.on_status is None:
            return
        try:
            await sub.on_status(status)
        except Exception:
            logger.exception('status_handler_failed table=%s status=%s', sub.table, status.value)
