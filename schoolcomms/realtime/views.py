from __future__ import annotations

import logging
from dataclasses import dataclass, field

from schoolcomms.config import settings
from schoolcomms.core.drafts import DraftBuffer
from schoolcomms.core.identity import Party, PartyKind
from schoolcomms.core.outcome import Outcome, guarded
from schoolcomms.gateway import ChangeEvent, ChangeType, DataStoreGateway, any_of, eq
from schoolcomms.models import AdminConversation, AdminMessage, ContentUpdate, DirectedMessage, MessageRead, StudentNotice
from schoolcomms.realtime.live_channel import LiveUpdateChannel, Watch
from schoolcomms.realtime.live_list import LiveList
from schoolcomms.realtime.poller import Poller
from schoolcomms.schemas import ContentUpdateView, DirectedMessageView, MessageView, NoticeView, StaffThreadPreview
from schoolcomms.services import (
    admin_message_service,
    content_update_service,
    conversation_service,
    directed_message_service,
    notice_service,
    notification_service,
    staff_chat_service,
)


logger = logging.getLogger(__name__)


class LiveView:
    """A fetched list kept current by change subscriptions.

    Subclasses provide ``fetch`` and ``watches``. ``open`` subscribes first and
    then loads, so nothing written in between is missed; ``close`` tears the
    subscriptions down and discards any fetch still in flight.
    """

    label = 'view'

    def __init__(self, gateway: DataStoreGateway) -> None:
        self.gateway = gateway
        self.live = LiveList(self.fetch, label=self.label, on_change=self._on_loaded)
        self.channel: LiveUpdateChannel | None = None

    async def fetch(self) -> Outcome:
        raise NotImplementedError

    def watches(self) -> list[Watch]:
        return []

    @property
    def value(self):
        return self.live.value

    @property
    def error(self):
        return self.live.error

    async def open(self) -> 'LiveView':
        watches = self.watches()
        if watches:
            self.channel = LiveUpdateChannel(
                self.gateway,
                watches,
                self._on_change,
                label=self.label,
                on_reconnect=self.refresh,
            )
            await self.channel.subscribe()
        await self.refresh()
        return self

    async def refresh(self):
        return await self.live.refresh()

    async def close(self) -> None:
        self.live.close()
        if self.channel is not None:
            await self.channel.unsubscribe()

    async def _on_change(self, event: ChangeEvent) -> None:
        logger.debug('view_change label=%s table=%s event=%s', self.label, event.table, event.event_type.value)
        await self.refresh()

    async def _on_loaded(self, live: LiveList) -> None:
        """Runs only for results the live list accepted."""


class ConversationListView(LiveView):
    label = 'conversation_list'

    def __init__(self, gateway: DataStoreGateway, viewer_id: str) -> None:
        self.viewer_id = viewer_id
        super().__init__(gateway)

    async def fetch(self) -> Outcome:
        return await conversation_service.list_conversations(self.gateway, self.viewer_id)

    def watches(self) -> list[Watch]:
        return [
            Watch(
                AdminConversation.__tablename__,
                filters=(any_of(eq('participant_a', self.viewer_id), eq('participant_b', self.viewer_id)),),
            ),
            Watch(AdminMessage.__tablename__),
        ]

    @property
    def total_unread(self) -> int:
        return sum(summary.unread_count for summary in self.value or [])

    async def start_conversation(self, other_user_id: str) -> Outcome:
        return await conversation_service.resolve_conversation(self.gateway, self.viewer_id, other_user_id)


class ConversationThreadView(LiveView):
    """Messages of one conversation, oldest first.

    Every successful load also marks the other participant's messages read.
    """

    label = 'conversation_thread'

    def __init__(self, gateway: DataStoreGateway, conversation_id: str, viewer_id: str) -> None:
        self.conversation_id = conversation_id
        self.viewer_id = viewer_id
        self.draft = DraftBuffer()
        super().__init__(gateway)

    async def fetch(self) -> Outcome:
        return await admin_message_service.list_conversation_messages(self.gateway, self.conversation_id)

    async def _on_loaded(self, live: LiveList) -> None:
        # A load dropped as stale or closed never reaches here, so nothing
        # unseen gets marked read.
        if live.error is None:
            await admin_message_service.mark_conversation_read(self.gateway, self.conversation_id, self.viewer_id)

    def watches(self) -> list[Watch]:
        return [
            Watch(
                AdminMessage.__tablename__,
                event_types=(ChangeType.INSERT,),
                filters=(eq('conversation_id', self.conversation_id),),
            )
        ]

    @property
    def messages(self) -> list[MessageView]:
        return self.value or []

    async def send(self, text: str | None = None) -> Outcome:
        content = self.draft.current if text is None else text
        correlation_id = self.draft.stage(content)
        outcome = await admin_message_service.send_message(self.gateway, self.conversation_id, self.viewer_id, content)
        if outcome.ok:
            self.draft.confirm(correlation_id)
        else:
            self.draft.rollback(correlation_id)
        return outcome


@dataclass
class InboxSnapshot:
    messages: list[DirectedMessageView] = field(default_factory=list)
    unread_count: int = 0

    @property
    def badge(self) -> str:
        return notification_service.format_badge(self.unread_count)


class InboxView(LiveView):
    label = 'inbox'

    def __init__(self, gateway: DataStoreGateway, viewer: Party, *, limit: int | None = None) -> None:
        self.viewer = viewer
        self.limit = limit or settings.inbox_limit
        super().__init__(gateway)

    @guarded('inbox_snapshot')
    async def fetch(self) -> InboxSnapshot:
        messages = (await directed_message_service.list_inbox(self.gateway, self.viewer, limit=self.limit)).unwrap()
        unread = (await notification_service.inbox_unread_count(self.gateway, self.viewer)).unwrap()
        return InboxSnapshot(messages=messages, unread_count=unread)

    def watches(self) -> list[Watch]:
        watches = [Watch(DirectedMessage.__tablename__, filters=tuple(directed_message_service.inbox_filters(self.viewer)))]
        if self.viewer.kind == PartyKind.ADMIN:
            watches.append(Watch(MessageRead.__tablename__, filters=(eq('reader_id', self.viewer.id),)))
        return watches

    @property
    def snapshot(self) -> InboxSnapshot:
        return self.value or InboxSnapshot()

    @property
    def badge_label(self) -> str:
        return self.snapshot.badge

    async def reply(self, message_id: str, content: str) -> Outcome:
        return await directed_message_service.reply_to_message(
            self.gateway, message_id=message_id, replier=self.viewer, content=content
        )

    async def mark_read(self, message_id: str) -> Outcome:
        return await directed_message_service.mark_message_read(self.gateway, message_id, self.viewer)

    async def mark_all_read(self) -> Outcome:
        return await notification_service.mark_all_as_read(self.gateway, self.viewer)


class StaffThreadListView(LiveView):
    label = 'staff_threads'

    def __init__(self, gateway: DataStoreGateway, viewer: Party) -> None:
        self.viewer = viewer
        super().__init__(gateway)

    async def fetch(self) -> Outcome:
        return await staff_chat_service.list_staff_threads(self.gateway, self.viewer)

    def watches(self) -> list[Watch]:
        # Read marks arrive as updates and must refresh the unread counts too.
        return [
            Watch(
                DirectedMessage.__tablename__,
                filters=(any_of(eq('sender_user_id', self.viewer.id), eq('recipient_user_id', self.viewer.id)),),
            )
        ]

    @property
    def threads(self) -> list[StaffThreadPreview]:
        return self.value or []

    @property
    def total_unread(self) -> int:
        return sum(thread.unread_count for thread in self.threads)

    @property
    def badge_label(self) -> str:
        return notification_service.format_badge(self.total_unread)


class StaffThreadView(LiveView):
    """One staff member's thread with a contact, oldest first."""

    label = 'staff_thread'

    def __init__(self, gateway: DataStoreGateway, viewer: Party, contact_id: str) -> None:
        self.viewer = viewer
        self.contact_id = contact_id
        self.draft = DraftBuffer()
        super().__init__(gateway)

    async def fetch(self) -> Outcome:
        return await staff_chat_service.list_staff_thread(self.gateway, self.viewer, self.contact_id)

    async def _on_loaded(self, live: LiveList) -> None:
        if live.error is None:
            await staff_chat_service.mark_staff_thread_read(self.gateway, self.viewer, self.contact_id)

    def watches(self) -> list[Watch]:
        return [
            Watch(
                DirectedMessage.__tablename__,
                event_types=(ChangeType.INSERT,),
                filters=tuple(staff_chat_service.thread_filters(self.viewer.id, self.contact_id)),
            )
        ]

    @property
    def messages(self) -> list[DirectedMessageView]:
        return self.value or []

    async def send(self, text: str | None = None) -> Outcome:
        content = self.draft.current if text is None else text
        correlation_id = self.draft.stage(content)
        outcome = await staff_chat_service.send_staff_message(self.gateway, self.viewer, self.contact_id, content)
        if outcome.ok:
            self.draft.confirm(correlation_id)
        else:
            self.draft.rollback(correlation_id)
        return outcome


class StudentNoticeFeed(LiveView):
    label = 'student_notices'

    def __init__(self, gateway: DataStoreGateway, student_id: str) -> None:
        self.student_id = student_id
        super().__init__(gateway)

    async def fetch(self) -> Outcome:
        return await notice_service.list_notices(self.gateway, self.student_id)

    def watches(self) -> list[Watch]:
        return [Watch(StudentNotice.__tablename__, filters=(eq('student_id', self.student_id),))]

    @property
    def notices(self) -> list[NoticeView]:
        return self.value or []

    @property
    def unread_count(self) -> int:
        return sum(1 for notice in self.notices if not notice.is_read)

    async def mark_read(self, notice_id: str) -> Outcome:
        return await notice_service.mark_notice_read(self.gateway, notice_id, self.student_id)


class StudentUpdatesFeed(LiveView):
    """Content-update badges for a student, kept fresh by polling or by
    change subscriptions; both paths run the same fetch."""

    label = 'student_updates'

    def __init__(
        self,
        gateway: DataStoreGateway,
        student_id: str,
        *,
        realtime: bool = False,
        interval: float | None = None,
    ) -> None:
        self.student_id = student_id
        self.realtime = realtime
        self.poller: Poller | None = None
        if not realtime:
            interval = settings.student_update_poll_seconds if interval is None else interval
            self.poller = Poller(self.refresh, interval, label=self.label)
        super().__init__(gateway)

    async def fetch(self) -> Outcome:
        return await content_update_service.list_content_updates(self.gateway, self.student_id)

    def watches(self) -> list[Watch]:
        if not self.realtime:
            return []
        return [Watch(ContentUpdate.__tablename__, filters=(eq('student_id', self.student_id),))]

    async def open(self) -> 'StudentUpdatesFeed':
        if self.poller is None:
            await super().open()
        else:
            # The poller's first tick is the initial load.
            await self.poller.start()
        return self

    async def close(self) -> None:
        if self.poller is not None:
            await self.poller.stop()
        await super().close()

    @property
    def updates(self) -> list[ContentUpdateView]:
        return self.value or []

    @property
    def unread_count(self) -> int:
        return sum(1 for update in self.updates if not update.is_read)

    async def mark_read(self, update_id: str) -> Outcome:
        outcome = await content_update_service.mark_update_read(self.gateway, update_id, self.student_id)
        if outcome.ok and self.poller is not None:
            await self.refresh()
        return outcome
