from __future__ import annotations

import logging

from schoolcomms.config import settings
from schoolcomms.core.identity import Party
from schoolcomms.core.outcome import guarded
from schoolcomms.core.time_provider import utc_now
from schoolcomms.gateway import DataStoreGateway, eq, in_, neq
from schoolcomms.metrics import timed_service
from schoolcomms.models import AdminMessage, ContentUpdate, DirectedMessage, StudentNotice
from schoolcomms.schemas import BadgeOut, StudentUnreadSummary
from schoolcomms.services.directed_message_service import (
    direct_unread_filters,
    insert_receipt,
    unread_broadcast_ids,
)


logger = logging.getLogger(__name__)

ADMIN_MESSAGES = AdminMessage.__tablename__
MESSAGES = DirectedMessage.__tablename__
NOTICES = StudentNotice.__tablename__
CONTENT_UPDATES = ContentUpdate.__tablename__


def format_badge(count: int, cap: int | None = None) -> str:
    """Badge label for an unread count; the count itself is never capped."""
    limit = settings.badge_cap if cap is None else cap
    if count > limit:
        return f'{limit}+'
    return str(max(count, 0))


def conversation_unread_filters(conversation_id: str, viewer_id: str) -> list:
    return [
        eq('conversation_id', conversation_id),
        neq('sender_id', viewer_id),
        eq('is_read', False),
    ]


async def count_conversation_unread(gateway: DataStoreGateway, conversation_id: str, viewer_id: str) -> int:
    return await gateway.count(ADMIN_MESSAGES, filters=conversation_unread_filters(conversation_id, viewer_id))


@guarded('conversation_unread_count')
async def conversation_unread_count(gateway: DataStoreGateway, conversation_id: str, viewer_id: str) -> int:
    return await count_conversation_unread(gateway, conversation_id, viewer_id)


async def count_inbox_unread(gateway: DataStoreGateway, viewer: Party) -> int:
    direct = await gateway.count(MESSAGES, filters=direct_unread_filters(viewer))
    broadcast = await unread_broadcast_ids(gateway, viewer)
    return direct + len(broadcast)


@timed_service('inbox_unread_count')
@guarded('inbox_unread_count')
async def inbox_unread_count(gateway: DataStoreGateway, viewer: Party) -> int:
    return await count_inbox_unread(gateway, viewer)


@timed_service('mark_all_as_read')
@guarded('mark_all_as_read')
async def mark_all_as_read(gateway: DataStoreGateway, viewer: Party) -> int:
    """Mark every message currently unread for the viewer as read.

    The unread set is captured first, so messages arriving mid-call stay
    unread. Returns how many messages changed state.
    """
    pending = await gateway.select(MESSAGES, columns=['id'], filters=direct_unread_filters(viewer))
    pending_ids = [row['id'] for row in pending]
    broadcast_ids = await unread_broadcast_ids(gateway, viewer)

    changed = 0
    if pending_ids:
        updated = await gateway.update(
            MESSAGES,
            {'is_read': True, 'read_at': utc_now()},
            filters=[in_('id', pending_ids), eq('is_read', False)],
        )
        changed += len(updated)
    for message_id in broadcast_ids:
        if await insert_receipt(gateway, message_id, viewer.id):
            changed += 1
    logger.info('inbox_mark_all_read viewer_type=%s viewer_id=%s changed=%s', viewer.kind.value, viewer.id, changed)
    return changed


@guarded('student_unread_summary')
async def student_unread_summary(gateway: DataStoreGateway, student_id: str) -> StudentUnreadSummary:
    viewer = Party.student(student_id)
    messages = await gateway.count(MESSAGES, filters=direct_unread_filters(viewer))
    notices = await gateway.count(NOTICES, filters=[eq('student_id', student_id), eq('is_read', False)])
    updates = await gateway.count(CONTENT_UPDATES, filters=[eq('student_id', student_id), eq('is_read', False)])
    return StudentUnreadSummary(messages=messages, notices=notices, updates=updates)


def badge_for(count: int) -> BadgeOut:
    return BadgeOut(count=count, label=format_badge(count))
