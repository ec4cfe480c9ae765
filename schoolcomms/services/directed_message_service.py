from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from schoolcomms.config import settings
from schoolcomms.core.errors import NotFoundError, ReplyNotAllowedError, ValidationError
from schoolcomms.core.identity import Party, PartyKind
from schoolcomms.core.outcome import guarded
from schoolcomms.core.time_provider import utc_now
from schoolcomms.gateway import DataStoreGateway, UniqueViolationError, all_of, any_of, desc, eq, in_, is_null, neq
from schoolcomms.metrics import timed_service
from schoolcomms.models import DirectedMessage, MessageRead, Profile, Student
from schoolcomms.schemas import DirectedMessageView
from schoolcomms.services.activity_log_service import record_activity
from schoolcomms.services.validation import clean_content, clean_subject


logger = logging.getLogger(__name__)

MESSAGES = DirectedMessage.__tablename__
MESSAGE_READS = MessageRead.__tablename__

NO_SUBJECT = 'No Subject'
REPLY_PREFIX = 'Re: '


def reply_subject(original_subject: str | None) -> str:
    return f'{REPLY_PREFIX}{(original_subject or "").strip() or NO_SUBJECT}'


def reply_target(row: dict[str, Any]) -> Party | None:
    """Replies go back to the student who wrote the message.

    Messages without a student sender (staff messages, broadcasts) cannot be
    replied to; there is no target to guess.
    """
    if row.get('sender_type') == PartyKind.STUDENT.value and row.get('sender_student_id'):
        return Party.student(row['sender_student_id'])
    return None


def is_broadcast_row(row: dict[str, Any]) -> bool:
    return row.get('recipient_type') == PartyKind.ADMIN.value and row.get('recipient_user_id') is None


def broadcast_filters(viewer: Party) -> list:
    return [
        eq('recipient_type', PartyKind.ADMIN.value),
        is_null('recipient_user_id'),
        neq('sender_user_id', viewer.id),
    ]


def inbox_filters(viewer: Party) -> list:
    if viewer.kind == PartyKind.STUDENT:
        return [eq('recipient_type', PartyKind.STUDENT.value), eq('recipient_student_id', viewer.id)]
    if viewer.kind == PartyKind.ADMIN:
        return [any_of(eq('recipient_user_id', viewer.id), all_of(*broadcast_filters(viewer)))]
    if viewer.kind == PartyKind.TEACHER:
        return [eq('recipient_user_id', viewer.id)]
    raise ValidationError('A broadcast party has no inbox')


def direct_unread_filters(viewer: Party) -> list:
    if viewer.kind == PartyKind.STUDENT:
        return inbox_filters(viewer) + [eq('is_read', False)]
    return [eq('recipient_user_id', viewer.id), eq('is_read', False)]


async def read_receipts(gateway: DataStoreGateway, reader_id: str, message_ids: list[str]) -> dict[str, datetime]:
    if not message_ids:
        return {}
    rows = await gateway.select(
        MESSAGE_READS,
        columns=['message_id', 'read_at'],
        filters=[eq('reader_id', reader_id), in_('message_id', message_ids)],
    )
    return {row['message_id']: row['read_at'] for row in rows}


async def unread_broadcast_ids(gateway: DataStoreGateway, viewer: Party) -> list[str]:
    if viewer.kind != PartyKind.ADMIN:
        return []
    rows = await gateway.select(MESSAGES, columns=['id'], filters=broadcast_filters(viewer))
    ids = [row['id'] for row in rows]
    receipts = await read_receipts(gateway, viewer.id, ids)
    return [message_id for message_id in ids if message_id not in receipts]


async def insert_receipt(gateway: DataStoreGateway, message_id: str, reader_id: str) -> bool:
    try:
        await gateway.insert(MESSAGE_READS, {'message_id': message_id, 'reader_id': reader_id, 'read_at': utc_now()})
    except UniqueViolationError:
        return False
    return True


async def sender_names(gateway: DataStoreGateway, rows: list[dict[str, Any]]) -> dict[str, str]:
    student_ids = sorted({row['sender_student_id'] for row in rows if row.get('sender_student_id')})
    user_ids = sorted({row['sender_user_id'] for row in rows if row.get('sender_user_id')})
    names: dict[str, str] = {}
    if student_ids:
        for student in await gateway.select(Student.__tablename__, columns=['id', 'full_name'], filters=[in_('id', student_ids)]):
            names[student['id']] = student['full_name']
    if user_ids:
        for profile in await gateway.select(Profile.__tablename__, columns=['user_id', 'full_name'], filters=[in_('user_id', user_ids)]):
            names[profile['user_id']] = profile['full_name']
    return names


def message_view(
    row: dict[str, Any],
    *,
    viewer: Party | None = None,
    receipts: dict[str, datetime] | None = None,
    names: dict[str, str] | None = None,
) -> DirectedMessageView:
    sender_id = row.get('sender_student_id') or row.get('sender_user_id')
    recipient_id = row.get('recipient_student_id') or row.get('recipient_user_id')
    is_read = bool(row.get('is_read'))
    read_at = row.get('read_at')
    if viewer is not None and viewer.kind == PartyKind.ADMIN and is_broadcast_row(row):
        read_at = (receipts or {}).get(row['id'])
        is_read = read_at is not None
    return DirectedMessageView(
        id=row['id'],
        sender_type=row['sender_type'],
        sender_id=sender_id,
        sender_name=(names or {}).get(sender_id or ''),
        recipient_type=row['recipient_type'],
        recipient_id=recipient_id,
        subject=row.get('subject'),
        content=row['content'],
        is_read=is_read,
        read_at=read_at,
        created_at=row['created_at'],
        can_reply=reply_target(row) is not None,
    )


async def _insert_message(
    gateway: DataStoreGateway,
    *,
    sender: Party,
    recipient: Party,
    content: str,
    subject: str | None,
) -> dict[str, Any]:
    row = {
        **sender.sender_columns(),
        **recipient.recipient_columns(),
        'subject': subject,
        'content': content,
        'is_read': False,
        'read_at': None,
    }
    created = await gateway.insert(MESSAGES, row)
    if sender.is_student:
        await record_activity(
            gateway,
            user_type=PartyKind.STUDENT.value,
            student_id=sender.id,
            action='send_message',
            entity_type='message',
            entity_id=created['id'],
        )
    logger.info(
        'directed_message_sent id=%s sender_type=%s recipient_type=%s broadcast=%s',
        created['id'],
        created['sender_type'],
        created['recipient_type'],
        recipient.is_broadcast,
    )
    return created


def check_parties(sender: Party, recipient: Party | None) -> Party:
    if recipient is None:
        raise ValidationError('A recipient is required')
    if sender.is_broadcast:
        raise ValidationError('A broadcast party cannot send messages')
    if sender.is_student and recipient.is_student:
        raise ValidationError('Students can only message admins or teachers')
    return recipient


@timed_service('send_directed_message')
@guarded('send_directed_message')
async def send_directed_message(
    gateway: DataStoreGateway,
    *,
    sender: Party,
    recipient: Party | None,
    content: str,
    subject: str | None = None,
) -> DirectedMessageView:
    recipient = check_parties(sender, recipient)
    text = clean_content(content)
    cleaned_subject = clean_subject(subject)
    created = await _insert_message(gateway, sender=sender, recipient=recipient, content=text, subject=cleaned_subject)
    return message_view(created)


@timed_service('reply_to_message')
@guarded('reply_to_message')
async def reply_to_message(
    gateway: DataStoreGateway,
    *,
    message_id: str,
    replier: Party,
    content: str,
) -> DirectedMessageView:
    text = clean_content(content)
    # Only a message in the replier's own inbox can be answered.
    rows = await gateway.select(MESSAGES, filters=[eq('id', message_id), *inbox_filters(replier)], limit=1)
    if not rows:
        raise NotFoundError('Message not found')
    original = rows[0]
    target = reply_target(original)
    if target is None:
        raise ReplyNotAllowedError('This message has no student sender to reply to')
    check_parties(replier, target)
    created = await _insert_message(
        gateway,
        sender=replier,
        recipient=target,
        content=text,
        subject=reply_subject(original.get('subject')),
    )
    return message_view(created)


@timed_service('list_inbox')
@guarded('list_inbox')
async def list_inbox(gateway: DataStoreGateway, viewer: Party, *, limit: int | None = None) -> list[DirectedMessageView]:
    rows = await gateway.select(
        MESSAGES,
        filters=inbox_filters(viewer),
        order=[desc('created_at')],
        limit=limit or settings.inbox_limit,
    )
    receipts: dict[str, datetime] = {}
    if viewer.kind == PartyKind.ADMIN:
        receipts = await read_receipts(gateway, viewer.id, [row['id'] for row in rows if is_broadcast_row(row)])
    names = await sender_names(gateway, rows)
    return [message_view(row, viewer=viewer, receipts=receipts, names=names) for row in rows]


@guarded('list_sent_messages')
async def list_sent_messages(gateway: DataStoreGateway, sender: Party, *, limit: int | None = None) -> list[DirectedMessageView]:
    columns = sender.sender_columns()
    id_column = 'sender_student_id' if sender.is_student else 'sender_user_id'
    rows = await gateway.select(
        MESSAGES,
        filters=[eq('sender_type', columns['sender_type']), eq(id_column, sender.id)],
        order=[desc('created_at')],
        limit=limit or settings.inbox_limit,
    )
    return [message_view(row) for row in rows]


@guarded('mark_message_read')
async def mark_message_read(gateway: DataStoreGateway, message_id: str, viewer: Party) -> bool:
    rows = await gateway.select(MESSAGES, filters=[eq('id', message_id), *inbox_filters(viewer)], limit=1)
    if not rows:
        raise NotFoundError('Message not found')
    row = rows[0]
    if viewer.kind == PartyKind.ADMIN and is_broadcast_row(row):
        return await insert_receipt(gateway, message_id, viewer.id)
    # The is_read filter keeps read_at from being overwritten.
    updated = await gateway.update(
        MESSAGES,
        {'is_read': True, 'read_at': utc_now()},
        filters=[eq('id', message_id), eq('is_read', False)],
    )
    return bool(updated)
