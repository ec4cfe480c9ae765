from __future__ import annotations

import logging

from schoolcomms.core.errors import NotFoundError, ValidationError
from schoolcomms.core.outcome import guarded
from schoolcomms.core.time_provider import utc_now
from schoolcomms.gateway import DataStoreGateway, StoreError, asc, eq, neq
from schoolcomms.metrics import timed_service
from schoolcomms.models import AdminConversation, AdminMessage
from schoolcomms.schemas import ConversationRecord, MessageView
from schoolcomms.services.conversation_service import touch_conversation
from schoolcomms.services.validation import clean_content


logger = logging.getLogger(__name__)

CONVERSATIONS = AdminConversation.__tablename__
ADMIN_MESSAGES = AdminMessage.__tablename__


async def load_conversation(gateway: DataStoreGateway, conversation_id: str) -> ConversationRecord:
    rows = await gateway.select(CONVERSATIONS, filters=[eq('id', conversation_id)], limit=1)
    if not rows:
        raise NotFoundError('Conversation not found')
    return ConversationRecord.model_validate(rows[0])


@guarded('get_conversation')
async def get_conversation(gateway: DataStoreGateway, conversation_id: str, viewer_id: str) -> ConversationRecord:
    conversation = await load_conversation(gateway, conversation_id)
    if viewer_id not in (conversation.participant_a, conversation.participant_b):
        raise NotFoundError('Conversation not found')
    return conversation


@timed_service('list_conversation_messages')
@guarded('list_conversation_messages')
async def list_conversation_messages(
    gateway: DataStoreGateway,
    conversation_id: str,
    *,
    limit: int | None = None,
) -> list[MessageView]:
    rows = await gateway.select(
        ADMIN_MESSAGES,
        filters=[eq('conversation_id', conversation_id)],
        order=[asc('created_at')],
        limit=limit,
    )
    return [MessageView.model_validate(row) for row in rows]


@timed_service('send_message')
@guarded('send_message')
async def send_message(gateway: DataStoreGateway, conversation_id: str, sender_id: str, content: str) -> MessageView:
    """Append one message to a conversation.

    Content is validated before any store call. The returned Outcome is
    truthy on success; nothing is retried here.
    """
    text = clean_content(content)
    conversation = await load_conversation(gateway, conversation_id)
    if sender_id not in (conversation.participant_a, conversation.participant_b):
        raise ValidationError('Sender is not a participant of this conversation')

    created = await gateway.insert(
        ADMIN_MESSAGES,
        {'conversation_id': conversation_id, 'sender_id': sender_id, 'content': text, 'is_read': False, 'created_at': utc_now()},
    )
    try:
        await touch_conversation(gateway, conversation_id)
    except StoreError as exc:
        # The message is stored; only the list ordering is stale.
        logger.warning('conversation_touch_failed conversation_id=%s error=%s', conversation_id, exc)
    logger.info('admin_message_sent id=%s conversation_id=%s sender_id=%s', created['id'], conversation_id, sender_id)
    return MessageView.model_validate(created)


@guarded('mark_conversation_read')
async def mark_conversation_read(gateway: DataStoreGateway, conversation_id: str, reader_id: str) -> int:
    updated = await gateway.update(
        ADMIN_MESSAGES,
        {'is_read': True},
        filters=[eq('conversation_id', conversation_id), neq('sender_id', reader_id), eq('is_read', False)],
    )
    if updated:
        logger.info('conversation_marked_read conversation_id=%s reader_id=%s count=%s', conversation_id, reader_id, len(updated))
    return len(updated)
