from __future__ import annotations

import logging

from schoolcomms.config import settings
from schoolcomms.core.errors import ValidationError
from schoolcomms.core.outcome import guarded
from schoolcomms.core.time_provider import utc_now
from schoolcomms.gateway import DataStoreGateway, UniqueViolationError, any_of, desc, eq, in_
from schoolcomms.metrics import timed_service
from schoolcomms.models import AdminConversation, AdminMessage, Profile
from schoolcomms.schemas import ConversationRecord, ConversationSummary
from schoolcomms.services.notification_service import count_conversation_unread


logger = logging.getLogger(__name__)

CONVERSATIONS = AdminConversation.__tablename__
ADMIN_MESSAGES = AdminMessage.__tablename__


def canonical_pair(first_id: str, second_id: str) -> tuple[str, str]:
    """Order two participant ids so that (A, B) and (B, A) store the same row."""
    return (first_id, second_id) if first_id < second_id else (second_id, first_id)


def _validate_pair(current_user_id: str | None, other_user_id: str | None) -> tuple[str, str]:
    current = (current_user_id or '').strip()
    other = (other_user_id or '').strip()
    if not current or not other:
        raise ValidationError('Both participants are required')
    if current == other:
        raise ValidationError('Cannot start a conversation with yourself')
    return canonical_pair(current, other)


async def _find_pair(gateway: DataStoreGateway, pair: tuple[str, str]) -> dict | None:
    rows = await gateway.select(
        CONVERSATIONS,
        filters=[eq('participant_a', pair[0]), eq('participant_b', pair[1])],
        limit=1,
    )
    return rows[0] if rows else None


@timed_service('resolve_conversation')
@guarded('resolve_conversation')
async def resolve_conversation(gateway: DataStoreGateway, current_user_id: str, other_user_id: str) -> ConversationRecord:
    pair = _validate_pair(current_user_id, other_user_id)
    existing = await _find_pair(gateway, pair)
    if existing is not None:
        return ConversationRecord.model_validate(existing)

    now = utc_now()
    try:
        created = await gateway.insert(
            CONVERSATIONS,
            {'participant_a': pair[0], 'participant_b': pair[1], 'created_at': now, 'updated_at': now},
        )
    except UniqueViolationError:
        # Both participants opened the chat at once; the other insert won.
        existing = await _find_pair(gateway, pair)
        if existing is None:
            raise
        logger.info('conversation_create_conflict participant_a=%s participant_b=%s', pair[0], pair[1])
        return ConversationRecord.model_validate(existing)
    logger.info('conversation_created id=%s participant_a=%s participant_b=%s', created['id'], pair[0], pair[1])
    return ConversationRecord.model_validate(created)


async def _profile_names(gateway: DataStoreGateway, user_ids: list[str]) -> dict[str, str]:
    if not user_ids:
        return {}
    rows = await gateway.select(Profile.__tablename__, columns=['user_id', 'full_name'], filters=[in_('user_id', user_ids)])
    return {row['user_id']: row['full_name'] for row in rows if row.get('full_name')}


@timed_service('list_conversations')
@guarded('list_conversations')
async def list_conversations(gateway: DataStoreGateway, viewer_id: str) -> list[ConversationSummary]:
    if not (viewer_id or '').strip():
        raise ValidationError('Viewer is required')
    rows = await gateway.select(
        CONVERSATIONS,
        filters=[any_of(eq('participant_a', viewer_id), eq('participant_b', viewer_id))],
        order=[desc('updated_at')],
        limit=settings.feed_limit,
    )
    records = [ConversationRecord.model_validate(row) for row in rows]
    names = await _profile_names(gateway, sorted({record.other_participant(viewer_id) for record in records}))

    summaries = []
    for record in records:
        other_id = record.other_participant(viewer_id)
        last = await gateway.select(
            ADMIN_MESSAGES,
            columns=['content', 'created_at'],
            filters=[eq('conversation_id', record.id)],
            order=[desc('created_at')],
            limit=1,
        )
        summaries.append(
            ConversationSummary(
                id=record.id,
                other_participant_id=other_id,
                other_participant_name=names.get(other_id, settings.unknown_admin_name),
                last_message=last[0]['content'] if last else None,
                last_message_at=last[0]['created_at'] if last else None,
                unread_count=await count_conversation_unread(gateway, record.id, viewer_id),
                updated_at=record.updated_at,
            )
        )
    return summaries


async def touch_conversation(gateway: DataStoreGateway, conversation_id: str) -> None:
    await gateway.update(CONVERSATIONS, {'updated_at': utc_now()}, filters=[eq('id', conversation_id)])
