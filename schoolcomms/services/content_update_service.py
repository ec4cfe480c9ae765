from __future__ import annotations

import logging

from schoolcomms.config import settings
from schoolcomms.core.errors import NotFoundError, ValidationError
from schoolcomms.core.outcome import guarded
from schoolcomms.gateway import DataStoreGateway, desc, eq
from schoolcomms.models import ContentUpdate, UpdateType
from schoolcomms.schemas import ContentUpdateView
from schoolcomms.services.validation import require_text


logger = logging.getLogger(__name__)

CONTENT_UPDATES = ContentUpdate.__tablename__


@guarded('publish_content_update')
async def publish_content_update(
    gateway: DataStoreGateway,
    *,
    student_id: str,
    update_type: str,
    title: str,
    reference_id: str | None = None,
) -> ContentUpdateView:
    try:
        kind = UpdateType((update_type or '').strip().lower()).value
    except ValueError as exc:
        raise ValidationError(f'Unknown update type: {update_type!r}') from exc
    created = await gateway.insert(
        CONTENT_UPDATES,
        {
            'student_id': require_text(student_id, 'Student'),
            'update_type': kind,
            'title': require_text(title, 'Title'),
            'reference_id': reference_id,
            'is_read': False,
        },
    )
    logger.info('content_update_published id=%s student_id=%s type=%s', created['id'], created['student_id'], kind)
    return ContentUpdateView.model_validate(created)


@guarded('list_content_updates')
async def list_content_updates(gateway: DataStoreGateway, student_id: str, *, limit: int | None = None) -> list[ContentUpdateView]:
    rows = await gateway.select(
        CONTENT_UPDATES,
        filters=[eq('student_id', student_id)],
        order=[desc('created_at')],
        limit=limit or settings.feed_limit,
    )
    return [ContentUpdateView.model_validate(row) for row in rows]


@guarded('mark_update_read')
async def mark_update_read(gateway: DataStoreGateway, update_id: str, student_id: str) -> bool:
    rows = await gateway.select(CONTENT_UPDATES, columns=['id'], filters=[eq('id', update_id), eq('student_id', student_id)], limit=1)
    if not rows:
        raise NotFoundError('Update not found')
    updated = await gateway.update(CONTENT_UPDATES, {'is_read': True}, filters=[eq('id', update_id), eq('is_read', False)])
    return bool(updated)
