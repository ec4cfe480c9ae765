from __future__ import annotations

import logging

from schoolcomms.config import settings
from schoolcomms.core.errors import NotFoundError, ValidationError
from schoolcomms.core.outcome import guarded
from schoolcomms.core.time_provider import utc_now
from schoolcomms.gateway import DataStoreGateway, desc, eq
from schoolcomms.models import NoticeType, StudentNotice
from schoolcomms.schemas import NoticeView
from schoolcomms.services.validation import clean_content, require_text


logger = logging.getLogger(__name__)

NOTICES = StudentNotice.__tablename__


def _notice_type(value: str | None) -> str:
    try:
        return NoticeType((value or NoticeType.INFO.value).strip().lower()).value
    except ValueError as exc:
        raise ValidationError(f'Unknown notice type: {value!r}') from exc


@guarded('post_notice')
async def post_notice(
    gateway: DataStoreGateway,
    *,
    student_id: str,
    posted_by: str,
    title: str,
    content: str,
    notice_type: str = NoticeType.INFO.value,
) -> NoticeView:
    row = {
        'student_id': require_text(student_id, 'Student'),
        'posted_by': require_text(posted_by, 'Poster'),
        'notice_type': _notice_type(notice_type),
        'title': require_text(title, 'Title'),
        'content': clean_content(content),
        'is_read': False,
        'read_at': None,
    }
    created = await gateway.insert(NOTICES, row)
    logger.info('notice_posted id=%s student_id=%s type=%s', created['id'], created['student_id'], created['notice_type'])
    return NoticeView.model_validate(created)


@guarded('list_notices')
async def list_notices(gateway: DataStoreGateway, student_id: str, *, limit: int | None = None) -> list[NoticeView]:
    rows = await gateway.select(
        NOTICES,
        filters=[eq('student_id', student_id)],
        order=[desc('created_at')],
        limit=limit or settings.notice_feed_limit,
    )
    return [NoticeView.model_validate(row) for row in rows]


@guarded('mark_notice_read')
async def mark_notice_read(gateway: DataStoreGateway, notice_id: str, student_id: str) -> bool:
    rows = await gateway.select(NOTICES, columns=['id'], filters=[eq('id', notice_id), eq('student_id', student_id)], limit=1)
    if not rows:
        raise NotFoundError('Notice not found')
    updated = await gateway.update(
        NOTICES,
        {'is_read': True, 'read_at': utc_now()},
        filters=[eq('id', notice_id), eq('is_read', False)],
    )
    return bool(updated)
