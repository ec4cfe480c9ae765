from __future__ import annotations

import logging

from schoolcomms.gateway import DataStoreGateway, StoreError
from schoolcomms.models import ActivityLog


logger = logging.getLogger(__name__)

ACTIVITY_LOGS = ActivityLog.__tablename__


async def record_activity(
    gateway: DataStoreGateway,
    *,
    user_type: str,
    action: str,
    user_id: str | None = None,
    student_id: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
) -> bool:
    # Audit trail only; a failed write never fails the action being logged.
    try:
        await gateway.insert(
            ACTIVITY_LOGS,
            {
                'user_type': user_type,
                'user_id': user_id,
                'student_id': student_id,
                'action': action,
                'entity_type': entity_type,
                'entity_id': entity_id,
            },
        )
    except StoreError as exc:
        logger.warning('activity_log_failed action=%s user_type=%s error=%s', action, user_type, exc)
        return False
    return True
