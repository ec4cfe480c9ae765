from __future__ import annotations

import logging
from typing import Any

from schoolcomms.config import settings
from schoolcomms.core.errors import NotFoundError, ValidationError
from schoolcomms.core.identity import Party, PartyKind
from schoolcomms.core.outcome import guarded
from schoolcomms.core.time_provider import utc_now
from schoolcomms.gateway import DataStoreGateway, all_of, any_of, asc, desc, eq, in_, neq
from schoolcomms.metrics import timed_service
from schoolcomms.models import DirectedMessage, Profile
from schoolcomms.schemas import DirectedMessageView, StaffContact, StaffThreadPreview
from schoolcomms.services import directed_message_service


logger = logging.getLogger(__name__)

MESSAGES = DirectedMessage.__tablename__
PROFILES = Profile.__tablename__

STAFF_TYPES = (PartyKind.ADMIN.value, PartyKind.TEACHER.value)


def staff_filters() -> list:
    """Direct messages between two staff members.

    Broadcasts to every admin carry no recipient user and never belong to a
    staff thread; they are dropped where the contact is resolved.
    """
    return [in_('sender_type', STAFF_TYPES), in_('recipient_type', STAFF_TYPES)]


def thread_filters(viewer_id: str, contact_id: str) -> list:
    return [
        *staff_filters(),
        any_of(
            all_of(eq('sender_user_id', viewer_id), eq('recipient_user_id', contact_id)),
            all_of(eq('sender_user_id', contact_id), eq('recipient_user_id', viewer_id)),
        ),
    ]


def _require_staff(viewer: Party) -> str:
    if viewer.kind not in (PartyKind.ADMIN, PartyKind.TEACHER):
        raise ValidationError('Staff chat is only available to admins and teachers')
    return viewer.id


def _contact_of(row: dict[str, Any], viewer_id: str) -> tuple[str | None, str]:
    if row.get('sender_user_id') == viewer_id:
        return row.get('recipient_user_id'), row['recipient_type']
    return row.get('sender_user_id'), row['sender_type']


async def _staff_profiles(gateway: DataStoreGateway, user_ids: list[str] | None = None) -> dict[str, dict[str, Any]]:
    filters = [in_('role', STAFF_TYPES)]
    if user_ids is not None:
        if not user_ids:
            return {}
        filters.append(in_('user_id', user_ids))
    rows = await gateway.select(PROFILES, columns=['user_id', 'full_name', 'role'], filters=filters)
    return {row['user_id']: row for row in rows}


@guarded('list_staff_contacts')
async def list_staff_contacts(gateway: DataStoreGateway, viewer: Party) -> list[StaffContact]:
    viewer_id = _require_staff(viewer)
    rows = await gateway.select(
        PROFILES,
        columns=['user_id', 'full_name', 'role'],
        filters=[in_('role', STAFF_TYPES), neq('user_id', viewer_id)],
        order=[asc('full_name')],
    )
    return [
        StaffContact(user_id=row['user_id'], full_name=row['full_name'] or settings.unknown_staff_name, role=row['role'])
        for row in rows
    ]


@timed_service('list_staff_threads')
@guarded('list_staff_threads')
async def list_staff_threads(gateway: DataStoreGateway, viewer: Party) -> list[StaffThreadPreview]:
    """One preview per contact, most recent thread first."""
    viewer_id = _require_staff(viewer)
    rows = await gateway.select(
        MESSAGES,
        filters=[*staff_filters(), any_of(eq('sender_user_id', viewer_id), eq('recipient_user_id', viewer_id))],
        order=[desc('created_at')],
    )

    latest: dict[str, dict[str, Any]] = {}
    roles: dict[str, str] = {}
    unread: dict[str, int] = {}
    for row in rows:
        contact_id, contact_role = _contact_of(row, viewer_id)
        if not contact_id or contact_id == viewer_id:
            continue
        if contact_id not in latest:
            latest[contact_id] = row
            roles[contact_id] = contact_role
            unread[contact_id] = 0
        if row.get('recipient_user_id') == viewer_id and not row.get('is_read'):
            unread[contact_id] += 1

    profiles = await _staff_profiles(gateway, sorted(latest))
    previews = []
    for contact_id, row in latest.items():
        profile = profiles.get(contact_id) or {}
        previews.append(
            StaffThreadPreview(
                contact_id=contact_id,
                contact_name=profile.get('full_name') or settings.unknown_staff_name,
                contact_role=profile.get('role') or roles[contact_id],
                last_message=row['content'],
                last_message_at=row['created_at'],
                unread_count=unread[contact_id],
            )
        )
    return previews


@timed_service('list_staff_thread')
@guarded('list_staff_thread')
async def list_staff_thread(gateway: DataStoreGateway, viewer: Party, contact_id: str) -> list[DirectedMessageView]:
    viewer_id = _require_staff(viewer)
    rows = await gateway.select(MESSAGES, filters=thread_filters(viewer_id, contact_id), order=[asc('created_at')])
    names = await directed_message_service.sender_names(gateway, rows)
    return [directed_message_service.message_view(row, names=names) for row in rows]


@guarded('mark_staff_thread_read')
async def mark_staff_thread_read(gateway: DataStoreGateway, viewer: Party, contact_id: str) -> int:
    viewer_id = _require_staff(viewer)
    updated = await gateway.update(
        MESSAGES,
        {'is_read': True, 'read_at': utc_now()},
        filters=[
            *staff_filters(),
            eq('sender_user_id', contact_id),
            eq('recipient_user_id', viewer_id),
            eq('is_read', False),
        ],
    )
    if updated:
        logger.info('staff_thread_read viewer_id=%s contact_id=%s count=%s', viewer_id, contact_id, len(updated))
    return len(updated)


@guarded('send_staff_message')
async def send_staff_message(gateway: DataStoreGateway, sender: Party, contact_id: str, content: str) -> DirectedMessageView:
    sender_id = _require_staff(sender)
    contact_id = (contact_id or '').strip()
    if not contact_id:
        raise ValidationError('A contact is required')
    if contact_id == sender_id:
        raise ValidationError('Cannot message yourself')
    profile = (await _staff_profiles(gateway, [contact_id])).get(contact_id)
    if profile is None:
        raise NotFoundError('Staff member not found')
    outcome = await directed_message_service.send_directed_message(
        gateway,
        sender=sender,
        recipient=Party.from_role(profile['role'], contact_id),
        content=content,
    )
    return outcome.unwrap()
