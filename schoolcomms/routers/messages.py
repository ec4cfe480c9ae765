from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from schoolcomms.core.errors import ValidationError
from schoolcomms.core.identity import Party, PartyKind
from schoolcomms.gateway import DataStoreGateway
from schoolcomms.route_logging import EndpointNameRoute
from schoolcomms.routers.deps import current_viewer, get_gateway, require_staff, unwrap
from schoolcomms.schemas import BadgeOut, DirectedMessageRequest, DirectedMessageView, ReplyRequest
from schoolcomms.services import directed_message_service, notification_service


router = APIRouter(prefix='/api/messages', tags=['Messages'], route_class=EndpointNameRoute)


def _recipient(payload: DirectedMessageRequest) -> Party:
    recipient_id = (payload.recipient_id or '').strip() or None
    if payload.recipient_type == PartyKind.ADMIN.value and recipient_id is None:
        return Party.any_admin()
    try:
        return Party.from_role(payload.recipient_type, recipient_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc


@router.get('/inbox', response_model=list[DirectedMessageView])
async def inbox(
    limit: int | None = Query(default=None, ge=1, le=200),
    viewer: Party = Depends(current_viewer),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await directed_message_service.list_inbox(gateway, viewer, limit=limit))


@router.get('/sent', response_model=list[DirectedMessageView])
async def sent(
    limit: int | None = Query(default=None, ge=1, le=200),
    viewer: Party = Depends(current_viewer),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await directed_message_service.list_sent_messages(gateway, viewer, limit=limit))


@router.get('/unread-count', response_model=BadgeOut)
async def unread_count(
    viewer: Party = Depends(current_viewer),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    count = unwrap(await notification_service.inbox_unread_count(gateway, viewer))
    return notification_service.badge_for(count)


@router.post('', response_model=DirectedMessageView)
async def send(
    payload: DirectedMessageRequest,
    viewer: Party = Depends(current_viewer),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    outcome = await directed_message_service.send_directed_message(
        gateway,
        sender=viewer,
        recipient=_recipient(payload),
        content=payload.content,
        subject=payload.subject,
    )
    return unwrap(outcome)


@router.post('/read-all')
async def read_all(
    viewer: Party = Depends(current_viewer),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return {'marked': unwrap(await notification_service.mark_all_as_read(gateway, viewer))}


@router.post('/{message_id}/reply', response_model=DirectedMessageView)
async def reply(
    message_id: str,
    payload: ReplyRequest,
    viewer: Party = Depends(require_staff),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    outcome = await directed_message_service.reply_to_message(
        gateway,
        message_id=message_id,
        replier=viewer,
        content=payload.content,
    )
    return unwrap(outcome)


@router.post('/{message_id}/read')
async def mark_read(
    message_id: str,
    viewer: Party = Depends(current_viewer),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return {'changed': unwrap(await directed_message_service.mark_message_read(gateway, message_id, viewer))}
