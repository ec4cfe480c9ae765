from __future__ import annotations

from fastapi import APIRouter, Depends

from schoolcomms.core.identity import Party
from schoolcomms.gateway import DataStoreGateway
from schoolcomms.route_logging import EndpointNameRoute
from schoolcomms.routers.deps import get_gateway, require_staff, unwrap
from schoolcomms.schemas import DirectedMessageView, StaffContact, StaffMessageRequest, StaffThreadPreview
from schoolcomms.services import staff_chat_service


router = APIRouter(prefix='/api/staff-chat', tags=['Staff Chat'], route_class=EndpointNameRoute)


@router.get('/contacts', response_model=list[StaffContact])
async def contacts(
    viewer: Party = Depends(require_staff),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await staff_chat_service.list_staff_contacts(gateway, viewer))


@router.get('/threads', response_model=list[StaffThreadPreview])
async def threads(
    viewer: Party = Depends(require_staff),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await staff_chat_service.list_staff_threads(gateway, viewer))


@router.get('/threads/{contact_id}', response_model=list[DirectedMessageView])
async def thread(
    contact_id: str,
    viewer: Party = Depends(require_staff),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    messages = unwrap(await staff_chat_service.list_staff_thread(gateway, viewer, contact_id))
    # Opening a thread reads it.
    unwrap(await staff_chat_service.mark_staff_thread_read(gateway, viewer, contact_id))
    return messages


@router.post('/threads/{contact_id}', response_model=DirectedMessageView)
async def send(
    contact_id: str,
    payload: StaffMessageRequest,
    viewer: Party = Depends(require_staff),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await staff_chat_service.send_staff_message(gateway, viewer, contact_id, payload.content))
