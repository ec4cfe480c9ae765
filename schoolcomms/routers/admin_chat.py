from __future__ import annotations

from fastapi import APIRouter, Depends

from schoolcomms.core.identity import Party
from schoolcomms.gateway import DataStoreGateway
from schoolcomms.route_logging import EndpointNameRoute
from schoolcomms.routers.deps import get_gateway, require_admin, unwrap
from schoolcomms.schemas import ConversationRecord, ConversationSummary, MessageView, SendMessageRequest, StartConversationRequest
from schoolcomms.services import admin_message_service, conversation_service


router = APIRouter(prefix='/api/admin-chat', tags=['Admin Chat'], route_class=EndpointNameRoute)


@router.post('/conversations', response_model=ConversationRecord)
async def start_conversation(
    payload: StartConversationRequest,
    viewer: Party = Depends(require_admin),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await conversation_service.resolve_conversation(gateway, viewer.id, payload.other_user_id))


@router.get('/conversations', response_model=list[ConversationSummary])
async def list_conversations(
    viewer: Party = Depends(require_admin),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await conversation_service.list_conversations(gateway, viewer.id))


@router.get('/conversations/{conversation_id}/messages', response_model=list[MessageView])
async def conversation_messages(
    conversation_id: str,
    viewer: Party = Depends(require_admin),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    unwrap(await admin_message_service.get_conversation(gateway, conversation_id, viewer.id))
    messages = unwrap(await admin_message_service.list_conversation_messages(gateway, conversation_id))
    # Opening a thread reads it.
    unwrap(await admin_message_service.mark_conversation_read(gateway, conversation_id, viewer.id))
    return messages


@router.post('/conversations/{conversation_id}/messages', response_model=MessageView)
async def send_conversation_message(
    conversation_id: str,
    payload: SendMessageRequest,
    viewer: Party = Depends(require_admin),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await admin_message_service.send_message(gateway, conversation_id, viewer.id, payload.content))


@router.post('/conversations/{conversation_id}/read')
async def mark_conversation_read(
    conversation_id: str,
    viewer: Party = Depends(require_admin),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    unwrap(await admin_message_service.get_conversation(gateway, conversation_id, viewer.id))
    marked = unwrap(await admin_message_service.mark_conversation_read(gateway, conversation_id, viewer.id))
    return {'marked': marked}
