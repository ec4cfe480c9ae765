from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from schoolcomms.app_state import get_context
from schoolcomms.core.identity import PartyKind
from schoolcomms.realtime.presence_tracker import PresenceIdentity, PresenceTracker
from schoolcomms.realtime.typing import TypingIndicator, typing_label
from schoolcomms.schemas import PresenceEntry, TypingEntry


router = APIRouter()
logger = logging.getLogger(__name__)

_TRACKABLE = {PartyKind.ADMIN.value, PartyKind.TEACHER.value, PartyKind.STUDENT.value}


@router.websocket('/ws/presence')
async def presence_ws(
    websocket: WebSocket,
    user_id: str | None = Query(default=None),
    name: str | None = Query(default=None),
    role: str | None = Query(default=None),
):
    """Online-users feed.

    Connect with ``user_id``, ``name`` and ``role`` to be listed; connect
    without them to only watch. Each sync pushes the full list.
    """
    identity = None
    if user_id:
        if (role or '').lower() not in _TRACKABLE:
            await websocket.close(code=4001)
            return
        identity = PresenceIdentity(id=user_id, name=name or user_id, type=role.lower())

    await websocket.accept()

    async def push(entries: list[PresenceEntry]) -> None:
        await websocket.send_json(
            {'type': 'presence_sync', 'online': [entry.model_dump(mode='json') for entry in entries]}
        )

    tracker = PresenceTracker(get_context().gateway, identity, on_change=push)
    try:
        await tracker.start()
        while True:
            data = await websocket.receive_text()
            if data.strip().lower() == 'ping':
                await websocket.send_json({'type': 'pong'})
            else:
                await websocket.send_json({'type': 'error', 'detail': 'Unknown action'})
    except WebSocketDisconnect:
        logger.info('presence_ws_disconnected user_id=%s', user_id)
    finally:
        # The socket may already be gone; do not push our own withdrawal to it.
        await tracker.stop(notify=False)


@router.websocket('/ws/typing/{conversation_id}')
async def typing_ws(
    websocket: WebSocket,
    conversation_id: str,
    user_id: str | None = Query(default=None),
    name: str | None = Query(default=None),
):
    """Typing indicator for one conversation: send ``typing`` or ``idle``."""
    if not (user_id or '').strip():
        await websocket.close(code=4001)
        return

    await websocket.accept()

    async def push(entries: list[TypingEntry]) -> None:
        await websocket.send_json(
            {
                'type': 'typing_sync',
                'typing': [entry.model_dump(mode='json') for entry in entries],
                'label': typing_label(entries),
            }
        )

    indicator = TypingIndicator(get_context().gateway, conversation_id, user_id, name or '', on_change=push)
    try:
        await indicator.start()
        while True:
            action = (await websocket.receive_text()).strip().lower()
            if action == 'typing':
                await indicator.set_typing(True)
            elif action == 'idle':
                await indicator.set_typing(False)
            elif action == 'ping':
                await websocket.send_json({'type': 'pong'})
            else:
                await websocket.send_json({'type': 'error', 'detail': 'Unknown action'})
    except WebSocketDisconnect:
        logger.info('typing_ws_disconnected conversation_id=%s user_id=%s', conversation_id, user_id)
    finally:
        await indicator.stop()
