# Chat Router for Collab Marketplace
# Direct messages between users, with a WebSocket for live delivery

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Request, WebSocket, WebSocketDisconnect, status
from typing import List, Optional

from auth.dependencies import get_current_user, get_websocket_user
from database.models import UserProfile
from routers.deps import get_chat_service
from schemas.marketplace import (
    ChatMessageResponse,
    ChatSummary,
    ConnectionStatusResponse,
    MarkReadRequest,
    SendMessageRequest,
)
from services.chat_service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


# ============================================================================
# MESSAGE ENDPOINTS
# ============================================================================

@router.post("/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    body: SendMessageRequest,
    service: ChatService = Depends(get_chat_service),
    current_user: UserProfile = Depends(get_current_user),
):
    """
    Send a message. Returns 429 when the sender is over the rate limit and
    202 when the message was queued because of a delivery delay.
    """
    message = await service.send_message(
        current_user.user_id,
        body.receiver_id,
        body.content,
        message_type=body.message_type,
        correlation_id=body.correlation_id,
    )
    return ChatMessageResponse.from_message(message)


@router.get("/conversations/{other_user_id}", response_model=List[ChatMessageResponse])
async def get_conversation(
    other_user_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: ChatService = Depends(get_chat_service),
    current_user: UserProfile = Depends(get_current_user),
):
    messages = await service.get_conversation(current_user.user_id, other_user_id, limit=limit, offset=offset)
    return [ChatMessageResponse.from_message(m) for m in messages]


@router.get("/chats", response_model=List[ChatSummary])
async def list_chats(
    service: ChatService = Depends(get_chat_service),
    current_user: UserProfile = Depends(get_current_user),
):
    """
    Chat list: the latest message and unread count per counterparty.
    """
    rows = await service.list_chats(current_user.user_id)
    return [ChatSummary(**vars(row)) for row in rows]


@router.patch("/messages/read")
async def mark_messages_read(
    body: MarkReadRequest,
    service: ChatService = Depends(get_chat_service),
    current_user: UserProfile = Depends(get_current_user),
):
    updated = await service.mark_read(current_user.user_id, body.message_ids)
    return {"updated": updated}


@router.get("/unread-count")
async def get_unread_count(
    service: ChatService = Depends(get_chat_service),
    current_user: UserProfile = Depends(get_current_user),
):
    return {"unread_count": await service.unread_count(current_user.user_id)}


@router.get("/status", response_model=ConnectionStatusResponse)
async def get_connection_status(
    request: Request,
    current_user: UserProfile = Depends(get_current_user),
):
    """Connecting while the caller's queued messages are waiting for the store."""
    return request.app.state.delivery_queue.status_for(current_user.user_id)


# ============================================================================
# LIVE DELIVERY
# ============================================================================

@router.websocket("/ws")
async def chat_websocket(
    websocket: WebSocket,
    current_user: Optional[UserProfile] = Depends(get_websocket_user),
):
    """
    Pushes every message addressed to the caller as it is persisted, and a
    connection event whenever the caller's queued backlog starts or drains.
    Connect with ?token=<jwt>. Send "ping" to get "pong".
    """
    if current_user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    hub = websocket.app.state.hub
    queue = websocket.app.state.delivery_queue
    subscription = hub.subscribe(current_user.user_id)
    logger.info(f"WebSocket connected for {current_user.user_id} ({subscription.key})")

    async def forward():
        async for event in subscription:
            kind = "connection" if isinstance(event, ConnectionStatusResponse) else "message"
            await websocket.send_json({"type": kind, "data": event.model_dump(mode="json")})

    async def listen():
        while True:
            text = await websocket.receive_text()
            if text == "ping":
                await websocket.send_text("pong")

    status_now = queue.status_for(current_user.user_id)
    await websocket.send_json({"type": "connection", "data": status_now.model_dump(mode="json")})
    tasks = [asyncio.create_task(forward()), asyncio.create_task(listen())]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error(f"WebSocket for {current_user.user_id} failed: {exc}")
    finally:
        for task in tasks:
            task.cancel()
        hub.unsubscribe(subscription)
        logger.info(f"WebSocket disconnected for {current_user.user_id}")
