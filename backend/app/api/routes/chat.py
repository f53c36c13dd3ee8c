import json
from contextlib import aclosing
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.dependencies import build_chat_service, get_db
from app.schemas.chat import AssistantDelta, AssistantDone, ChatError, ChatUserMessage
from app.services.chat.service import ChatService

router = APIRouter()
logger = get_logger(__name__)


def _frame(event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return {"event": event, "data": data}


def _done_payload(event: AssistantDone) -> Dict[str, Any]:
    return {
        "finalText": event.final_text,
        "extractedPreferencesJson": event.preferences.to_store(),
        "searchStatus": event.search_status.value,
        "searchResults": [item.model_dump(mode="json") for item in event.search_results],
        "rejected": event.rejected,
        "blocked": event.blocked,
    }


async def _send_error(websocket: WebSocket, code: str, message: str) -> None:
    await websocket.send_json(_frame("chat:error", {"code": code, "message": message}))


async def _stream_turn(websocket: WebSocket, service: ChatService, user_id: str, text: str) -> None:
    started = False
    async with aclosing(service.stream_turn(user_id, text)) as events:
        async for event in events:
            if isinstance(event, ChatError):
                await _send_error(websocket, event.code, event.message)
                continue
            if not started:
                await websocket.send_json(_frame("chat:assistant_start", {}))
                started = True
            if isinstance(event, AssistantDelta):
                await websocket.send_json(_frame("chat:assistant_delta", {"text": event.text}))
            elif isinstance(event, AssistantDone):
                await websocket.send_json(_frame("chat:assistant_done", _done_payload(event)))


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    user_id: str = Query(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db),
):
    """
    Chat WebSocket.

    Client frames: {"text": "..."}.
    Server frames: chat:assistant_start, chat:assistant_delta,
    chat:assistant_done, chat:error.
    """
    await websocket.accept()
    service = build_chat_service(
        db,
        websocket.app.state.llm_service,
        websocket.app.state.moderation_service,
    )
    logger.info(f"Chat socket connected for user {user_id}")
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = ChatUserMessage.model_validate(json.loads(raw))
            except (ValueError, ValidationError):
                await _send_error(websocket, "BAD_REQUEST", "Expected a JSON object with a 'text' field")
                continue
            await _stream_turn(websocket, service, user_id, message.text)
    except WebSocketDisconnect:
        logger.info(f"Chat socket disconnected for user {user_id}")
