"""Chat routes: transcript, send, retry, clear and live updates."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, BackgroundTasks, Request, Response
from fastapi.responses import StreamingResponse
from loguru import logger

from gemini_chat.application.conversation import ConversationController
from gemini_chat.presentation.schemas import (
    ChatStateResponse,
    MessageResponse,
    SendMessageRequest,
    render_request_state,
)

router = APIRouter(tags=["chat"])


def _conversation(raw_request: Request) -> ConversationController:
    return raw_request.app.state.conversation


def _snapshot(conversation: ConversationController) -> ChatStateResponse:
    return ChatStateResponse(
        chat_id=conversation.chat_id,
        messages=[MessageResponse.from_message(m) for m in conversation.messages.value],
        request=render_request_state(conversation.ui_state.value),
        is_loading=conversation.is_loading.value,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health")
async def health():
    """Simple liveness / readiness check."""
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


@router.get("/chat", response_model=ChatStateResponse)
async def get_chat(raw_request: Request):
    """Transcript, request state and busy flag."""
    return _snapshot(_conversation(raw_request))


@router.post("/chat/messages", response_model=ChatStateResponse, status_code=202)
async def send_message(
    request: SendMessageRequest, raw_request: Request, background: BackgroundTasks
):
    conversation = _conversation(raw_request)
    logger.info("POST /chat/messages | msg={}", request.text[:60])
    background.add_task(conversation.send_message, request.text)
    return _snapshot(conversation)


@router.post("/chat/retry", response_model=ChatStateResponse, status_code=202)
async def retry(raw_request: Request, background: BackgroundTasks):
    conversation = _conversation(raw_request)
    background.add_task(conversation.retry_last_user_message)
    return _snapshot(conversation)


@router.delete("/chat/messages", status_code=204)
async def clear_chat(raw_request: Request):
    await _conversation(raw_request).clear_chat()
    return Response(status_code=204)


@router.get("/chat/events")
async def chat_events(raw_request: Request):
    """Server-sent events: a full chat snapshot whenever any chat state changes."""
    conversation = _conversation(raw_request)

    async def event_generator():
        changed = asyncio.Event()
        subscriptions = [
            observable.subscribe(lambda _value: changed.set())
            for observable in (
                conversation.messages,
                conversation.ui_state,
                conversation.is_loading,
            )
        ]
        try:
            while True:
                changed.clear()
                yield f"data: {_snapshot(conversation).model_dump_json()}\n\n"
                await changed.wait()
        finally:
            for subscription in subscriptions:
                subscription.cancel()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
