"""
API routes for chat turns and chat management.

``POST /api/chat`` runs the search-augmented answer pipeline
and streams the answer back as Server-Sent Events.
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.config import settings, AVAILABLE_MODELS
from app.database import get_db, SessionLocal
from app.deps import get_current_user
from app.exceptions import AuthorizationError
from app.models import Chat, User
from app.schemas import (
    ChatMessageIn,
    ChatMessageResponse,
    ChatRequest,
    ModelOption,
)
from app.services import chat_store
from app.services.answer import (
    compose_answer_prompt,
    gather_enrichment,
    stream_answer,
)
from app.services.llm import get_model
from app.services.titles import generate_title_from_user_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])
models_router = APIRouter(prefix="/api/models", tags=["models"])


def ensure_owner(chat: Chat, user: User) -> None:
    """Raise AuthorizationError unless *user* owns *chat*."""
    if chat.user_id != user.id:
        raise AuthorizationError("Unauthorized")


def get_most_recent_user_message(
    messages: List[ChatMessageIn],
) -> Optional[ChatMessageIn]:
    """Return the last message sent by the user, if any."""
    for message in reversed(messages):
        if message.role == "user" and message.content.strip():
            return message
    return None


@models_router.get(
    "",
    response_model=List[ModelOption],
    summary="List selectable chat models",
)
def list_models():
    """Models a client may pass as ``modelId``."""
    return AVAILABLE_MODELS


@router.post(
    "",
    summary="Send a chat message (SSE stream)",
)
async def send_chat_message(
    data: ChatRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Start or continue a chat turn.

    Creates the chat on first use, stores the user message,
    enriches the answer with search and database results and
    streams it as ``content`` events.  When the answer is
    complete it is stored and its id announced in an
    ``annotation`` event before the closing ``finish`` event.
    """
    model = get_model(data.model_id)
    if model is None:
        raise HTTPException(status_code=404, detail="Model not found")

    user_message = get_most_recent_user_message(data.messages)
    if user_message is None:
        raise HTTPException(
            status_code=400, detail="No user message found",
        )

    chat = await asyncio.to_thread(chat_store.get_chat_by_id, db, data.id)
    if chat is None:
        title = await generate_title_from_user_message(
            user_message.content,
        )
        await asyncio.to_thread(
            chat_store.save_chat, db, data.id, user.id, title,
        )
    else:
        ensure_owner(chat, user)

    await asyncio.to_thread(
        chat_store.save_messages,
        db, data.id,
        [{"role": "user", "content": user_message.content}],
    )

    enrichment = await gather_enrichment(user_message.content)
    system_prompt = compose_answer_prompt(
        user_message.content, enrichment,
    )

    history = [
        {"role": m.role, "content": m.content}
        for m in data.messages
        if m.role != "system"
    ][-settings.max_history_messages:]
    chat_id = data.id

    def store_assistant_message(message_id: str, content: str) -> None:
        # The request session is closed once streaming starts.
        stream_db = SessionLocal()
        try:
            chat_store.save_messages(stream_db, chat_id, [{
                "id": message_id,
                "role": "assistant",
                "content": content,
            }])
        finally:
            stream_db.close()

    async def save_message(message_id: str, content: str) -> None:
        """Store the finished assistant message off the event loop."""
        await asyncio.to_thread(
            store_assistant_message, message_id, content,
        )

    async def event_stream():
        """Yield SSE events from the answer stream."""
        async for event in stream_answer(
            history,
            system_prompt,
            model["api_identifier"],
            save_message,
        ):
            yield event.to_sse()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.delete(
    "",
    summary="Delete a chat",
)
def delete_chat(
    id: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Delete a chat owned by the caller, with all its messages.

    Returns 404 when the id is missing or unknown and 401 when
    the chat belongs to someone else.
    """
    if not id:
        raise HTTPException(status_code=404, detail="Not Found")

    try:
        chat = chat_store.get_chat_by_id(db, id)
        if chat is None:
            raise HTTPException(status_code=404, detail="Not Found")
        ensure_owner(chat, user)

        chat_store.delete_chat_by_id(db, id)
        return {"message": "Chat deleted"}
    except (HTTPException, AuthorizationError):
        raise
    except Exception as exc:
        logger.exception("Failed to delete chat %s: %s", id, exc)
        raise HTTPException(
            status_code=500,
            detail="An error occurred while processing your request",
        )


@router.get(
    "/{chat_id}/messages",
    response_model=List[ChatMessageResponse],
    summary="Get the messages of a chat",
)
def get_chat_messages(
    chat_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Retrieve a chat's messages in arrival order."""
    chat = chat_store.get_chat_by_id(db, chat_id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    ensure_owner(chat, user)
    return chat_store.get_messages_by_chat_id(db, chat_id)
