"""
Chat persistence helpers.

Thin query functions over the chat store so route handlers do
not build SQLAlchemy queries inline.
"""

from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.models import Chat, ChatMessage, utcnow


def get_chat_by_id(db: Session, chat_id: str) -> Optional[Chat]:
    """Return the chat with *chat_id*, or None."""
    return db.query(Chat).filter(Chat.id == chat_id).first()


def save_chat(
    db: Session,
    chat_id: str,
    user_id: str,
    title: str,
) -> Chat:
    """Create a new chat owned by *user_id*."""
    chat = Chat(id=chat_id, user_id=user_id, title=title)
    db.add(chat)
    db.commit()
    db.refresh(chat)
    return chat


def save_messages(
    db: Session,
    chat_id: str,
    messages: List[Dict[str, str]],
) -> List[ChatMessage]:
    """
    Append *messages* to a chat.

    Each dict needs ``role`` and ``content`` and may carry an
    ``id``; a UUID is generated otherwise.
    """
    rows = []
    for msg in messages:
        row = ChatMessage(
            chat_id=chat_id,
            role=msg["role"],
            content=msg["content"],
            created_at=utcnow(),
        )
        if msg.get("id"):
            row.id = msg["id"]
        db.add(row)
        rows.append(row)
    db.commit()
    return rows


def get_messages_by_chat_id(
    db: Session,
    chat_id: str,
) -> List[ChatMessage]:
    """Return a chat's messages in arrival order."""
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == chat_id)
        .order_by(ChatMessage.created_at)
        .all()
    )


def delete_chat_by_id(db: Session, chat_id: str) -> None:
    """Delete a chat and, by cascade, its messages."""
    chat = get_chat_by_id(db, chat_id)
    if chat is not None:
        db.delete(chat)
        db.commit()
