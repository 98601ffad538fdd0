import logging
import time
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from focusgo.database import is_permission_denied
from focusgo.models.chat_message import ChatMessage

logger = logging.getLogger(__name__)


def _log_failure(what: str, exc: Exception) -> None:
    if is_permission_denied(exc):
        logger.warning("%s: storage permissions not configured", what)
    else:
        logger.error("%s: %s", what, exc)


def generate_chat_id() -> str:
    return f"chat_{int(time.time() * 1000)}"


async def save_message(
    db: AsyncSession,
    user_id: uuid.UUID,
    chat_id: str,
    role: str,
    content: str,
    timestamp: datetime,
) -> ChatMessage | None:
    message = ChatMessage(
        user_id=user_id, chat_id=chat_id, role=role, content=content, timestamp=timestamp
    )
    try:
        db.add(message)
        await db.flush()
    except SQLAlchemyError as exc:
        await db.rollback()
        _log_failure("Chat message not saved", exc)
        return None
    return message


async def load_chat_history(
    db: AsyncSession, user_id: uuid.UUID, chat_id: str
) -> list[ChatMessage]:
    try:
        result = await db.execute(
            select(ChatMessage)
            .where(ChatMessage.user_id == user_id, ChatMessage.chat_id == chat_id)
            .order_by(ChatMessage.timestamp.asc())
        )
    except SQLAlchemyError as exc:
        _log_failure("Chat history not loaded", exc)
        return []
    return list(result.scalars().all())


async def get_recent_chats(db: AsyncSession, user_id: uuid.UUID, limit: int = 5) -> list[str]:
    """Chat ids ordered by their latest message, newest first."""
    last_message = func.max(ChatMessage.timestamp)
    try:
        result = await db.execute(
            select(ChatMessage.chat_id)
            .where(ChatMessage.user_id == user_id)
            .group_by(ChatMessage.chat_id)
            .order_by(last_message.desc())
            .limit(limit)
        )
    except SQLAlchemyError as exc:
        _log_failure("Recent chats not loaded", exc)
        return []
    return [row.chat_id for row in result.all()]
