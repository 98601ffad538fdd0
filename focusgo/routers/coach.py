from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from focusgo.config import settings
from focusgo.database import get_db
from focusgo.dependencies import get_current_user
from focusgo.models.user import User
from focusgo.schemas.coach import (
    ChatMessageResponse,
    ChatRequest,
    ChatTurn,
    CoachReply,
    CoachStatus,
)
from focusgo.services import chat_service, session_service
from focusgo.services.ai_chat_service import create_provider, send_message
from focusgo.services.session_recorder import build_analytics_summary, summary_to_context

router = APIRouter(prefix="/coach", tags=["coach"])


@router.get("/status", response_model=CoachStatus)
async def coach_status(user: User = Depends(get_current_user)):
    provider = create_provider(settings)
    return CoachStatus(available=provider is not None, provider=provider.name if provider else None)


@router.post("/chat", response_model=CoachReply)
async def chat(
    data: ChatRequest,
    req: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Ask the AI coach a question about the user's recent focus sessions."""
    provider = create_provider(settings)
    redis_client = getattr(req.app.state, "redis", None)
    chat_id = data.chat_id or chat_service.generate_chat_id()

    history = await chat_service.load_chat_history(db, user.id, chat_id)
    sessions = await session_service.load_sessions(db, user.id)
    summary = build_analytics_summary(sessions, window_days=settings.ANALYTICS_WINDOW_DAYS)
    context_json = summary_to_context(summary) if summary["total_sessions"] else None

    result = await send_message(
        data.message,
        [ChatTurn(role=m.role, content=m.content) for m in history],
        context_json=context_json,
        provider=provider,
        redis_client=redis_client,
        user_id=user.id,
        daily_limit=settings.AI_DAILY_LIMIT,
    )

    if result.error is None:
        now = datetime.now(timezone.utc)
        await chat_service.save_message(db, user.id, chat_id, "user", data.message, now)
        await chat_service.save_message(
            db, user.id, chat_id, "assistant", result.message, datetime.now(timezone.utc)
        )

    return CoachReply(
        chat_id=chat_id,
        message=result.message,
        error=result.error,
        used_session_data=context_json is not None,
    )


@router.get("/chats", response_model=list[str])
async def recent_chats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await chat_service.get_recent_chats(db, user.id)


@router.get("/chats/{chat_id}", response_model=list[ChatMessageResponse])
async def chat_history(
    chat_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await chat_service.load_chat_history(db, user.id, chat_id)
