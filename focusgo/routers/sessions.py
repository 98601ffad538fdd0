from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from focusgo.config import settings
from focusgo.database import get_db
from focusgo.dependencies import get_current_user
from focusgo.models.user import User
from focusgo.schemas.session import AnalyticsSummary, SessionRecord, SessionResponse
from focusgo.services import session_service
from focusgo.services.session_recorder import build_analytics_summary

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    since: datetime | None = Query(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await session_service.get_sessions(
        db, user.id, since=since, limit=limit, offset=offset
    )


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    data: SessionRecord,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Store a session recorded by a client-side timer."""
    return await session_service.save_session(db, user.id, data)


@router.get("/summary", response_model=AnalyticsSummary)
async def get_summary(
    days: int = Query(default=settings.ANALYTICS_WINDOW_DAYS, ge=1, le=365),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sessions = await session_service.load_sessions(db, user.id)
    return build_analytics_summary(sessions, window_days=days)
