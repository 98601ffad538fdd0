import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from focusgo.database import is_permission_denied
from focusgo.models.session import Session
from focusgo.schemas.session import SessionRecord

logger = logging.getLogger(__name__)


async def get_sessions(
    db: AsyncSession,
    user_id: uuid.UUID,
    since: datetime | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[Session]:
    """Sessions for a user, oldest first."""
    query = select(Session).where(Session.user_id == user_id)
    if since:
        query = query.where(Session.start_time >= since)
    query = query.order_by(Session.start_time.asc()).offset(offset)
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def load_sessions(db: AsyncSession, user_id: uuid.UUID | None) -> list[Session]:
    """Like ``get_sessions`` but never raises; a failed read yields no history."""
    if user_id is None:
        return []
    try:
        return await get_sessions(db, user_id)
    except (SQLAlchemyError, PermissionError) as exc:
        await db.rollback()
        if is_permission_denied(exc):
            logger.warning("Sessions not loaded: storage permissions not configured")
        else:
            logger.error("Failed to load sessions: %s", exc)
        return []


async def save_session(db: AsyncSession, user_id: uuid.UUID, record: SessionRecord) -> Session:
    data = record.model_dump()
    session = Session(user_id=user_id, session_key=data.pop("id"), **data)
    db.add(session)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ValueError(f"Session {record.id} has already been recorded")
    await db.refresh(session)
    return session


class DatabaseSessionStore:
    """Session storage bound to one user, opening its own DB sessions.

    Used from the timer's background handoff, which runs outside any request.
    """

    def __init__(self, session_factory: async_sessionmaker, user_id: uuid.UUID | None):
        self._session_factory = session_factory
        self.user_id = user_id

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    async def save_session(self, record: SessionRecord) -> None:
        if self.user_id is None:
            raise PermissionError("User must be authenticated to save sessions")
        async with self._session_factory() as db:
            await save_session(db, self.user_id, record)
            await db.commit()

    async def get_sessions(self) -> list[Session]:
        if self.user_id is None:
            return []
        async with self._session_factory() as db:
            return await load_sessions(db, self.user_id)
