import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from focusgo.database import is_permission_denied
from focusgo.models.timer_snapshot import TimerSnapshot

logger = logging.getLogger(__name__)

_FIELDS = (
    "current_time",
    "is_focus_time",
    "selected_category_id",
    "session_start_time",
    "session_followed_break",
    "consecutive_session_count",
    "last_session_was_break",
)


_PAST = {"save": "saved", "load": "loaded", "clear": "cleared"}


def _log_failure(action: str, exc: Exception) -> None:
    if is_permission_denied(exc):
        logger.warning("Timer state not %s: storage permissions not configured", _PAST[action])
    else:
        logger.error("Failed to %s timer state: %s", action, exc)


async def save_state(db: AsyncSession, user_id: uuid.UUID, state: dict) -> None:
    try:
        result = await db.execute(select(TimerSnapshot).where(TimerSnapshot.user_id == user_id))
        snapshot = result.scalar_one_or_none()
        if snapshot is None:
            snapshot = TimerSnapshot(user_id=user_id)
            db.add(snapshot)
        for field in _FIELDS:
            setattr(snapshot, field, state[field])
        await db.flush()
        logger.info("Timer state saved for %s", user_id)
    except (SQLAlchemyError, PermissionError) as exc:
        await db.rollback()
        _log_failure("save", exc)


async def load_state(db: AsyncSession, user_id: uuid.UUID) -> dict | None:
    try:
        result = await db.execute(select(TimerSnapshot).where(TimerSnapshot.user_id == user_id))
        snapshot = result.scalar_one_or_none()
    except (SQLAlchemyError, PermissionError) as exc:
        _log_failure("load", exc)
        return None

    if snapshot is None:
        return None
    logger.info("Timer state loaded for %s", user_id)
    return {field: getattr(snapshot, field) for field in _FIELDS}


async def clear_state(db: AsyncSession, user_id: uuid.UUID) -> None:
    try:
        await db.execute(delete(TimerSnapshot).where(TimerSnapshot.user_id == user_id))
        await db.flush()
    except (SQLAlchemyError, PermissionError) as exc:
        await db.rollback()
        _log_failure("clear", exc)
