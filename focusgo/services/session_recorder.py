"""Turns finished focus phases into Session records and summarises history.

Records are built synchronously from the state captured when the phase
ended; only the handoff to storage is asynchronous.
"""

import asyncio
import json
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Protocol

from focusgo.database import is_permission_denied
from focusgo.schemas.category import CategoryRef
from focusgo.schemas.session import SessionRecord
from focusgo.services.timer_engine import SessionStartMarker

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
TOP_PATTERNS = 3
RECENT_SESSIONS = 10


class SessionStore(Protocol):
    @property
    def authenticated(self) -> bool: ...

    async def save_session(self, record: SessionRecord) -> None: ...

    async def get_sessions(self) -> list: ...


class SessionRecorder:
    def __init__(self, store: SessionStore, notifications=None):
        self._store = store
        self._notifications = notifications
        self._pending: set[asyncio.Task] = set()

    def record_phase_end(
        self,
        marker: SessionStartMarker,
        completed: bool,
        category: CategoryRef,
        planned_duration_seconds: int,
        ended_at: datetime | None = None,
    ) -> SessionRecord:
        ended_at = ended_at or datetime.now().astimezone()
        started_at = marker.started_at
        actual = math.floor((ended_at - started_at).total_seconds())

        record = SessionRecord(
            id=f"session_{round(started_at.timestamp() * 1000)}",
            category_id=category.id,
            category_name=category.name,
            planned_duration_seconds=planned_duration_seconds,
            actual_duration_seconds=max(0, actual),
            start_time=started_at,
            end_time=ended_at,
            completed=completed,
            # Python weekday() is Monday=0; records use Sunday=0
            day_of_week=(started_at.weekday() + 1) % 7,
            hour_of_day=started_at.hour,
            consecutive_session=marker.consecutive_session,
            followed_break=marker.followed_break,
        )
        self._hand_off(record)
        return record

    async def summarize(self, window_days: int = 30) -> dict:
        sessions = await self._store.get_sessions()
        return build_analytics_summary(sessions, window_days=window_days)

    async def drain(self) -> None:
        """Wait for every storage handoff still in flight."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _hand_off(self, record: SessionRecord) -> None:
        if not self._store.authenticated:
            logger.info("Session %s not saved: no signed-in user", record.id)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Session %s not saved: no running event loop", record.id)
            return
        task = loop.create_task(self._persist(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, record: SessionRecord) -> None:
        try:
            await self._store.save_session(record)
        except Exception as exc:
            if is_permission_denied(exc):
                logger.warning("Session %s not saved: storage permissions not configured", record.id)
                return
            logger.exception("Failed to save session %s", record.id)
            self._notify("Failed to save session to cloud", kind="error")
            return
        logger.info("Session %s saved (completed=%s)", record.id, record.completed)
        self._notify("Session saved to cloud")

    def _notify(self, message: str, kind: str = "info") -> None:
        if self._notifications is not None:
            self._notifications.push(message, kind=kind)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


def _round(value: float) -> int:
    """Round half up, so 2.5 -> 3."""
    return math.floor(value + 0.5)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _top(counts: dict[int, int]) -> list[tuple[int, int]]:
    # Stable sort over ascending keys, so ties keep the lower key first
    ranked = sorted(sorted(counts.items()), key=lambda item: item[1], reverse=True)
    return ranked[:TOP_PATTERNS]


def build_analytics_summary(
    sessions: list,
    window_days: int = 30,
    now: datetime | None = None,
) -> dict:
    """Reduce session history to the context handed to the AI coach.

    ``sessions`` may be ORM rows or ``SessionRecord`` objects; only the
    attributes shared by both are read. Sessions keep their input order.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=window_days)
    recent = [s for s in sessions if _as_aware(s.start_time) >= cutoff]

    total = len(recent)
    completed = sum(1 for s in recent if s.completed)
    focus_seconds = sum(s.actual_duration_seconds for s in recent)

    by_category: dict[str, dict[str, int]] = {}
    by_day: dict[int, int] = {}
    by_hour: dict[int, int] = {}
    for s in recent:
        entry = by_category.setdefault(s.category_name or "Uncategorized", {"count": 0, "seconds": 0})
        entry["count"] += 1
        entry["seconds"] += s.actual_duration_seconds
        by_day[s.day_of_week] = by_day.get(s.day_of_week, 0) + 1
        by_hour[s.hour_of_day] = by_hour.get(s.hour_of_day, 0) + 1

    return {
        "period_days": window_days,
        "total_sessions": total,
        "completed_sessions": completed,
        "completion_rate": _round(completed / total * 100) if total else 0,
        "total_focus_minutes": _round(focus_seconds / 60),
        "average_session_minutes": _round(focus_seconds / total / 60) if total else 0,
        "categories": [
            {"name": name, "count": entry["count"], "minutes": _round(entry["seconds"] / 60)}
            for name, entry in by_category.items()
        ],
        "productive_days": [
            {"day": DAY_NAMES[day], "count": count} for day, count in _top(by_day)
        ],
        "productive_hours": [
            {"hour": f"{hour}:00", "count": count} for hour, count in _top(by_hour)
        ],
        "recent_sessions": [
            {
                "category": s.category_name or "Uncategorized",
                "minutes": _round(s.actual_duration_seconds / 60),
                "completed": s.completed,
                "start_time": _as_aware(s.start_time).isoformat(),
            }
            for s in recent[-RECENT_SESSIONS:]
        ],
    }


def summary_to_context(summary: dict) -> str:
    return json.dumps(summary, indent=2)
