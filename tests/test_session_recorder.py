"""Tests for turning finished focus phases into records and for the
30-day analytics summary handed to the coach."""

import asyncio
import json
from datetime import UTC, datetime, timedelta

import pytest

from focusgo.schemas.category import NO_CATEGORY, CategoryRef
from focusgo.schemas.session import AnalyticsSummary, SessionRecord
from focusgo.services.notification_service import NotificationFeed
from focusgo.services.session_recorder import (
    SessionRecorder,
    build_analytics_summary,
    summary_to_context,
)
from focusgo.services.timer_engine import SessionStartMarker

WORK = CategoryRef(id="work", name="Work", color="#22c55e", icon="label")
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class MemoryStore:
    """SessionStore that keeps records in a list."""

    def __init__(self, authenticated: bool = True, error: Exception | None = None):
        self.authenticated = authenticated
        self.error = error
        self.saved: list[SessionRecord] = []

    async def save_session(self, record: SessionRecord) -> None:
        if self.error is not None:
            raise self.error
        self.saved.append(record)

    async def get_sessions(self) -> list:
        return list(self.saved)


def _record(
    start: datetime,
    minutes: float = 25,
    completed: bool = True,
    category_name: str = "Work",
) -> SessionRecord:
    end = start + timedelta(minutes=minutes)
    return SessionRecord(
        id=f"session_{int(start.timestamp() * 1000)}",
        category_id=category_name.lower() or "none",
        category_name=category_name,
        planned_duration_seconds=1500,
        actual_duration_seconds=int(minutes * 60),
        start_time=start,
        end_time=end,
        completed=completed,
        day_of_week=(start.weekday() + 1) % 7,
        hour_of_day=start.hour,
        consecutive_session=1,
    )


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class TestRecordPhaseEnd:
    def test_builds_record_from_marker(self):
        # Sunday 2026-03-01, 09:00 UTC
        started = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        marker = SessionStartMarker(started_at=started, consecutive_session=3, followed_break=True)
        recorder = SessionRecorder(MemoryStore(authenticated=False))

        record = recorder.record_phase_end(
            marker,
            completed=True,
            category=WORK,
            planned_duration_seconds=1500,
            ended_at=started + timedelta(seconds=1499.7),
        )

        assert record.id == f"session_{int(started.timestamp() * 1000)}"
        assert record.category_id == "work"
        assert record.category_name == "Work"
        assert record.planned_duration_seconds == 1500
        assert record.actual_duration_seconds == 1499
        assert record.completed is True
        assert record.day_of_week == 0
        assert record.hour_of_day == 9
        assert record.consecutive_session == 3
        assert record.followed_break is True

    def test_no_category(self):
        started = datetime(2026, 3, 4, 22, 15, tzinfo=UTC)
        recorder = SessionRecorder(MemoryStore(authenticated=False))
        record = recorder.record_phase_end(
            SessionStartMarker(started_at=started),
            completed=False,
            category=NO_CATEGORY,
            planned_duration_seconds=1500,
            ended_at=started + timedelta(minutes=3),
        )
        assert record.category_id == "none"
        assert record.category_name == ""
        assert record.day_of_week == 3
        assert record.hour_of_day == 22
        assert record.completed is False

    def test_clock_going_backwards_clamps_to_zero(self):
        started = datetime(2026, 3, 4, 10, 0, tzinfo=UTC)
        recorder = SessionRecorder(MemoryStore(authenticated=False))
        record = recorder.record_phase_end(
            SessionStartMarker(started_at=started),
            completed=False,
            category=WORK,
            planned_duration_seconds=1500,
            ended_at=started - timedelta(seconds=5),
        )
        assert record.actual_duration_seconds == 0

    def test_unauthenticated_is_not_saved(self):
        store = MemoryStore(authenticated=False)
        feed = NotificationFeed()
        recorder = SessionRecorder(store, notifications=feed)
        recorder.record_phase_end(
            SessionStartMarker(started_at=NOW),
            completed=True,
            category=WORK,
            planned_duration_seconds=1500,
            ended_at=NOW + timedelta(minutes=25),
        )
        assert store.saved == []
        assert feed.drain() == []

    def test_without_event_loop_returns_record(self):
        store = MemoryStore()
        recorder = SessionRecorder(store)
        record = recorder.record_phase_end(
            SessionStartMarker(started_at=NOW),
            completed=True,
            category=WORK,
            planned_duration_seconds=1500,
            ended_at=NOW + timedelta(minutes=25),
        )
        assert record.completed is True
        assert store.saved == []


class TestHandOff:
    @pytest.mark.asyncio
    async def test_saves_and_notifies(self):
        store = MemoryStore()
        feed = NotificationFeed()
        recorder = SessionRecorder(store, notifications=feed)

        record = recorder.record_phase_end(
            SessionStartMarker(started_at=NOW),
            completed=True,
            category=WORK,
            planned_duration_seconds=1500,
            ended_at=NOW + timedelta(minutes=25),
        )
        await recorder.drain()

        assert store.saved == [record]
        notices = feed.drain()
        assert [n.message for n in notices] == ["Session saved to cloud"]
        assert notices[0].kind == "info"

    @pytest.mark.asyncio
    async def test_failure_notifies_error(self):
        store = MemoryStore(error=ConnectionError("database down"))
        feed = NotificationFeed()
        recorder = SessionRecorder(store, notifications=feed)

        recorder.record_phase_end(
            SessionStartMarker(started_at=NOW),
            completed=True,
            category=WORK,
            planned_duration_seconds=1500,
        )
        await recorder.drain()

        notices = feed.drain()
        assert len(notices) == 1
        assert notices[0].kind == "error"
        assert notices[0].message == "Failed to save session to cloud"

    @pytest.mark.asyncio
    async def test_permission_denied_is_quiet(self):
        store = MemoryStore(error=PermissionError("row level security"))
        feed = NotificationFeed()
        recorder = SessionRecorder(store, notifications=feed)

        recorder.record_phase_end(
            SessionStartMarker(started_at=NOW),
            completed=False,
            category=WORK,
            planned_duration_seconds=1500,
        )
        await recorder.drain()

        assert feed.drain() == []

    @pytest.mark.asyncio
    async def test_record_phase_end_does_not_wait_for_storage(self):
        gate = asyncio.Event()

        class SlowStore(MemoryStore):
            async def save_session(self, record):
                await gate.wait()
                await super().save_session(record)

        store = SlowStore()
        recorder = SessionRecorder(store)
        recorder.record_phase_end(
            SessionStartMarker(started_at=NOW),
            completed=True,
            category=WORK,
            planned_duration_seconds=1500,
        )
        assert store.saved == []

        gate.set()
        await recorder.drain()
        assert len(store.saved) == 1

    @pytest.mark.asyncio
    async def test_summarize_reads_store(self):
        store = MemoryStore()
        store.saved = [_record(datetime.now(UTC) - timedelta(hours=2))]
        recorder = SessionRecorder(store)
        summary = await recorder.summarize()
        assert summary["total_sessions"] == 1


# ---------------------------------------------------------------------------
# Analytics summary
# ---------------------------------------------------------------------------


class TestAnalyticsSummary:
    def test_empty_history(self):
        summary = build_analytics_summary([], now=NOW)
        assert summary == {
            "period_days": 30,
            "total_sessions": 0,
            "completed_sessions": 0,
            "completion_rate": 0,
            "total_focus_minutes": 0,
            "average_session_minutes": 0,
            "categories": [],
            "productive_days": [],
            "productive_hours": [],
            "recent_sessions": [],
        }

    def test_totals_and_rates(self):
        sessions = [
            _record(NOW - timedelta(days=1), minutes=25),
            _record(NOW - timedelta(days=2), minutes=25),
            _record(NOW - timedelta(days=3), minutes=10, completed=False),
        ]
        summary = build_analytics_summary(sessions, now=NOW)

        assert summary["total_sessions"] == 3
        assert summary["completed_sessions"] == 2
        assert summary["completion_rate"] == 67
        assert summary["total_focus_minutes"] == 60
        assert summary["average_session_minutes"] == 20

    def test_half_rounds_up(self):
        sessions = [_record(NOW - timedelta(hours=1), minutes=2.5)]
        summary = build_analytics_summary(sessions, now=NOW)
        assert summary["total_focus_minutes"] == 3
        assert summary["categories"] == [{"name": "Work", "count": 1, "minutes": 3}]

    def test_window_excludes_old_sessions(self):
        sessions = [
            _record(NOW - timedelta(days=31)),
            _record(NOW - timedelta(days=29)),
        ]
        summary = build_analytics_summary(sessions, now=NOW)
        assert summary["total_sessions"] == 1

        summary = build_analytics_summary(sessions, window_days=7, now=NOW)
        assert summary["total_sessions"] == 0
        assert summary["period_days"] == 7

    def test_categories_in_first_seen_order(self):
        sessions = [
            _record(NOW - timedelta(days=3), category_name="Study"),
            _record(NOW - timedelta(days=2), category_name=""),
            _record(NOW - timedelta(days=1), category_name="Study"),
        ]
        summary = build_analytics_summary(sessions, now=NOW)
        assert summary["categories"] == [
            {"name": "Study", "count": 2, "minutes": 50},
            {"name": "Uncategorized", "count": 1, "minutes": 25},
        ]

    def test_productive_days_and_hours(self):
        # 2026-03-09 is a Monday
        monday = datetime(2026, 3, 9, tzinfo=UTC)
        sessions = [
            _record(monday.replace(hour=9)),
            _record(monday.replace(hour=9, minute=30)),
            _record(monday.replace(hour=14)),
            _record((monday + timedelta(days=1)).replace(hour=14)),
            _record((monday + timedelta(days=1)).replace(hour=14, minute=30)),
            _record((monday + timedelta(days=2)).replace(hour=20)),
            _record((monday - timedelta(days=1)).replace(hour=7)),
        ]
        summary = build_analytics_summary(sessions, now=NOW)

        assert summary["productive_days"] == [
            {"day": "Mon", "count": 3},
            {"day": "Tue", "count": 2},
            {"day": "Sun", "count": 1},
        ]
        assert summary["productive_hours"] == [
            {"hour": "14:00", "count": 3},
            {"hour": "9:00", "count": 2},
            {"hour": "7:00", "count": 1},
        ]

    def test_recent_sessions_are_last_ten(self):
        sessions = [
            _record(NOW - timedelta(days=20) + timedelta(hours=i), minutes=i + 1)
            for i in range(12)
        ]
        summary = build_analytics_summary(sessions, now=NOW)

        recent = summary["recent_sessions"]
        assert len(recent) == 10
        assert recent[0]["minutes"] == 3
        assert recent[-1]["minutes"] == 12
        assert recent[-1]["start_time"] == sessions[-1].start_time.isoformat()

    def test_naive_datetimes_are_utc(self):
        row = _record(NOW - timedelta(days=1)).model_copy(
            update={"start_time": (NOW - timedelta(days=1)).replace(tzinfo=None)}
        )
        summary = build_analytics_summary([row], now=NOW)
        assert summary["total_sessions"] == 1
        assert summary["recent_sessions"][0]["start_time"].endswith("+00:00")

    def test_matches_response_schema(self):
        sessions = [_record(NOW - timedelta(days=d)) for d in range(5)]
        summary = build_analytics_summary(sessions, now=NOW)
        AnalyticsSummary.model_validate(summary)

    def test_context_is_json(self):
        summary = build_analytics_summary([_record(NOW - timedelta(days=1))], now=NOW)
        assert json.loads(summary_to_context(summary)) == summary
