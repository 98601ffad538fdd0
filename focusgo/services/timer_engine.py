"""Pomodoro timer state machine.

Remaining time is derived on every tick from a wall-clock anchor instead of
being decremented, so scheduling jitter never accumulates into drift. The
engine is driven by an injected ``Ticker`` and hands finished focus phases to
a ``SessionRecorder``; it performs no I/O itself.
"""

import asyncio
import inspect
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from focusgo.schemas.category import NO_CATEGORY, CategoryRef

logger = logging.getLogger(__name__)

MIN_EDIT_MINUTES = 1
MAX_EDIT_MINUTES = 120

_MINUTES_ONLY = re.compile(r"^\d{1,3}$", re.ASCII)
_MINUTES_SECONDS = re.compile(r"^(\d{1,3}):([0-5]\d)$", re.ASCII)


class TimerPhase(str, Enum):
    FOCUS = "focus"
    BREAK = "break"


@dataclass(frozen=True)
class StreakCounters:
    consecutive_session_count: int = 0
    last_unit_was_break: bool = False


@dataclass(frozen=True)
class SessionStartMarker:
    """When the running focus phase began, and the streak it was stamped with."""

    started_at: datetime
    consecutive_session: int = 1
    followed_break: bool = False


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------


class Subscription(Protocol):
    def cancel(self) -> None: ...


class Ticker(Protocol):
    def subscribe(self, callback: Callable[[], None], interval: float) -> Subscription: ...


class _LoopSubscription:
    def __init__(self, loop: asyncio.AbstractEventLoop, callback: Callable[[], None], interval: float):
        self._loop = loop
        self._callback = callback
        self._interval = interval
        self.cancelled = False
        self._handle = loop.call_soon(self._fire)

    def _fire(self) -> None:
        if self.cancelled:
            return
        self._callback()
        if not self.cancelled:
            self._handle = self._loop.call_later(self._interval, self._fire)

    def cancel(self) -> None:
        self.cancelled = True
        self._handle.cancel()


class AsyncioTicker:
    """Fires immediately, then every ``interval`` seconds on the running loop."""

    def subscribe(self, callback: Callable[[], None], interval: float) -> Subscription:
        return _LoopSubscription(asyncio.get_running_loop(), callback, interval)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _to_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000).astimezone()


def _log_alarm_failure(future: asyncio.Future) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.warning("Failed to play alarm: %s", future.exception())


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TimerEngine:
    def __init__(
        self,
        *,
        focus_seconds: int = 25 * 60,
        break_seconds: int = 5 * 60,
        recorder=None,
        alarm: Callable[[], object] | None = None,
        ticker: Ticker | None = None,
        tick_interval_ms: int = 100,
        clock: Callable[[], int] | None = None,
        auto_advance: bool = False,
        category: CategoryRef = NO_CATEGORY,
    ):
        if focus_seconds <= 0 or break_seconds <= 0:
            raise ValueError("Phase durations must be positive")

        self.focus_seconds = focus_seconds
        self.break_seconds = break_seconds
        self.tick_interval_ms = tick_interval_ms
        self.auto_advance = auto_advance
        self.category = category

        self.phase = TimerPhase.FOCUS
        self.remaining_seconds = focus_seconds
        self.running = False
        self.anchor_epoch_ms = 0
        self.marker: SessionStartMarker | None = None
        self.streak = StreakCounters()

        self.progress = 0.0
        self.display_time = ""

        self._recorder = recorder
        self._alarm = alarm
        self._ticker = ticker or AsyncioTicker()
        self._clock = clock or _epoch_ms
        self._subscription: Subscription | None = None

        self.update_display()

    # -- derived values -----------------------------------------------------

    def total_seconds(self, phase: TimerPhase | None = None) -> int:
        phase = phase or self.phase
        return self.focus_seconds if phase is TimerPhase.FOCUS else self.break_seconds

    @property
    def is_timer_active(self) -> bool:
        """True once the current phase has been started or has counted down."""
        return self.running or self.remaining_seconds != self.total_seconds()

    @property
    def mode_label(self) -> str:
        return "FOCUS" if self.phase is TimerPhase.FOCUS else "BREAK"

    def update_display(self) -> None:
        total = self.total_seconds()
        if self.phase is TimerPhase.FOCUS:
            self.progress = (total - self.remaining_seconds) / total * 100
        else:
            self.progress = self.remaining_seconds / total * 100
        minutes, seconds = divmod(self.remaining_seconds, 60)
        self.display_time = f"{minutes:02d}:{seconds:02d}"

    # -- transitions --------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return

        now = self._clock()
        self.anchor_epoch_ms = now - (self.total_seconds() - self.remaining_seconds) * 1000
        self.running = True

        if self.phase is TimerPhase.FOCUS and self.marker is None:
            followed_break = self.streak.last_unit_was_break
            count = 1 if followed_break else self.streak.consecutive_session_count + 1
            self.streak = StreakCounters(consecutive_session_count=count, last_unit_was_break=False)
            self.marker = SessionStartMarker(
                started_at=_to_datetime(now),
                consecutive_session=count,
                followed_break=followed_break,
            )

        self._subscription = self._ticker.subscribe(self.tick, self.tick_interval_ms / 1000)
        logger.info("Timer started (%s, %s remaining)", self.phase.value, self.display_time)

    def tick(self) -> None:
        if not self.running:
            return
        total = self.total_seconds()
        elapsed = (self._clock() - self.anchor_epoch_ms) // 1000
        self.remaining_seconds = min(total, max(0, total - elapsed))
        self.update_display()
        if self.remaining_seconds <= 0:
            self.switch_mode()

    def pause(self) -> None:
        self.running = False
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def toggle(self) -> None:
        if self.running:
            self.pause()
        else:
            self.start()

    def reset(self) -> None:
        """Stop and rewind the current phase; a focus phase in progress is discarded."""
        self.pause()
        if self.phase is TimerPhase.FOCUS:
            self.marker = None
        self.remaining_seconds = self.total_seconds()
        self.update_display()

    def skip(self) -> None:
        if self.phase is TimerPhase.FOCUS and self.marker is not None:
            self._record(completed=False)
        self.switch_mode(completed=False)

    def switch_mode(self, completed: bool = True) -> None:
        """End the current phase and move to the other one.

        ``completed`` is False when the phase was skipped rather than run out.
        Any break ending, run out or skipped, restarts the focus streak.
        """
        ending = self.phase
        if ending is TimerPhase.FOCUS:
            if self.marker is not None:
                self._record(completed=completed)
            self.streak = replace(self.streak, last_unit_was_break=False)
        else:
            self.streak = replace(self.streak, last_unit_was_break=True)

        self.pause()
        self._play_alarm()

        self.phase = TimerPhase.BREAK if ending is TimerPhase.FOCUS else TimerPhase.FOCUS
        self.remaining_seconds = self.total_seconds()
        self.update_display()
        logger.info("%s phase ended, now %s", ending.value, self.phase.value)

        if self.auto_advance:
            self.start()

    def close(self) -> None:
        """Release the tick subscription; safe to call more than once."""
        self.pause()

    # -- settings -----------------------------------------------------------

    def edit_duration(self, text: str) -> bool:
        """Apply a duration typed as ``"M"`` or ``"M:SS"`` to the current phase.

        Returns False, leaving everything unchanged, if the phase is already
        in progress or the input is malformed or out of range.
        """
        if self.is_timer_active:
            return False

        value = text.strip()
        if _MINUTES_ONLY.match(value):
            minutes, seconds = int(value), 0
        else:
            match = _MINUTES_SECONDS.match(value)
            if match is None:
                return False
            minutes, seconds = int(match.group(1)), int(match.group(2))

        if not MIN_EDIT_MINUTES <= minutes <= MAX_EDIT_MINUTES:
            return False

        total = minutes * 60 + seconds
        if self.phase is TimerPhase.FOCUS:
            self.focus_seconds = total
        else:
            self.break_seconds = total
        self.remaining_seconds = total
        self.update_display()
        return True

    def select_category(self, category: CategoryRef) -> CategoryRef:
        """Select ``category``; selecting the current one again clears it."""
        if self.category.id == category.id:
            self.category = NO_CATEGORY
        else:
            self.category = category
        return self.category

    def set_auto_advance(self, enabled: bool) -> None:
        self.auto_advance = enabled

    # -- persistence helpers ------------------------------------------------

    def status(self) -> dict:
        return {
            "phase": self.phase.value,
            "mode_label": self.mode_label,
            "running": self.running,
            "remaining_seconds": self.remaining_seconds,
            "total_seconds": self.total_seconds(),
            "display_time": self.display_time,
            "progress": self.progress,
            "auto_advance": self.auto_advance,
            "focus_seconds": self.focus_seconds,
            "break_seconds": self.break_seconds,
            "is_timer_active": self.is_timer_active,
            "selected_category": self.category,
            "session_started_at": self.marker.started_at if self.marker else None,
            "consecutive_session_count": self.streak.consecutive_session_count,
        }

    def snapshot(self) -> dict:
        return {
            "current_time": self.remaining_seconds,
            "is_focus_time": self.phase is TimerPhase.FOCUS,
            "selected_category_id": self.category.id,
            "session_start_time": self.marker.started_at if self.marker else None,
            "session_followed_break": self.marker.followed_break if self.marker else False,
            "consecutive_session_count": self.streak.consecutive_session_count,
            "last_session_was_break": self.streak.last_unit_was_break,
        }

    def restore(self, state: dict, category: CategoryRef | None = None) -> None:
        """Load a saved snapshot. The timer comes back paused."""
        self.pause()
        self.phase = TimerPhase.FOCUS if state["is_focus_time"] else TimerPhase.BREAK
        self.remaining_seconds = min(self.total_seconds(), max(0, int(state["current_time"])))
        self.streak = StreakCounters(
            consecutive_session_count=state["consecutive_session_count"],
            last_unit_was_break=state["last_session_was_break"],
        )
        started_at = state.get("session_start_time")
        if started_at is not None and started_at.tzinfo is None:
            # Some backends drop the offset; snapshots are written in UTC
            started_at = started_at.replace(tzinfo=timezone.utc).astimezone()
        if started_at is not None and self.phase is TimerPhase.FOCUS:
            self.marker = SessionStartMarker(
                started_at=started_at,
                consecutive_session=max(1, self.streak.consecutive_session_count),
                followed_break=state.get("session_followed_break", False),
            )
        else:
            self.marker = None
        if category is not None:
            self.category = category
        self.update_display()

    # -- internals ----------------------------------------------------------

    def _record(self, completed: bool) -> None:
        marker = self.marker
        self.marker = None
        if self._recorder is None:
            return
        self._recorder.record_phase_end(
            marker,
            completed=completed,
            category=self.category,
            planned_duration_seconds=self.focus_seconds,
            ended_at=_to_datetime(self._clock()),
        )

    def _play_alarm(self) -> None:
        if self._alarm is None:
            return
        try:
            result = self._alarm()
            if inspect.isawaitable(result):
                future = asyncio.ensure_future(result)
                future.add_done_callback(_log_alarm_failure)
        except Exception as exc:
            logger.warning("Failed to play alarm: %s", exc)
