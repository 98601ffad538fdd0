import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from focusgo.config import settings
from focusgo.schemas.category import NO_CATEGORY
from focusgo.services import category_service, timer_state_service
from focusgo.services.notification_service import FeedAlarm, NotificationFeed
from focusgo.services.preference_service import PreferenceStore
from focusgo.services.session_recorder import SessionRecorder
from focusgo.services.session_service import DatabaseSessionStore
from focusgo.services.timer_engine import Ticker, TimerEngine

logger = logging.getLogger(__name__)


@dataclass
class UserTimer:
    engine: TimerEngine
    recorder: SessionRecorder
    notifications: NotificationFeed


class TimerRegistry:
    """Owns one timer per signed-in user for the lifetime of the app."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        redis_client=None,
        ticker: Ticker | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self._session_factory = session_factory
        self._ticker = ticker
        self._clock = clock
        self._timers: dict[uuid.UUID, UserTimer] = {}
        self.preferences = PreferenceStore(redis_client)

    async def get(self, db: AsyncSession, user_id: uuid.UUID) -> UserTimer:
        timer = self._timers.get(user_id)
        if timer is not None:
            return timer

        timer = await self._create(db, user_id)
        # Another request may have built one while we awaited
        existing = self._timers.setdefault(user_id, timer)
        if existing is not timer:
            timer.engine.close()
        return existing

    async def _create(self, db: AsyncSession, user_id: uuid.UUID) -> UserTimer:
        prefs = await self.preferences.load(user_id)
        categories = await category_service.get_user_categories(db, user_id)

        notifications = NotificationFeed()
        recorder = SessionRecorder(
            DatabaseSessionStore(self._session_factory, user_id),
            notifications=notifications,
        )
        engine = TimerEngine(
            focus_seconds=settings.FOCUS_DURATION_MINUTES * 60,
            break_seconds=settings.BREAK_DURATION_MINUTES * 60,
            recorder=recorder,
            alarm=FeedAlarm(notifications),
            ticker=self._ticker,
            tick_interval_ms=settings.TIMER_TICK_INTERVAL_MS,
            clock=self._clock,
            auto_advance=prefs.auto_start,
            category=category_service.resolve_ref(categories, prefs.selected_category),
        )

        state = await timer_state_service.load_state(db, user_id)
        if state is not None:
            engine.restore(
                state,
                category=category_service.resolve_ref(categories, state["selected_category_id"]),
            )

        logger.info("Timer created for %s", user_id)
        return UserTimer(engine=engine, recorder=recorder, notifications=notifications)

    def find(self, user_id: uuid.UUID) -> UserTimer | None:
        return self._timers.get(user_id)

    def drop_category(self, user_id: uuid.UUID, category_id: str) -> None:
        """Clear the selection if it points at a category that no longer exists."""
        timer = self.find(user_id)
        if timer is not None and timer.engine.category.id == category_id:
            timer.engine.category = NO_CATEGORY

    async def shutdown(self) -> None:
        # Timers created while we await are picked up by the next pass
        while self._timers:
            user_id, timer = self._timers.popitem()
            timer.engine.close()
            await timer.recorder.drain()
            async with self._session_factory() as db:
                await timer_state_service.save_state(db, user_id, timer.engine.snapshot())
                await db.commit()
