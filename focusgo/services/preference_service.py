"""Per-user timer preferences kept in Redis.

Reads never fail: a missing or unreachable store yields the defaults.
"""

import logging
import uuid
from dataclasses import dataclass

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

AUTO_START_KEY = "autoStart"
SELECTED_CATEGORY_KEY = "selectedCategory"


@dataclass
class Preferences:
    auto_start: bool = False
    selected_category: str = "none"


class PreferenceStore:
    def __init__(self, redis_client=None):
        self._redis = redis_client

    @staticmethod
    def _key(user_id: uuid.UUID) -> str:
        return f"prefs:{user_id}"

    async def load(self, user_id: uuid.UUID) -> Preferences:
        if self._redis is None:
            logger.warning("Preference store is not available")
            return Preferences()
        try:
            values = await self._redis.hgetall(self._key(user_id))
        except (RedisError, OSError) as exc:
            logger.warning("Failed to load preferences: %s", exc)
            return Preferences()
        return Preferences(
            auto_start=values.get(AUTO_START_KEY) == "true",
            selected_category=values.get(SELECTED_CATEGORY_KEY) or "none",
        )

    async def set_auto_start(self, user_id: uuid.UUID, enabled: bool) -> None:
        await self._set(user_id, AUTO_START_KEY, "true" if enabled else "false")

    async def set_selected_category(self, user_id: uuid.UUID, category_id: str) -> None:
        await self._set(user_id, SELECTED_CATEGORY_KEY, category_id)

    async def _set(self, user_id: uuid.UUID, field: str, value: str) -> None:
        if self._redis is None:
            logger.warning("Preference store is not available, %s cannot be saved", field)
            return
        try:
            await self._redis.hset(self._key(user_id), field, value)
        except (RedisError, OSError):
            logger.exception("Failed to save %s preference", field)
