from collections import deque
from datetime import datetime, timezone

from focusgo.schemas.timer import Notice


class NotificationFeed:
    """Bounded queue of user-visible notices, collected by the client."""

    def __init__(self, maxlen: int = 50):
        self._notices: deque[Notice] = deque(maxlen=maxlen)

    def push(self, message: str, kind: str = "info") -> None:
        self._notices.append(
            Notice(kind=kind, message=message, created_at=datetime.now(timezone.utc))
        )

    def drain(self) -> list[Notice]:
        notices = list(self._notices)
        self._notices.clear()
        return notices


class FeedAlarm:
    """Alarm port that asks the client to play its sound."""

    def __init__(self, feed: NotificationFeed, message: str = "Time's up!"):
        self._feed = feed
        self._message = message

    def __call__(self) -> None:
        self._feed.push(self._message, kind="alarm")
