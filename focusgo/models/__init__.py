from focusgo.models.base import Base
from focusgo.models.category import Category
from focusgo.models.chat_message import ChatMessage
from focusgo.models.session import Session
from focusgo.models.timer_snapshot import TimerSnapshot
from focusgo.models.user import User

__all__ = [
    "Base",
    "Category",
    "ChatMessage",
    "Session",
    "TimerSnapshot",
    "User",
]
