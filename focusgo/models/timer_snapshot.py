import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from focusgo.models.base import Base


class TimerSnapshot(Base):
    __tablename__ = "timer_snapshots"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True
    )
    current_time: Mapped[int] = mapped_column(Integer, nullable=False)
    is_focus_time: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    selected_category_id: Mapped[str] = mapped_column(String(64), nullable=False, default="none")
    session_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    session_followed_break: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    consecutive_session_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_session_was_break: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
