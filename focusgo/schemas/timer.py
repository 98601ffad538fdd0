from datetime import datetime

from pydantic import BaseModel, Field

from focusgo.schemas.category import CategoryRef


class TimerStatus(BaseModel):
    phase: str  # "focus" or "break"
    mode_label: str
    running: bool
    remaining_seconds: int
    total_seconds: int
    display_time: str
    progress: float
    auto_advance: bool
    focus_seconds: int
    break_seconds: int
    is_timer_active: bool
    selected_category: CategoryRef
    session_started_at: datetime | None
    consecutive_session_count: int


class DurationEdit(BaseModel):
    value: str = Field(max_length=16)


class DurationEditResponse(BaseModel):
    accepted: bool
    status: TimerStatus


class AutoStartUpdate(BaseModel):
    enabled: bool


class CategorySelect(BaseModel):
    category_id: str = Field(min_length=1, max_length=64)


class Notice(BaseModel):
    kind: str  # "info", "error" or "alarm"
    message: str
    created_at: datetime
