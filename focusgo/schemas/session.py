import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class SessionRecord(BaseModel):
    """One completed-or-skipped focus phase, immutable once built."""

    id: str = Field(min_length=1, max_length=64)
    category_id: str = "none"
    category_name: str = ""
    planned_duration_seconds: int = Field(ge=0)
    actual_duration_seconds: int = Field(ge=0)
    start_time: datetime
    end_time: datetime
    completed: bool
    day_of_week: int = Field(ge=0, le=6)  # 0 = Sunday
    hour_of_day: int = Field(ge=0, le=23)
    consecutive_session: int = Field(ge=1)
    followed_break: bool = False

    model_config = {"frozen": True}


class SessionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    session_key: str
    category_id: str
    category_name: str
    planned_duration_seconds: int
    actual_duration_seconds: int
    start_time: datetime
    end_time: datetime
    completed: bool
    day_of_week: int
    hour_of_day: int
    consecutive_session: int
    followed_break: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class CategoryStat(BaseModel):
    name: str
    count: int
    minutes: int


class DayStat(BaseModel):
    day: str
    count: int


class HourStat(BaseModel):
    hour: str
    count: int


class RecentSession(BaseModel):
    category: str
    minutes: int
    completed: bool
    start_time: str


class AnalyticsSummary(BaseModel):
    period_days: int
    total_sessions: int
    completed_sessions: int
    completion_rate: int
    total_focus_minutes: int
    average_session_minutes: int
    categories: list[CategoryStat]
    productive_days: list[DayStat]
    productive_hours: list[HourStat]
    recent_sessions: list[RecentSession]
