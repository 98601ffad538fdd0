import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class CategoryRef(BaseModel):
    """Category as seen by the timer: plain reference data."""

    id: str
    name: str
    color: str = "#6b7280"
    icon: str = "label"

    model_config = {"frozen": True}


NO_CATEGORY = CategoryRef(id="none", name="", color="#6b7280", icon="label")

DEFAULT_CATEGORIES = [
    {"name": "Work", "color": "#22c55e", "icon": "label", "order": 0},
    {"name": "Study", "color": "#3b82f6", "icon": "label", "order": 1},
    {"name": "Personal", "color": "#a855f7", "icon": "label", "order": 2},
    {"name": "Urgent", "color": "#ef4444", "icon": "label", "order": 3},
    {"name": "Exercise", "color": "#eab308", "icon": "label", "order": 4},
]


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    color: str = Field(default="#6b7280", max_length=20)
    icon: str = Field(default="label", max_length=50)


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    color: str | None = Field(default=None, max_length=20)
    icon: str | None = Field(default=None, max_length=50)
    order: int | None = Field(default=None, ge=0)


class CategoryOrder(BaseModel):
    id: uuid.UUID
    order: int = Field(ge=0)


class CategoryResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    color: str
    icon: str
    order: int
    created_at: datetime

    model_config = {"from_attributes": True}
