from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    chat_id: str | None = Field(default=None, max_length=64)


class ChatResponse(BaseModel):
    message: str
    error: str | None = None


class CoachReply(BaseModel):
    chat_id: str
    message: str
    error: str | None = None
    used_session_data: bool


class ChatMessageResponse(BaseModel):
    role: str
    content: str
    timestamp: datetime

    model_config = {"from_attributes": True}


class CoachStatus(BaseModel):
    available: bool
    provider: str | None
