from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ceycanvas.schemas.common import CamelModel


class SendMessageRequest(CamelModel):
    recipient_id: int
    content: str = Field(min_length=1, max_length=5000)

    @field_validator("content")
    @classmethod
    def require_content(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Content and recipient required")
        return value


class Participant(CamelModel):
    id: int
    name: str
    email: Optional[str] = None
    profile_image: Optional[str] = None


class Sender(CamelModel):
    id: int
    name: str
    profile_image: Optional[str] = None


class LastMessage(CamelModel):
    content: str
    sender_id: Optional[int] = None
    timestamp: Optional[datetime] = None


class ConversationResponse(CamelModel):
    id: int
    participants: list[Participant]
    last_message: Optional[LastMessage] = None
    unread_count: int = 0
    created_at: datetime
    updated_at: datetime


class MessageResponse(CamelModel):
    id: int
    conversation: int
    sender: Sender
    content: str
    read: bool
    created_at: datetime
