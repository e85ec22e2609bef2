from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class FollowUpConversation(BaseModel):
    id: str
    lead_id: str
    created_by: str
    conversation_text: str
    conversation_date: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", "lead_id", "created_by", mode="before")
    @classmethod
    def _stringify_ids(cls, value):
        return str(value) if value is not None else value


class ConversationCreate(BaseModel):
    conversation_text: str
    # may be backdated or set in the future; defaults to now
    conversation_date: Optional[datetime] = None

    @field_validator("conversation_text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Conversation text is required.")
        return value
