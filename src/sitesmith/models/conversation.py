"""Persisted conversation models."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from .messages import Message


class Conversation(BaseModel):
    """A saved conversation belonging to a user."""

    id: str = Field(..., description="Conversation identifier")
    user_id: str = Field(..., description="Owner")
    title: str = Field("Untitled", description="Derived from the first prompt")
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class StoredMessage(Message):
    """A message as read back from storage."""

    id: Optional[int] = None
    conversation_id: str
    created_at: datetime = Field(default_factory=datetime.now)
