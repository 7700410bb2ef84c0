"""Data models for Sitesmith."""

from .conversation import Conversation, StoredMessage
from .messages import (
    ChatFunctionRequest,
    DraftUpdate,
    GenerateRequest,
    HandshakeMessage,
    LoadConversationRequest,
    Message,
    VideoFunctionRequest,
)
from .prediction import Prediction

__all__ = [
    "Conversation",
    "StoredMessage",
    "ChatFunctionRequest",
    "DraftUpdate",
    "GenerateRequest",
    "HandshakeMessage",
    "LoadConversationRequest",
    "Message",
    "VideoFunctionRequest",
    "Prediction",
]
