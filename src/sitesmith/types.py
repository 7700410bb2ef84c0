"""Common type definitions for Sitesmith.

This module provides TypedDict definitions for the events a conversation
session pushes to the browser, to avoid Dict[str, Any].
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, TypedDict, Union


class MessageDict(TypedDict, total=False):
    """Serialized chat message."""
    role: str
    content: str
    media_url: Optional[str]
    media_type: Optional[str]


class MessageEventDict(TypedDict, total=False):
    """A message was appended, updated in place, or removed."""
    type: str  # message_appended | message_updated | message_removed
    index: int
    message: MessageDict


class DocumentUpdatedDict(TypedDict):
    """The generated HTML document was replaced."""
    type: str
    html: str


class ConversationCreatedDict(TypedDict):
    """A conversation record was created on first message."""
    type: str
    conversation_id: str
    title: str


class StatusDict(TypedDict, total=False):
    """Status update message."""
    type: str
    status: str  # busy | idle
    detail: Optional[str]


class ErrorDict(TypedDict, total=False):
    """Error message."""
    type: str
    code: str
    message: str
    detail: Optional[str]


class HandshakeAckDict(TypedDict, total=False):
    """Reply to the handshake."""
    type: str
    session_id: str
    conversation_id: Optional[str]
    messages: List[MessageDict]
    document: str


# Union of all possible WebSocket message types
WebSocketMessage = Union[
    MessageEventDict,
    DocumentUpdatedDict,
    ConversationCreatedDict,
    StatusDict,
    ErrorDict,
    HandshakeAckDict,
    Dict[str, Any],  # Fallback for unknown message types
]


# Type alias for WebSocket send callback
WsSendCallback = Callable[[WebSocketMessage], Awaitable[None]]
