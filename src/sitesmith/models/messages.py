"""Chat message models and WebSocket request models."""

from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]
MediaType = Literal["image", "video"]


class Message(BaseModel):
    """One entry of a conversation, as shown in the chat."""

    role: Role = Field(..., description="Who wrote the message")
    content: str = Field("", description="Message text (grows while streaming)")
    media_url: Optional[str] = Field(None, description="Generated image or video URL")
    media_type: Optional[MediaType] = Field(None, description="Kind of media_url")

    def to_api(self) -> Dict[str, str]:
        """Shape sent to the chat endpoint: role and content only."""
        return {"role": self.role, "content": self.content}


class ChatFunctionRequest(BaseModel):
    """Body of the chat endpoint."""

    # generateImage is camelCase on the wire
    model_config = ConfigDict(populate_by_name=True)

    messages: List[Message] = Field(..., description="Conversation so far")
    generate_image: bool = Field(
        False, alias="generateImage", description="Answer with an image instead of text"
    )


class VideoFunctionRequest(BaseModel):
    """Body of the video endpoint: either submit a prompt or poll a prediction."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = Field(None, description="Prompt for a new prediction")
    prediction_id: Optional[str] = Field(
        None, alias="predictionId", description="Existing prediction to check"
    )


# WebSocket messages from the browser

class HandshakeMessage(BaseModel):
    """Initial message on a new connection."""

    type: Literal["handshake"] = "handshake"
    user_id: Optional[str] = Field(None, description="Authenticated user, if any")
    conversation_id: Optional[str] = Field(
        None, description="Conversation to resume"
    )


class GenerateRequest(BaseModel):
    """Chat, image or video request."""

    type: Literal["chat", "image", "video"]
    message: Optional[str] = Field(
        None, description="Prompt text; the current draft is used when omitted"
    )


class DraftUpdate(BaseModel):
    """Draft input changed."""

    type: Literal["draft"] = "draft"
    text: str = ""


class LoadConversationRequest(BaseModel):
    """Switch the session to a persisted conversation."""

    type: Literal["load_conversation"] = "load_conversation"
    conversation_id: str
