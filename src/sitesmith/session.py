"""Conversation session: chat, image and video operations over one message list."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from .backends import ChatBackend, ImageBackend, VideoBackend
from .conversation_store import ConversationStore
from .exceptions import (
    ConversationNotFoundError,
    EmptyPromptError,
    SessionBusyError,
)
from .html_extract import extract_html
from .job_poller import JobPoller
from .models.messages import Message
from .models.prediction import Prediction
from .stream_consumer import StreamConsumer
from .types import WebSocketMessage, WsSendCallback

logger = logging.getLogger(__name__)

TITLE_LENGTH = 50
IMAGE_REPLY = "Here's your generated image:"
VIDEO_PENDING_REPLY = "Generating your video... This may take a minute."
VIDEO_REPLY = "Here's your generated video:"


def make_title(prompt: str) -> str:
    """Conversation title from its first prompt (first 50 chars)."""
    title = prompt[:TITLE_LENGTH].strip()
    if len(prompt) > TITLE_LENGTH:
        title += "..."
    return title


class ConversationSession:
    """
    State of one user's website-building conversation.

    Holds the ordered messages, the draft input, the latest generated HTML
    document and the persisted conversation id. The three generation
    operations are mutually exclusive: while one is in flight ``busy`` is
    set and the others raise ``SessionBusyError``.

    Every state change is reported through ``notify`` so a connected
    browser can mirror it.
    """

    def __init__(
        self,
        session_id: str,
        chat_backend: ChatBackend,
        image_backend: ImageBackend,
        video_backend: VideoBackend,
        store: Optional[ConversationStore] = None,
        user_id: Optional[str] = None,
        notify: Optional[WsSendCallback] = None,
        poll_interval: float = 3.0,
        max_poll_attempts: Optional[int] = 200,
    ):
        self.session_id = session_id
        self.chat_backend = chat_backend
        self.image_backend = image_backend
        self.video_backend = video_backend
        self.store = store
        self.user_id = user_id
        self.notify = notify
        self.poller = JobPoller(
            video_backend, interval=poll_interval, max_attempts=max_poll_attempts
        )

        self.messages: List[Message] = []
        self.draft = ""
        self.generated_document = ""
        self.conversation_id: Optional[str] = None
        self.busy = False

    # Operations

    async def send_chat(self, text: Optional[str] = None) -> Message:
        """Send a chat message and stream the assistant's reply."""
        async with self._operation(text) as prompt:
            await self._add_user_message(prompt)

            history = list(self.messages)
            index = await self._append(Message(role="assistant", content=""))

            async def on_delta(content: str, document: str) -> None:
                self.messages[index].content = content
                await self._emit_message("message_updated", index)
                if document and document != self.generated_document:
                    await self._set_document(document)

            consumer = StreamConsumer(on_delta=on_delta)
            try:
                await consumer.consume(self.chat_backend.stream(history))
            except Exception:
                await self._remove(index)
                raise

            reply = self.messages[index]
            await self._persist(reply)
            logger.info(f"[{self.session_id[:8]}] Chat reply complete ({len(reply.content)} chars)")
            return reply

    async def request_image(self, text: Optional[str] = None) -> Message:
        """Generate an image from the conversation and append it."""
        async with self._operation(text) as prompt:
            await self._add_user_message(prompt)

            image_url = await self.image_backend.generate(list(self.messages))

            reply = Message(
                role="assistant",
                content=IMAGE_REPLY,
                media_url=image_url,
                media_type="image",
            )
            await self._append(reply)
            await self._persist(reply)
            return reply

    async def request_video(self, text: Optional[str] = None) -> Message:
        """Generate a video; a placeholder is shown while the job runs."""
        async with self._operation(text) as prompt:
            await self._add_user_message(prompt)

            placeholder: List[int] = []

            async def on_submitted(prediction: Prediction) -> None:
                logger.info(f"[{self.session_id[:8]}] Waiting for video {prediction.id}")
                placeholder.append(
                    await self._append(Message(role="assistant", content=VIDEO_PENDING_REPLY))
                )

            try:
                video_url = await self.poller.run(prompt, on_submitted=on_submitted)
            except Exception:
                if placeholder:
                    await self._remove(placeholder[0])
                raise

            reply = Message(
                role="assistant",
                content=VIDEO_REPLY,
                media_url=video_url,
                media_type="video",
            )
            index = placeholder[0]
            self.messages[index] = reply
            await self._emit_message("message_updated", index)
            await self._persist(reply)
            return reply

    # Conversation management

    async def load_conversation(self, conversation_id: str) -> None:
        """Replace local state with a persisted conversation."""
        if self.busy:
            raise SessionBusyError()
        if self.store is None:
            raise ConversationNotFoundError(conversation_id)

        conversation = await self.store.get_conversation(conversation_id)
        # Anonymous sessions never match a saved conversation
        if conversation is None or conversation.user_id != self.user_id:
            raise ConversationNotFoundError(conversation_id)

        stored = await self.store.load_messages(conversation_id)
        self.messages = [
            Message(**m.model_dump(include={"role", "content", "media_url", "media_type"}))
            for m in stored
        ]
        self.conversation_id = conversation_id
        self.generated_document = ""
        for message in reversed(self.messages):
            if message.role != "assistant":
                continue
            html = extract_html(message.content)
            if html:
                self.generated_document = html
                break

        logger.info(
            f"[{self.session_id[:8]}] Loaded conversation {conversation_id} "
            f"({len(self.messages)} messages)"
        )

    def new_conversation(self) -> None:
        """Start over with an empty conversation."""
        if self.busy:
            raise SessionBusyError()
        self.messages = []
        self.draft = ""
        self.generated_document = ""
        self.conversation_id = None

    # Internals

    @asynccontextmanager
    async def _operation(self, text: Optional[str]) -> AsyncIterator[str]:
        """Gate an operation on the busy flag and resolve its prompt."""
        if self.busy:
            raise SessionBusyError()
        prompt = (text if text is not None else self.draft).strip()
        if not prompt:
            raise EmptyPromptError()

        self.busy = True
        self.draft = ""
        await self._emit({"type": "status", "status": "busy", "detail": None})
        try:
            yield prompt
        finally:
            self.busy = False
            await self._emit({"type": "status", "status": "idle", "detail": None})

    async def _add_user_message(self, prompt: str) -> None:
        message = Message(role="user", content=prompt)
        await self._append(message)
        await self._ensure_conversation(prompt)
        await self._persist(message)

    async def _ensure_conversation(self, prompt: str) -> None:
        """Create the persisted conversation on the first message of a signed-in user."""
        if self.conversation_id or not self.store or not self.user_id:
            return
        conversation = await self.store.create_conversation(self.user_id, make_title(prompt))
        self.conversation_id = conversation.id
        await self._emit({
            "type": "conversation_created",
            "conversation_id": conversation.id,
            "title": conversation.title,
        })

    async def _persist(self, message: Message) -> None:
        if self.store and self.conversation_id:
            await self.store.save_message(self.conversation_id, message)

    async def _append(self, message: Message) -> int:
        self.messages.append(message)
        index = len(self.messages) - 1
        await self._emit_message("message_appended", index)
        return index

    async def _remove(self, index: int) -> None:
        del self.messages[index]
        await self._emit({"type": "message_removed", "index": index})

    async def _set_document(self, html: str) -> None:
        self.generated_document = html
        await self._emit({"type": "document_updated", "html": html})

    async def _emit_message(self, event_type: str, index: int) -> None:
        await self._emit({
            "type": event_type,
            "index": index,
            "message": self.messages[index].model_dump(),
        })

    async def _emit(self, message: WebSocketMessage) -> None:
        if self.notify:
            await self.notify(message)
