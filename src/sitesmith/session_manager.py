"""Multi-session management with automatic cleanup."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from .backends import ChatBackend, ImageBackend, VideoBackend
from .conversation_store import ConversationStore
from .session import ConversationSession
from .types import WsSendCallback

logger = logging.getLogger(__name__)


class ManagedSession:
    """A conversation session bound to one WebSocket connection."""

    def __init__(
        self,
        session_id: str,
        conversation: ConversationSession,
        ws_send_callback: Optional[WsSendCallback] = None,
    ) -> None:
        self.session_id = session_id
        self.conversation = conversation
        self.created_at = datetime.now()
        self.last_activity = datetime.now()
        self.ws_send_callback = ws_send_callback
        self.task: Optional[asyncio.Task[None]] = None

    def touch(self) -> None:
        """Update last activity timestamp."""
        self.last_activity = datetime.now()

    def is_busy(self) -> bool:
        """An operation is running, or scheduled and not yet started."""
        if self.conversation.busy:
            return True
        return self.task is not None and not self.task.done()

    def cancel_task(self) -> None:
        """Abandon the in-flight operation, if any."""
        if self.task and not self.task.done():
            self.task.cancel()
        self.task = None


class SessionManager:
    """
    Manages conversation sessions with automatic cleanup.

    Sessions share the generation backends (one HTTP client each) and the
    conversation store, but keep their own message list and busy flag.
    """

    def __init__(
        self,
        chat_backend: ChatBackend,
        image_backend: ImageBackend,
        video_backend: VideoBackend,
        store: Optional[ConversationStore] = None,
        max_idle_minutes: int = 30,
        poll_interval: float = 3.0,
        max_poll_attempts: Optional[int] = 200,
    ):
        self.chat_backend = chat_backend
        self.image_backend = image_backend
        self.video_backend = video_backend
        self.store = store
        self.max_idle_minutes = max_idle_minutes
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.sessions: Dict[str, ManagedSession] = {}
        self._cleanup_task: Optional[asyncio.Task[None]] = None

    async def create_session(
        self,
        session_id: str,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        ws_send_callback: Optional[WsSendCallback] = None,
    ) -> ManagedSession:
        """
        Create a session, optionally resuming a persisted conversation.

        Raises:
            ConversationNotFoundError: conversation_id is unknown or not the user's
        """
        conversation = ConversationSession(
            session_id,
            chat_backend=self.chat_backend,
            image_backend=self.image_backend,
            video_backend=self.video_backend,
            store=self.store,
            user_id=user_id,
            notify=ws_send_callback,
            poll_interval=self.poll_interval,
            max_poll_attempts=self.max_poll_attempts,
        )
        if conversation_id:
            await conversation.load_conversation(conversation_id)

        session = ManagedSession(session_id, conversation, ws_send_callback)
        self.sessions[session_id] = session

        logger.info(
            f"Created session: {session_id} (user: {user_id or 'anonymous'}, "
            f"conversation: {conversation_id or 'new'})"
        )
        return session

    def get_session(self, session_id: str) -> Optional[ManagedSession]:
        """Get existing session and update activity."""
        session = self.sessions.get(session_id)
        if session:
            session.touch()
        return session

    async def remove_session(self, session_id: str) -> None:
        """Remove session and abandon its in-flight operation."""
        session = self.sessions.pop(session_id, None)
        if session:
            session.cancel_task()
            logger.info(f"Removed session: {session_id}")

    def start_cleanup_task(self) -> None:
        """Start background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Session cleanup task started")

    async def _cleanup_loop(self) -> None:
        """Background task to cleanup idle sessions."""
        while True:
            try:
                await asyncio.sleep(60)  # Check every minute
                await self._cleanup_idle_sessions()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in cleanup loop: {e}", exc_info=True)

    async def _cleanup_idle_sessions(self) -> None:
        """Remove sessions idle for too long, unless a generation is running."""
        cutoff = datetime.now() - timedelta(minutes=self.max_idle_minutes)
        to_remove = [
            sid
            for sid, session in self.sessions.items()
            if session.last_activity < cutoff and not session.is_busy()
        ]

        for sid in to_remove:
            logger.info(f"Removing idle session: {sid}")
            await self.remove_session(sid)

    async def cleanup_all_sessions(self) -> None:
        """Cleanup all sessions and backends (shutdown)."""
        logger.info("Cleaning up all sessions...")
        for sid in list(self.sessions.keys()):
            await self.remove_session(sid)

        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass

        for backend in (self.chat_backend, self.image_backend, self.video_backend):
            await backend.shutdown()

    def get_session_count(self) -> int:
        """Get number of active sessions."""
        return len(self.sessions)
