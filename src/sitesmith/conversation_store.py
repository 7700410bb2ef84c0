"""Persistence of conversations and their messages."""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import aiosqlite

from .models.conversation import Conversation, StoredMessage
from .models.messages import Message

logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    """
    Narrow interface to the conversation storage backend.

    Implementations scope conversations by user and return messages in
    creation order.
    """

    @abstractmethod
    async def create_conversation(self, user_id: str, title: str) -> Conversation:
        """Create an empty conversation owned by ``user_id``."""

    @abstractmethod
    async def save_message(self, conversation_id: str, message: Message) -> StoredMessage:
        """Append ``message`` to a conversation."""

    @abstractmethod
    async def load_messages(self, conversation_id: str) -> List[StoredMessage]:
        """Messages of a conversation, oldest first."""

    @abstractmethod
    async def list_conversations(self, user_id: str) -> List[Conversation]:
        """Conversations of a user, most recently updated first."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Single conversation, or None."""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and its messages. Returns False if unknown."""


class SQLiteConversationStore(ConversationStore):
    """Conversation store on a local SQLite database."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize database schema (idempotent)."""
        async with self._lock:
            if self._initialized:
                return

            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS conversations (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        title TEXT NOT NULL DEFAULT 'Untitled',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)

                await db.execute("""
                    CREATE TABLE IF NOT EXISTS messages (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        conversation_id TEXT NOT NULL
                            REFERENCES conversations(id) ON DELETE CASCADE,
                        role TEXT NOT NULL,
                        content TEXT NOT NULL DEFAULT '',
                        media_url TEXT,
                        media_type TEXT,
                        created_at TEXT NOT NULL
                    )
                """)

                await db.execute("""
                    CREATE INDEX IF NOT EXISTS idx_conversations_user_updated
                    ON conversations(user_id, updated_at)
                """)

                await db.execute("""
                    CREATE INDEX IF NOT EXISTS idx_messages_conversation_created
                    ON messages(conversation_id, created_at)
                """)

                await db.commit()
                logger.info(f"ConversationStore initialized at {self.db_path}")
                self._initialized = True

    async def create_conversation(self, user_id: str, title: str) -> Conversation:
        await self.initialize()

        now = datetime.now()
        conversation = Conversation(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=title[:100] or "Untitled",
            created_at=now,
            updated_at=now,
        )

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO conversations (id, user_id, title, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    conversation.id,
                    conversation.user_id,
                    conversation.title,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            await db.commit()

        logger.info(f"Created conversation {conversation.id} for user {user_id}")
        return conversation

    async def save_message(self, conversation_id: str, message: Message) -> StoredMessage:
        await self.initialize()

        now = datetime.now()
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO messages
                    (conversation_id, role, content, media_url, media_type, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    conversation_id,
                    message.role,
                    message.content,
                    message.media_url,
                    message.media_type,
                    now.isoformat(),
                ),
            )
            message_id = cursor.lastrowid
            await db.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (now.isoformat(), conversation_id),
            )
            await db.commit()

        return StoredMessage(
            id=message_id,
            conversation_id=conversation_id,
            created_at=now,
            **message.model_dump(),
        )

    async def load_messages(self, conversation_id: str) -> List[StoredMessage]:
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT id, conversation_id, role, content, media_url, media_type, created_at
                FROM messages
                WHERE conversation_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (conversation_id,),
            ) as cursor:
                rows = await cursor.fetchall()
                return [StoredMessage(**dict(row)) for row in rows]

    async def list_conversations(self, user_id: str) -> List[Conversation]:
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT id, user_id, title, created_at, updated_at
                FROM conversations
                WHERE user_id = ?
                ORDER BY updated_at DESC
                """,
                (user_id,),
            ) as cursor:
                rows = await cursor.fetchall()
                return [Conversation(**dict(row)) for row in rows]

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            ) as cursor:
                row = await cursor.fetchone()
                if row:
                    return Conversation(**dict(row))
                return None

    async def delete_conversation(self, conversation_id: str) -> bool:
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM messages WHERE conversation_id = ?", (conversation_id,)
            )
            cursor = await db.execute(
                "DELETE FROM conversations WHERE id = ?", (conversation_id,)
            )
            await db.commit()
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted conversation {conversation_id}")
        return deleted
