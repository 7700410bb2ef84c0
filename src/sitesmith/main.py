"""Main FastAPI application with WebSocket support."""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import ValidationError

from .backends import ChatBackend, ImageBackend, VideoBackend
from .config import settings
from .conversation_store import SQLiteConversationStore
from .exceptions import SiteSmithError
from .functions import install_functions
from .logging_config import setup_logging
from .models.conversation import Conversation
from .models.messages import (
    DraftUpdate,
    GenerateRequest,
    HandshakeMessage,
    LoadConversationRequest,
)
from .session import ConversationSession
from .session_manager import ManagedSession, SessionManager
from .websocket import ConnectionManager

# Setup logging
setup_logging(level=settings.LOG_LEVEL, debug=settings.DEBUG)
logger = logging.getLogger(__name__)

# WebSocket receive timeout - generations can take minutes
WS_RECEIVE_TIMEOUT = settings.WS_RECEIVE_TIMEOUT

# Global managers (initialized in lifespan)
connection_manager: ConnectionManager
session_manager: SessionManager
conversation_store: SQLiteConversationStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting {settings.PROJECT_NAME}...")

    global connection_manager, session_manager, conversation_store

    connection_manager = ConnectionManager(
        allowed_origins=settings.ALLOWED_ORIGINS,
        max_connections=settings.MAX_CONNECTIONS,
        ping_interval=settings.WS_PING_INTERVAL,
        ping_timeout=settings.WS_PING_TIMEOUT,
    )

    conversation_store = SQLiteConversationStore(settings.DATABASE_PATH)
    await conversation_store.initialize()

    backend_options = dict(
        base_url=settings.FUNCTIONS_BASE_URL,
        api_key=settings.FUNCTIONS_API_KEY,
        timeout=settings.REQUEST_TIMEOUT,
    )
    session_manager = SessionManager(
        chat_backend=ChatBackend(**backend_options),
        image_backend=ImageBackend(**backend_options),
        video_backend=VideoBackend(**backend_options),
        store=conversation_store,
        max_idle_minutes=settings.MAX_SESSION_IDLE_MINUTES,
        poll_interval=settings.VIDEO_POLL_INTERVAL,
        max_poll_attempts=settings.VIDEO_MAX_POLL_ATTEMPTS,
    )
    session_manager.start_cleanup_task()

    # Upstream client for the generation functions
    app.state.http_client = httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT)

    logger.info(f"Generation functions: {settings.FUNCTIONS_BASE_URL}")
    logger.info(f"{settings.PROJECT_NAME} started successfully")

    yield

    logger.info("Shutting down gracefully...")
    await session_manager.cleanup_all_sessions()
    await app.state.http_client.aclose()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)
install_functions(app)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": settings.PROJECT_NAME,
        "active_sessions": session_manager.get_session_count(),
        "active_connections": connection_manager.get_connection_count(),
    }


@app.get("/conversations")
async def list_conversations(user_id: str):
    """Conversation history of a user, most recently updated first."""
    conversations = await conversation_store.list_conversations(user_id)
    return {
        "user_id": user_id,
        "conversations": [c.model_dump(mode="json") for c in conversations],
    }


async def get_owned_conversation(conversation_id: str, user_id: str) -> Conversation:
    """The conversation if it belongs to user_id, 404 when missing or owned by someone else."""
    conversation = await conversation_store.get_conversation(conversation_id)
    if not conversation or conversation.user_id != user_id:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@app.get("/conversations/{conversation_id}/messages")
async def get_conversation_messages(conversation_id: str, user_id: str):
    """Messages of one of the user's conversations, oldest first."""
    await get_owned_conversation(conversation_id, user_id)

    messages = await conversation_store.load_messages(conversation_id)
    return {
        "conversation_id": conversation_id,
        "message_count": len(messages),
        "messages": [m.model_dump(mode="json") for m in messages],
    }


@app.delete("/conversations/{conversation_id}")
async def delete_conversation(conversation_id: str, user_id: str):
    """Delete one of the user's conversations and its messages."""
    await get_owned_conversation(conversation_id, user_id)
    if not await conversation_store.delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"conversation_id": conversation_id, "status": "deleted"}


@app.get("/sessions/{session_id}/document")
async def get_session_document(session_id: str, raw: bool = False):
    """
    The session's generated website.

    Served as HTML for the live preview, or as plain text with ?raw=true
    for the source view.
    """
    session = session_manager.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    document = session.conversation.generated_document
    if not document:
        raise HTTPException(status_code=404, detail="No website generated yet")

    if raw:
        return PlainTextResponse(document)
    return HTMLResponse(document)


async def run_operation(session: ManagedSession, request: GenerateRequest) -> None:
    """Run one generation operation, reporting failures to the browser."""
    conversation: ConversationSession = session.conversation
    operations = {
        "chat": conversation.send_chat,
        "image": conversation.request_image,
        "video": conversation.request_video,
    }
    try:
        await operations[request.type](request.message)
    except SiteSmithError as e:
        logger.warning(f"[{session.session_id[:8]}] {request.type} failed: {e.code} | {e.message}")
        await connection_manager.send_message(session.session_id, e.to_dict())
    except asyncio.CancelledError:
        logger.info(f"[{session.session_id[:8]}] {request.type} abandoned")
        raise
    except Exception as e:
        logger.error(f"[{session.session_id[:8]}] {request.type} crashed: {e}", exc_info=True)
        await connection_manager.send_message(
            session.session_id,
            {"type": "error", "code": "internal", "message": "An unexpected error occurred. Please try again."},
        )


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Main WebSocket endpoint for the builder UI."""
    session_id = str(uuid.uuid4())

    async def send(message):
        await connection_manager.send_message(session_id, message)

    try:
        await connection_manager.connect(session_id, websocket)

        # Wait for handshake with user identity
        handshake_data = await websocket.receive_json()
        logger.debug(
            f"[WS IN] {session_id[:8]}... | handshake | {json.dumps(handshake_data)[:200]}"
        )

        handshake = HandshakeMessage()
        if isinstance(handshake_data, dict) and handshake_data.get("type") == "handshake":
            try:
                handshake = HandshakeMessage(**handshake_data)
            except ValidationError as e:
                logger.warning(f"Invalid handshake, continuing anonymously: {e}")

        try:
            session = await session_manager.create_session(
                session_id,
                user_id=handshake.user_id,
                conversation_id=handshake.conversation_id,
                ws_send_callback=send,
            )
        except SiteSmithError as e:
            # Unknown conversation: start fresh and tell the browser why
            await send(e.to_dict())
            session = await session_manager.create_session(
                session_id, user_id=handshake.user_id, ws_send_callback=send
            )

        conversation = session.conversation
        await send({
            "type": "handshake_ack",
            "session_id": session_id,
            "conversation_id": conversation.conversation_id,
            "messages": [m.model_dump() for m in conversation.messages],
            "document": conversation.generated_document,
        })

        logger.info(f"Session {session_id} ready for messages")

        connection_manager.start_receiver(session_id, websocket, WS_RECEIVE_TIMEOUT)
        connection_manager.start_ping(session_id)

        # Main message loop - consume from queue
        while True:
            data = await connection_manager.receive_message(session_id)
            if data is None:
                logger.info(f"[WS] {session_id[:8]}... | Connection closed by receiver")
                break

            session.touch()
            msg_type = data.get("type", "unknown")
            logger.debug(f"[WS IN] {session_id[:8]}... | {msg_type} | {json.dumps(data)[:200]}")

            try:
                if msg_type in ("chat", "image", "video"):
                    request = GenerateRequest(**data)
                    if session.is_busy():
                        await send({
                            "type": "error",
                            "code": "session_busy",
                            "message": "A generation is already in progress. Please wait for it to finish.",
                        })
                        continue
                    session.task = asyncio.create_task(run_operation(session, request))

                elif msg_type == "draft":
                    conversation.draft = DraftUpdate(**data).text

                elif msg_type == "load_conversation":
                    request = LoadConversationRequest(**data)
                    await conversation.load_conversation(request.conversation_id)
                    await send({
                        "type": "conversation_loaded",
                        "conversation_id": conversation.conversation_id,
                        "messages": [m.model_dump() for m in conversation.messages],
                        "document": conversation.generated_document,
                    })

                elif msg_type == "new_conversation":
                    conversation.new_conversation()
                    await send({"type": "conversation_loaded", "conversation_id": None, "messages": [], "document": ""})

                else:
                    logger.warning(f"[WS] {session_id[:8]}... | Unknown message type: {msg_type}")
                    await send({
                        "type": "error",
                        "code": "invalid_request",
                        "message": f"Unknown message type: {msg_type}",
                    })

            except ValidationError as e:
                logger.error(f"Invalid {msg_type} request: {e}")
                await send({"type": "error", "code": "invalid_request", "message": "Invalid request format"})
            except SiteSmithError as e:
                await send(e.to_dict())

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {session_id}")

    except SiteSmithError as e:
        # Rejected at connect (origin or capacity)
        logger.info(f"WebSocket rejected: {e.message}")

    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
        await send({"type": "error", "code": "internal", "message": str(e)})

    finally:
        connection_manager.disconnect(session_id)
        await session_manager.remove_session(session_id)
