"""WebSocket connection management."""

import asyncio
import json
import logging
import time
from typing import Dict, List, Optional

from fastapi import WebSocket, status

from .exceptions import ConnectionLimitError, InvalidOriginError
from .types import WebSocketMessage

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages WebSocket connections with security and resource limits.

    Features:
    - Origin validation against an allow-list ("*" allows any origin)
    - Connection limits
    - Automatic cleanup
    - Debug message logging
    - Ping/pong keepalive
    """

    def __init__(
        self,
        allowed_origins: Optional[List[str]] = None,
        max_connections: int = 100,
        ping_interval: int = 20,
        ping_timeout: int = 10,
    ):
        self.allowed_origins = allowed_origins if allowed_origins is not None else ["*"]
        self.max_connections = max_connections
        self.ping_interval = ping_interval  # seconds between pings
        self.ping_timeout = ping_timeout  # seconds to wait for pong
        self.active_connections: Dict[str, WebSocket] = {}
        self.ping_tasks: Dict[str, asyncio.Task[None]] = {}
        self.receiver_tasks: Dict[str, asyncio.Task[None]] = {}
        self.message_queues: Dict[str, asyncio.Queue[Optional[WebSocketMessage]]] = {}
        self.last_pong_time: Dict[str, float] = {}
        self.pong_events: Dict[str, asyncio.Event] = {}

    def is_origin_allowed(self, origin: str) -> bool:
        """Check an Origin header against the allow-list (prefix match)."""
        if "*" in self.allowed_origins:
            return True
        return bool(origin) and any(origin.startswith(allowed) for allowed in self.allowed_origins)

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        """
        Accept WebSocket connection with validation.

        Args:
            session_id: Unique session identifier
            websocket: FastAPI WebSocket instance

        Raises:
            InvalidOriginError: If origin is not allowed
            ConnectionLimitError: If max connections reached
        """
        origin = websocket.headers.get("origin", "")
        if not self.is_origin_allowed(origin):
            logger.warning(f"Rejected connection from invalid origin: {origin}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            raise InvalidOriginError(origin)

        if len(self.active_connections) >= self.max_connections:
            logger.warning("Connection limit reached")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Server at capacity")
            raise ConnectionLimitError(self.max_connections)

        await websocket.accept()
        self.active_connections[session_id] = websocket
        logger.info(
            f"WebSocket connected: {session_id} (total: {len(self.active_connections)})"
        )

    def disconnect(self, session_id: str) -> None:
        """Remove connection and cancel background tasks."""
        self.active_connections.pop(session_id, None)

        ping_task = self.ping_tasks.pop(session_id, None)
        if ping_task:
            ping_task.cancel()

        receiver_task = self.receiver_tasks.pop(session_id, None)
        if receiver_task:
            receiver_task.cancel()

        self.message_queues.pop(session_id, None)
        self.pong_events.pop(session_id, None)
        self.last_pong_time.pop(session_id, None)

        logger.info(f"WebSocket disconnected: {session_id}")

    async def send_message(self, session_id: str, message: WebSocketMessage) -> bool:
        """
        Send JSON message to specific session with debug logging.

        Returns:
            True if message was sent successfully, False otherwise
        """
        websocket = self.active_connections.get(session_id)
        if not websocket:
            logger.warning(f"Attempted to send to non-existent session: {session_id}")
            return False

        try:
            msg_type = message.get("type", "unknown")
            logger.debug(f"[WS OUT] {session_id[:8]}... | {msg_type} | {json.dumps(message)[:200]}")
            await websocket.send_json(message)
            return True
        except RuntimeError as e:
            # "Unexpected ASGI message" once the connection is already closed
            if "websocket.send" in str(e) or "websocket.close" in str(e):
                logger.warning(f"Cannot send message to {session_id}: connection already closed")
                self.disconnect(session_id)
                return False
            raise
        except Exception as e:
            logger.error(f"Error sending message to {session_id}: {e}")
            return False

    def get_connection_count(self) -> int:
        """Get number of active connections."""
        return len(self.active_connections)

    def mark_pong_received(self, session_id: str) -> None:
        """Mark that a pong was received for this session."""
        self.last_pong_time[session_id] = time.time()
        if session_id in self.pong_events:
            self.pong_events[session_id].set()
        logger.debug(f"[WS PONG] {session_id[:8]}... | Pong received")

    async def _ping_loop(self, session_id: str) -> None:
        """Send periodic pings and close the connection when pongs stop."""
        try:
            while True:
                await asyncio.sleep(self.ping_interval)

                websocket = self.active_connections.get(session_id)
                if not websocket:
                    break

                pong_event = asyncio.Event()
                self.pong_events[session_id] = pong_event

                try:
                    logger.debug(f"[WS PING] {session_id[:8]}... | Sending ping")
                    await websocket.send_json({"type": "ping"})

                    try:
                        await asyncio.wait_for(pong_event.wait(), timeout=self.ping_timeout)
                    except asyncio.TimeoutError:
                        logger.warning(
                            f"[WS PING] {session_id[:8]}... | No pong in "
                            f"{self.ping_timeout}s, closing"
                        )
                        await websocket.close(code=1000, reason="Ping timeout")
                        break

                except Exception as e:
                    logger.warning(f"Ping failed for {session_id}: {e}")
                    break
                finally:
                    self.pong_events.pop(session_id, None)

        except asyncio.CancelledError:
            logger.debug(f"Ping task cancelled for {session_id}")
        finally:
            self.pong_events.pop(session_id, None)
            self.last_pong_time.pop(session_id, None)

    def start_ping(self, session_id: str) -> None:
        """Start ping keepalive task for a session."""
        if session_id not in self.ping_tasks:
            task = asyncio.create_task(self._ping_loop(session_id))
            self.ping_tasks[session_id] = task
            logger.debug(f"Started ping task for session {session_id}")

    async def _receiver_loop(self, session_id: str, websocket: WebSocket, receive_timeout: int) -> None:
        """
        Continuously receive messages from the WebSocket.

        Pongs are handled here so keepalive works while a generation is
        running; everything else is queued for the main loop. A None in
        the queue means the connection is gone.
        """
        queue = self.message_queues.get(session_id)
        try:
            while True:
                try:
                    data = await asyncio.wait_for(websocket.receive_json(), timeout=receive_timeout)
                except asyncio.TimeoutError:
                    logger.warning(
                        f"[WS RECEIVER] {session_id[:8]}... | No message in "
                        f"{receive_timeout}s, closing"
                    )
                    await websocket.close(code=1000, reason="Receive timeout")
                    break

                if not isinstance(data, dict):
                    logger.warning(f"[WS RECEIVER] {session_id[:8]}... | Ignoring non-object message")
                    continue

                if data.get("type") == "pong":
                    self.mark_pong_received(session_id)
                    continue

                if queue:
                    await queue.put(data)

        except asyncio.CancelledError:
            logger.debug(f"Receiver task cancelled for {session_id}")
            return
        except Exception as e:
            logger.info(f"Receiver stopped for {session_id}: {e}")

        if queue:
            await queue.put(None)

    def start_receiver(self, session_id: str, websocket: WebSocket, receive_timeout: int = 300) -> None:
        """Start background receiver task for a session."""
        if session_id not in self.receiver_tasks:
            self.message_queues[session_id] = asyncio.Queue()
            task = asyncio.create_task(
                self._receiver_loop(session_id, websocket, receive_timeout)
            )
            self.receiver_tasks[session_id] = task
            logger.debug(f"Started receiver task for session {session_id}")

    async def receive_message(self, session_id: str, timeout: Optional[float] = None) -> Optional[WebSocketMessage]:
        """
        Receive next message from the queue for this session.

        Returns:
            Message dict or None if connection closed or error occurred
        """
        queue = self.message_queues.get(session_id)
        if not queue:
            return None

        if timeout:
            return await asyncio.wait_for(queue.get(), timeout=timeout)
        return await queue.get()
