"""End-to-end tests of the HTTP and WebSocket API."""

import asyncio

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from sitesmith import main
from sitesmith.backends import ChatBackend

ORIGIN = {"origin": "http://localhost:5173"}
CHAT_STREAM = (
    b'data: {"choices":[{"delta":{"content":"Here you go ```html\\n'
    b'<!DOCTYPE html><html><body>Band</body></html>\\n```"}}]}\n\n'
    b"data: [DONE]\n\n"
)


def fake_chat_backend():
    backend = MagicMock(spec=ChatBackend)

    async def stream(messages):
        yield CHAT_STREAM

    backend.stream = stream
    return backend


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(main.settings, "DATABASE_PATH", str(tmp_path / "history.db"))
    with TestClient(main.app) as test_client:
        main.session_manager.chat_backend = fake_chat_backend()
        yield test_client


def receive_until_idle(ws):
    events = []
    while True:
        event = ws.receive_json()
        events.append(event)
        if event.get("type") == "status" and event.get("status") == "idle":
            return events


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unknown_session_document_is_not_found(client):
    assert client.get("/sessions/nope/document").status_code == 404


def test_unknown_conversation_messages_not_found(client):
    owner = {"user_id": "user-1"}
    assert client.get("/conversations/nope/messages", params=owner).status_code == 404
    assert client.delete("/conversations/nope", params=owner).status_code == 404


def test_chat_over_websocket_builds_and_persists_site(client):
    with client.websocket_connect("/ws", headers=ORIGIN) as ws:
        ws.send_json({"type": "handshake", "user_id": "user-1"})
        ack = ws.receive_json()
        assert ack["type"] == "handshake_ack"
        assert ack["messages"] == []
        session_id = ack["session_id"]

        # Nothing generated yet
        assert client.get(f"/sessions/{session_id}/document").status_code == 404

        ws.send_json({"type": "chat", "message": "A site for my band"})
        events = receive_until_idle(ws)

        types = [e["type"] for e in events]
        assert "conversation_created" in types
        assert "document_updated" in types
        conversation_id = next(e for e in events if e["type"] == "conversation_created")["conversation_id"]

        preview = client.get(f"/sessions/{session_id}/document")
        assert preview.status_code == 200
        assert preview.headers["content-type"].startswith("text/html")
        assert preview.text == "<!DOCTYPE html><html><body>Band</body></html>"

        source = client.get(f"/sessions/{session_id}/document", params={"raw": "true"})
        assert source.headers["content-type"].startswith("text/plain")

    history = client.get("/conversations", params={"user_id": "user-1"}).json()
    assert [c["id"] for c in history["conversations"]] == [conversation_id]
    assert history["conversations"][0]["title"] == "A site for my band"

    messages = client.get(
        f"/conversations/{conversation_id}/messages", params={"user_id": "user-1"}
    ).json()
    assert messages["message_count"] == 2
    assert [m["role"] for m in messages["messages"]] == ["user", "assistant"]


def test_resuming_conversation_restores_document(client):
    with client.websocket_connect("/ws", headers=ORIGIN) as ws:
        ws.send_json({"type": "handshake", "user_id": "user-1"})
        ws.receive_json()
        ws.send_json({"type": "chat", "message": "A site for my band"})
        events = receive_until_idle(ws)
        conversation_id = next(e for e in events if e["type"] == "conversation_created")["conversation_id"]

    with client.websocket_connect("/ws", headers=ORIGIN) as ws:
        ws.send_json({"type": "handshake", "user_id": "user-1", "conversation_id": conversation_id})
        ack = ws.receive_json()

        assert ack["conversation_id"] == conversation_id
        assert len(ack["messages"]) == 2
        assert ack["document"] == "<!DOCTYPE html><html><body>Band</body></html>"


def test_blank_prompt_and_unknown_type_are_reported(client):
    with client.websocket_connect("/ws", headers=ORIGIN) as ws:
        ws.send_json({"type": "handshake"})
        ws.receive_json()

        ws.send_json({"type": "chat", "message": "  "})
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["code"] == "invalid_request"

        ws.send_json({"type": "teleport"})
        error = ws.receive_json()
        assert error["code"] == "invalid_request"


def test_draft_then_new_conversation(client):
    with client.websocket_connect("/ws", headers=ORIGIN) as ws:
        ws.send_json({"type": "handshake"})
        ws.receive_json()

        ws.send_json({"type": "draft", "text": "A bakery"})
        ws.send_json({"type": "chat"})
        events = receive_until_idle(ws)
        user_message = next(e for e in events if e["type"] == "message_appended")
        assert user_message["message"]["content"] == "A bakery"

        ws.send_json({"type": "new_conversation"})
        reset = ws.receive_json()
        assert reset == {"type": "conversation_loaded", "conversation_id": None, "messages": [], "document": ""}


def test_conversation_endpoints_are_scoped_to_owner(client):
    with client.websocket_connect("/ws", headers=ORIGIN) as ws:
        ws.send_json({"type": "handshake", "user_id": "user-1"})
        ws.receive_json()
        ws.send_json({"type": "chat", "message": "A site for my band"})
        events = receive_until_idle(ws)
        conversation_id = next(e for e in events if e["type"] == "conversation_created")["conversation_id"]

    url = f"/conversations/{conversation_id}"
    assert client.get(f"{url}/messages").status_code == 400
    assert client.get(f"{url}/messages", params={"user_id": "user-2"}).status_code == 404
    assert client.delete(url, params={"user_id": "user-2"}).status_code == 404

    # Still there for its owner
    assert client.get(f"{url}/messages", params={"user_id": "user-1"}).json()["message_count"] == 2
    assert client.delete(url, params={"user_id": "user-1"}).status_code == 200
    assert client.get(f"{url}/messages", params={"user_id": "user-1"}).status_code == 404


def test_anonymous_handshake_cannot_resume_saved_conversation(client):
    with client.websocket_connect("/ws", headers=ORIGIN) as ws:
        ws.send_json({"type": "handshake", "user_id": "user-1"})
        ws.receive_json()
        ws.send_json({"type": "chat", "message": "A site for my band"})
        events = receive_until_idle(ws)
        conversation_id = next(e for e in events if e["type"] == "conversation_created")["conversation_id"]

    with client.websocket_connect("/ws", headers=ORIGIN) as ws:
        ws.send_json({"type": "handshake", "conversation_id": conversation_id})
        error = ws.receive_json()
        ack = ws.receive_json()

        assert error["code"] == "conversation_not_found"
        assert ack["conversation_id"] is None
        assert ack["messages"] == []


def test_back_to_back_generations_run_one_at_a_time(client):
    backend = MagicMock(spec=ChatBackend)

    async def slow_stream(messages):
        await asyncio.sleep(0.3)
        yield CHAT_STREAM

    backend.stream = slow_stream
    main.session_manager.chat_backend = backend

    with client.websocket_connect("/ws", headers=ORIGIN) as ws:
        ws.send_json({"type": "handshake"})
        ws.receive_json()
        ws.send_json({"type": "chat", "message": "First"})
        ws.send_json({"type": "chat", "message": "Second"})

        events = []
        while not (
            any(e["type"] == "error" for e in events)
            and any(e["type"] == "status" and e["status"] == "idle" for e in events)
        ):
            events.append(ws.receive_json())

    errors = [e for e in events if e["type"] == "error"]
    assert [e["code"] for e in errors] == ["session_busy"]
    prompts = [
        e["message"]["content"]
        for e in events
        if e["type"] == "message_appended" and e["message"]["role"] == "user"
    ]
    assert prompts == ["First"]
    assert [e["status"] for e in events if e["type"] == "status"] == ["busy", "idle"]
