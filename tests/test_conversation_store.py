"""Tests for the SQLite conversation store."""

import asyncio

import pytest
from sitesmith.conversation_store import SQLiteConversationStore
from sitesmith.models.messages import Message


@pytest.fixture
def store(tmp_path):
    return SQLiteConversationStore(str(tmp_path / "nested" / "history.db"))


@pytest.mark.asyncio
async def test_create_and_get_conversation(store):
    conversation = await store.create_conversation("user-1", "My bakery")

    loaded = await store.get_conversation(conversation.id)
    assert loaded is not None
    assert loaded.user_id == "user-1"
    assert loaded.title == "My bakery"
    assert await store.get_conversation("missing") is None


@pytest.mark.asyncio
async def test_messages_come_back_in_creation_order(store):
    conversation = await store.create_conversation("user-1", "Order")
    for i in range(5):
        role = "user" if i % 2 == 0 else "assistant"
        await store.save_message(conversation.id, Message(role=role, content=f"m{i}"))

    messages = await store.load_messages(conversation.id)
    assert [m.content for m in messages] == ["m0", "m1", "m2", "m3", "m4"]
    assert all(m.conversation_id == conversation.id for m in messages)


@pytest.mark.asyncio
async def test_media_fields_round_trip(store):
    conversation = await store.create_conversation("user-1", "Media")
    saved = await store.save_message(
        conversation.id,
        Message(role="assistant", content="video", media_url="https://x/v.mp4", media_type="video"),
    )
    assert saved.id is not None

    [loaded] = await store.load_messages(conversation.id)
    assert loaded.media_url == "https://x/v.mp4"
    assert loaded.media_type == "video"


@pytest.mark.asyncio
async def test_conversations_are_scoped_by_user_and_sorted_by_update(store):
    older = await store.create_conversation("user-1", "Older")
    await asyncio.sleep(0.01)
    newer = await store.create_conversation("user-1", "Newer")
    await store.create_conversation("user-2", "Someone else's")

    assert [c.id for c in await store.list_conversations("user-1")] == [newer.id, older.id]

    # New activity moves a conversation to the top
    await asyncio.sleep(0.01)
    await store.save_message(older.id, Message(role="user", content="back again"))
    assert [c.id for c in await store.list_conversations("user-1")] == [older.id, newer.id]
    assert [c.title for c in await store.list_conversations("user-2")] == ["Someone else's"]


@pytest.mark.asyncio
async def test_delete_conversation_removes_messages(store):
    conversation = await store.create_conversation("user-1", "Gone")
    await store.save_message(conversation.id, Message(role="user", content="hi"))

    assert await store.delete_conversation(conversation.id) is True
    assert await store.get_conversation(conversation.id) is None
    assert await store.load_messages(conversation.id) == []
    assert await store.delete_conversation(conversation.id) is False


@pytest.mark.asyncio
async def test_blank_title_defaults_to_untitled(store):
    conversation = await store.create_conversation("user-1", "")
    assert conversation.title == "Untitled"
