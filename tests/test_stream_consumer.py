"""Tests for the chat event stream consumer."""

import json

import pytest
from sitesmith.stream_consumer import (
    DONE,
    SSELineDecoder,
    StreamConsumer,
    extract_delta,
    parse_event_line,
)


def record(content: str) -> str:
    """One SSE data line carrying a chat-completion delta."""
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def chunks_of(*parts):
    for part in parts:
        yield part


# Line decoding

def test_decoder_holds_partial_line():
    decoder = SSELineDecoder()
    assert decoder.feed(b"data: {\"a\"") == []
    assert decoder.feed(b": 1}\n") == ['data: {"a": 1}']


def test_decoder_strips_carriage_return():
    decoder = SSELineDecoder()
    assert decoder.feed(b"data: x\r\n\r\n") == ["data: x", ""]


def test_decoder_handles_split_multibyte_character():
    """A UTF-8 sequence split across chunks decodes to one character."""
    encoded = "café\n".encode("utf-8")
    split = encoded.index(b"\xc3") + 1  # between the two bytes of "é"
    decoder = SSELineDecoder()
    assert decoder.feed(encoded[:split]) == []
    assert decoder.feed(encoded[split:]) == ["café"]


def test_decoder_flush_returns_unterminated_tail():
    decoder = SSELineDecoder()
    decoder.feed(b"data: [DONE]")
    assert decoder.flush() == ["data: [DONE]"]
    assert decoder.flush() == []


# Line classification

@pytest.mark.parametrize("line", ["", ": keepalive", "event: message", "id: 7", "data:{}"])
def test_non_data_lines_are_skipped(line):
    assert parse_event_line(line) is None


def test_done_sentinel():
    assert parse_event_line("data: [DONE]") is DONE
    assert parse_event_line("data:  [DONE]  ") is DONE


def test_malformed_json_is_skipped():
    assert parse_event_line("data: {not json") is None


def test_valid_payload_is_decoded():
    assert parse_event_line('data: {"choices": []}') == {"choices": []}


def test_extract_delta_shapes():
    assert extract_delta({"choices": [{"delta": {"content": "hi"}}]}) == "hi"
    assert extract_delta({"choices": [{"delta": {"role": "assistant"}}]}) == ""
    assert extract_delta({"choices": []}) == ""
    assert extract_delta({"error": "boom"}) == ""
    assert extract_delta({"choices": [{"delta": {"content": None}}]}) == ""


# Whole-stream consumption

@pytest.mark.asyncio
async def test_accumulates_deltas_and_extracts_document():
    """Chat reply with an embedded fenced document."""
    content = "Hello ```html\n<!DOCTYPE html><html></html>\n```"
    stream = record(content) + "data: [DONE]\n\n"

    consumer = StreamConsumer()
    text = await consumer.consume(chunks_of(stream.encode("utf-8")))

    assert text == content
    assert consumer.document == "<!DOCTYPE html><html></html>"
    assert consumer.done


@pytest.mark.asyncio
async def test_chunk_boundaries_do_not_change_result():
    """Splitting mid-line and mid-character yields the same text."""
    stream = (record("Bonjour, ") + ": ping\n\n" + record("ça va? 🎉") + "data: [DONE]\n\n").encode("utf-8")

    whole = StreamConsumer()
    await whole.consume(chunks_of(stream))

    # Split inside the second "data: " prefix and inside the emoji
    cut_line = stream.index(b"data: ", 10) + 3
    cut_char = stream.index("🎉".encode("utf-8")) + 2
    pieces = [stream[:cut_line], stream[cut_line:cut_char], stream[cut_char:]]

    split = StreamConsumer()
    await split.consume(chunks_of(*pieces))

    assert split.text == whole.text == "Bonjour, ça va? 🎉"


@pytest.mark.asyncio
async def test_byte_at_a_time():
    stream = (record("héllo ") + record("wörld") + "data: [DONE]\n\n").encode("utf-8")
    consumer = StreamConsumer()
    await consumer.consume(chunks_of(*[stream[i:i + 1] for i in range(len(stream))]))
    assert consumer.text == "héllo wörld"


@pytest.mark.asyncio
async def test_done_stops_processing_later_lines():
    stream = record("kept") + "data: [DONE]\n\n" + record(" ignored")
    consumer = StreamConsumer()
    text = await consumer.consume(chunks_of(stream.encode("utf-8")))
    assert text == "kept"


@pytest.mark.asyncio
async def test_malformed_record_does_not_abort_stream():
    stream = record("one ") + "data: {not json\n\n" + record("two") + "data: [DONE]\n\n"
    consumer = StreamConsumer()
    text = await consumer.consume(chunks_of(stream.encode("utf-8")))
    assert text == "one two"


@pytest.mark.asyncio
async def test_final_line_without_newline_is_processed():
    stream = record("a") + 'data: {"choices":[{"delta":{"content":"b"}}]}'
    consumer = StreamConsumer()
    text = await consumer.consume(chunks_of(stream.encode("utf-8")))
    assert text == "ab"


@pytest.mark.asyncio
async def test_on_delta_reports_growing_text_and_document():
    calls = []

    async def on_delta(text, document):
        calls.append((text, document))

    stream = (
        record("Here: <!DOCTYPE html><html>")
        + record("<p>x</p></html>")
        + record(" done")
        + "data: [DONE]\n\n"
    )
    consumer = StreamConsumer(on_delta=on_delta)
    await consumer.consume(chunks_of(stream.encode("utf-8")))

    assert [c[0] for c in calls] == [
        "Here: <!DOCTYPE html><html>",
        "Here: <!DOCTYPE html><html><p>x</p></html>",
        "Here: <!DOCTYPE html><html><p>x</p></html> done",
    ]
    # No document until the span is complete, then it stays put
    assert calls[0][1] == ""
    assert calls[1][1] == calls[2][1] == "<!DOCTYPE html><html><p>x</p></html>"


@pytest.mark.asyncio
async def test_empty_deltas_do_not_trigger_callback():
    calls = []

    async def on_delta(text, document):
        calls.append(text)

    stream = 'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n' + record("") + record("x")
    consumer = StreamConsumer(on_delta=on_delta)
    await consumer.consume(chunks_of(stream.encode("utf-8")))
    assert calls == ["x"]
