"""Incremental consumption of a chat-completion event stream."""

import codecs
import json
import logging
from typing import Any, AsyncIterable, Awaitable, Callable, Dict, List, Optional, Union

from .html_extract import extract_html

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_TOKEN = "[DONE]"

# parse_event_line result for the end-of-stream sentinel
DONE = object()

DeltaCallback = Callable[[str, str], Awaitable[None]]


class SSELineDecoder:
    """
    Turns arbitrary byte chunks into complete text lines.

    Decoding is incremental, so a multi-byte character split across two
    chunks is held back until its remaining bytes arrive. Likewise a line
    is only returned once its newline has been seen.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._buffer

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Add a chunk and return the lines it completed, terminators removed."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        lines = []
        while True:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            if line.endswith("\r"):
                line = line[:-1]
            lines.append(line)
        return lines

    def flush(self) -> List[str]:
        """Return whatever is left once the stream has ended."""
        self._buffer += self._decoder.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        if rest.endswith("\r"):
            rest = rest[:-1]
        return [rest] if rest else []


def parse_event_line(line: str) -> Union[None, object, Dict[str, Any]]:
    """
    Classify one stream line.

    Returns None for lines to skip (blank, comments, other fields, malformed
    JSON), DONE for the terminator, or the decoded JSON payload.
    """
    if not line or line.startswith(":"):
        return None
    if not line.startswith(DATA_PREFIX):
        return None

    data = line[len(DATA_PREFIX):].strip()
    if data == DONE_TOKEN:
        return DONE

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        logger.warning(f"Skipping malformed stream record: {e} | {data[:100]}")
        return None
    if not isinstance(payload, dict):
        logger.warning(f"Skipping non-object stream record: {data[:100]}")
        return None
    return payload


def extract_delta(payload: Dict[str, Any]) -> str:
    """Content delta from a chat-completion chunk (choices[0].delta.content)."""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


class StreamConsumer:
    """
    Accumulates assistant text from an event stream.

    After each delta the accumulated text is searched for a complete HTML
    document; ``document`` holds the latest one found ("" until then) and is
    never replaced by an incomplete extraction.
    """

    def __init__(self, on_delta: Optional[DeltaCallback] = None):
        self.on_delta = on_delta
        self.text = ""
        self.document = ""
        self.done = False
        self._decoder = SSELineDecoder()

    async def feed(self, chunk: Union[bytes, str]) -> None:
        """Process one chunk of the wire stream."""
        if self.done:
            return
        for line in self._decoder.feed(chunk):
            await self._handle_line(line)
            if self.done:
                break

    async def finish(self) -> None:
        """Process a final unterminated line, if any."""
        if self.done:
            return
        for line in self._decoder.flush():
            await self._handle_line(line)
        self.done = True

    async def consume(self, chunks: AsyncIterable[bytes]) -> str:
        """Read the whole stream and return the accumulated text."""
        # Drained to the end so the upstream response is released
        async for chunk in chunks:
            await self.feed(chunk)
        await self.finish()
        return self.text

    async def _handle_line(self, line: str) -> None:
        event = parse_event_line(line)
        if event is None:
            return
        if event is DONE:
            logger.debug("Stream terminator received")
            self.done = True
            return

        delta = extract_delta(event)
        if not delta:
            return

        self.text += delta
        html = extract_html(self.text)
        if html:
            self.document = html

        if self.on_delta:
            await self.on_delta(self.text, self.document)
