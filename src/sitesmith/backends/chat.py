"""Streaming chat backend."""

import logging
from typing import AsyncGenerator, List

import httpx

from .base import GenerationBackend, status_error
from ..exceptions import BackendError
from ..models.messages import Message

logger = logging.getLogger(__name__)


class ChatBackend(GenerationBackend):
    """Posts the conversation to the chat endpoint and yields the raw event stream."""

    endpoint = "chat"

    async def stream(self, messages: List[Message]) -> AsyncGenerator[bytes, None]:
        """
        Yield body chunks exactly as they arrive.

        Raises:
            BackendError: Transport failure before or during the stream
            BackendStatusError: Non-2xx response
        """
        client = await self.get_client()
        body = {"messages": [m.to_api() for m in messages]}

        logger.debug(f"Streaming chat with {len(messages)} message(s) from {self.url}")
        try:
            async with client.stream(
                "POST", self.url, json=body, headers=self._headers()
            ) as response:
                if not response.is_success:
                    raise status_error(response.status_code, await response.aread())

                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as e:
            logger.error(f"Chat stream failed: {e}")
            raise BackendError(detail=str(e)) from e
