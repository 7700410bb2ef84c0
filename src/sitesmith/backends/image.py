"""Image generation backend."""

import logging
from typing import List

from .base import GenerationBackend
from ..exceptions import BackendError
from ..models.messages import Message

logger = logging.getLogger(__name__)


class ImageBackend(GenerationBackend):
    """Asks the chat endpoint for an image instead of text."""

    endpoint = "chat"

    async def generate(self, messages: List[Message]) -> str:
        """Return the URL of an image generated from the conversation."""
        data = await self._post_json(
            {"messages": [m.to_api() for m in messages], "generateImage": True}
        )
        image_url = data.get("imageUrl")
        if not isinstance(image_url, str) or not image_url:
            raise BackendError("No image was returned")
        logger.info("Image generated")
        return image_url
