"""Shared plumbing for the generation backends."""

import asyncio
import json
import logging
from abc import ABC
from typing import Any, Dict, Optional

import httpx

from ..exceptions import BackendError, BackendStatusError

logger = logging.getLogger(__name__)


class GenerationBackend(ABC):
    """
    Base class for clients of the generation functions.

    Each backend posts JSON to one endpoint under ``base_url``. The
    ``httpx.AsyncClient`` is created lazily and may be injected (tests pass
    one built on ``httpx.MockTransport``).
    """

    endpoint: str = ""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._lock = asyncio.Lock()

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.endpoint}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy init)."""
        async with self._lock:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=self.timeout)
                logger.debug(f"Created HTTP client for {self.url}")
            return self._client

    async def _post_json(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST ``body`` and return the decoded JSON response."""
        client = await self.get_client()
        try:
            response = await client.post(self.url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Request to {self.url} failed: {e}")
            raise BackendError(detail=str(e)) from e

        if not response.is_success:
            raise status_error(response.status_code, response.content)

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError("Invalid response from the generation service", detail=str(e)) from e
        if not isinstance(data, dict):
            raise BackendError("Invalid response from the generation service")
        return data

    async def shutdown(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def status_error(status_code: int, body: bytes) -> BackendStatusError:
    """Build the error for a non-2xx response, using its ``error`` field when present."""
    message = None
    try:
        data = json.loads(body or b"{}")
        if isinstance(data, dict) and isinstance(data.get("error"), str):
            message = data["error"]
    except ValueError:
        pass
    logger.error(f"Generation service returned {status_code}: {message or body[:200]!r}")
    return BackendStatusError(status_code, message)
