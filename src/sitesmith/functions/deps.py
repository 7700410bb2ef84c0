"""Shared dependencies and error responses for the generation functions."""

import logging

import httpx
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import Settings, settings

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    """Settings dependency (overridden in tests)."""
    return settings


async def get_http_client(request: Request) -> httpx.AsyncClient:
    """Upstream HTTP client stored on the application state."""
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        client = httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT)
        request.app.state.http_client = client
    return client


def error_response(status_code: int, message: str) -> JSONResponse:
    """Error body shared by all functions: {"error": message}."""
    return JSONResponse({"error": message}, status_code=status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed request bodies with 400 and a readable message."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "Invalid request: " + "; ".join(problems)
    logger.warning(f"{request.url.path} | {message}")
    return error_response(400, message)
