"""Server-side generation functions called by the conversation backends."""

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from .chat import router as chat_router
from .deps import validation_error_handler
from .generate_video import router as video_router

__all__ = ["chat_router", "video_router", "install_functions"]


def install_functions(app: FastAPI) -> None:
    """Mount the chat and video functions with their error format."""
    app.include_router(chat_router)
    app.include_router(video_router)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
