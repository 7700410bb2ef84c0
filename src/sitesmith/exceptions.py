"""Custom exception classes for Sitesmith."""

from typing import Optional


class SiteSmithError(Exception):
    """Base exception for Sitesmith errors."""

    def __init__(self, message: str, code: str = "internal", detail: str = ""):
        self.message = message
        self.code = code
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict:
        """Render as a WebSocket error message."""
        return {
            "type": "error",
            "code": self.code,
            "message": self.message,
            "detail": self.detail or None,
        }


class BackendError(SiteSmithError):
    """Transport failure while talking to a generation backend."""

    def __init__(self, message: str = "Could not reach the generation service", detail: str = ""):
        super().__init__(message, code="backend_unavailable", detail=detail)


class BackendStatusError(BackendError):
    """Generation backend answered with a non-success status."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"Request failed with status {status_code}")
        self.code = "backend_status"


class EmptyPromptError(SiteSmithError):
    """Prompt was blank."""

    def __init__(self, message: str = "Please describe the website you want to create."):
        super().__init__(message, code="invalid_request")


class GenerationFailedError(SiteSmithError):
    """Asynchronous generation job reached the failed state."""

    def __init__(self, message: str = "Video generation failed", detail: str = ""):
        super().__init__(message, code="generation_failed", detail=detail)


class PollTimeoutError(SiteSmithError):
    """Job did not reach a terminal state within the allowed attempts."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Generation did not finish after {attempts} status checks",
            code="generation_timeout",
        )


class SessionError(SiteSmithError):
    """Errors related to session management."""

    pass


class SessionBusyError(SessionError):
    """Another operation is already in flight for this session."""

    def __init__(self):
        super().__init__(
            "A generation is already in progress. Please wait for it to finish.",
            code="session_busy",
        )


class SessionNotFoundError(SessionError):
    """Session not found."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}", code="session_not_found")


class ConversationNotFoundError(SiteSmithError):
    """Persisted conversation not found."""

    def __init__(self, conversation_id: str):
        super().__init__(
            f"Conversation not found: {conversation_id}",
            code="conversation_not_found",
        )


class ConnectionError(SiteSmithError):
    """Errors related to WebSocket connections."""

    pass


class InvalidOriginError(ConnectionError):
    """Invalid WebSocket origin."""

    def __init__(self, origin: str):
        super().__init__(f"Invalid origin: {origin}", code="invalid_origin")


class ConnectionLimitError(ConnectionError):
    """Connection limit reached."""

    def __init__(self, limit: int):
        super().__init__(
            f"Connection limit reached: {limit} concurrent connections",
            code="connection_limit",
        )
