"""Application configuration with environment variable support."""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Priority: ENV > .env.local > .env > defaults
    .env.local is gitignored for local overrides
    """

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # Service configuration
    PROJECT_NAME: str = "Sitesmith"
    DEBUG: bool = False
    HOST: str = "localhost"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # Storage
    DATABASE_PATH: str = ".sitesmith/conversations.db"
    MAX_SESSION_IDLE_MINUTES: int = 30

    # Security
    ALLOWED_ORIGINS: List[str] = ["http://localhost", "http://127.0.0.1"]
    MAX_CONNECTIONS: int = 100

    # WebSocket keepalive configuration
    WS_PING_INTERVAL: int = 25          # Application ping interval (seconds)
    WS_PING_TIMEOUT: int = 30           # Application pong timeout (seconds)
    WS_RECEIVE_TIMEOUT: int = 600       # Max wait for any message (seconds)
    WS_PROTOCOL_PING_INTERVAL: float = 15.0  # Protocol ping interval (seconds)
    WS_PROTOCOL_PING_TIMEOUT: float = 10.0   # Protocol pong timeout (seconds)

    # Generation functions, as seen by the session backends
    FUNCTIONS_BASE_URL: str = "http://localhost:8080/functions/v1"
    FUNCTIONS_API_KEY: Optional[str] = None
    REQUEST_TIMEOUT: float = 120.0

    # Upstream AI gateway (OpenAI-compatible)
    AI_GATEWAY_URL: str = "https://api.openai.com/v1"
    AI_GATEWAY_API_KEY: Optional[str] = None
    CHAT_MODEL: str = "gpt-4o-mini"
    IMAGE_MODEL: str = "dall-e-3"

    # Video generation (Replicate)
    REPLICATE_API_URL: str = "https://api.replicate.com/v1"
    REPLICATE_API_KEY: Optional[str] = None
    VIDEO_MODEL_VERSION: str = "animagine-xl-3.1"
    VIDEO_NUM_FRAMES: int = 25
    VIDEO_GUIDANCE_SCALE: float = 7.5
    VIDEO_POLL_INTERVAL: float = 3.0    # Seconds between status checks
    VIDEO_MAX_POLL_ATTEMPTS: int = 200


# Global settings instance
settings = Settings()
