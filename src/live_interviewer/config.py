"""
Application configuration using pydantic-settings.

Loads configuration from environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Realtime voice backend (Gemini Live)
    gemini_api_key: str = Field(
        default="",
        description="Default API key for the realtime voice backend",
    )
    live_model: str = Field(
        default="gemini-2.5-flash-native-audio-preview-09-2025",
        description="Model used for realtime voice sessions",
    )
    live_voice: str = Field(
        default="Zephyr",
        description="Prebuilt voice name requested at session open",
    )
    live_output_transcription: bool = Field(
        default=True,
        description="Ask the voice backend for a transcript of its spoken output",
    )

    # Streaming text backend (chat-completions style)
    text_endpoint: str = Field(
        default="https://ark.cn-beijing.volces.com/api/v3/chat/completions",
        description="Chat-completions endpoint used by the streaming text backend",
    )
    text_model: str = Field(
        default="",
        description="Default model/endpoint id for the streaming text backend",
    )
    text_api_key: str = Field(
        default="",
        description="Default bearer key for the streaming text backend",
    )
    text_request_timeout_s: float = Field(
        default=60.0,
        description="Timeout in seconds for a single streamed chat request",
    )

    # Session
    connect_timeout_s: float = Field(
        default=15.0,
        description="How long a session may stay in 'connecting' before it fails",
    )
    capture_block_size: int = Field(
        default=4096,
        description="Microphone frames per captured block",
    )

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
