from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    cors_origins: str = "*"

    openai_api_key: str | None = None
    openai_base_url: str | None = "https://api.openai.com/v1"
    request_timeout_seconds: float = 60.0

    model: str = "gpt-4o-mini"
    assistant_instructions: str = (
        "You are a helpful assistant. Answer questions about the attached "
        "document when one is provided, and keep your answers concise."
    )
    file_purpose: str = "assistants"

    run_poll_interval_seconds: float = 1.0
    run_poll_timeout_seconds: float = 120.0

    # False keeps the upload stage fatal when no file is given.
    allow_missing_file: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )


def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    global _SETTINGS
    try:
        return _SETTINGS
    except NameError:
        _SETTINGS = Settings()
        return _SETTINGS
