from functools import lru_cache
from typing import Optional

from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings


class ConfigError(Exception):
    """Fatal startup error: the bot cannot run with the given configuration."""


class Settings(BaseSettings):
    # Telegram
    telegram_bot_token: str
    telegram_webhook_secret: str = ""  # Optional: for webhook verification

    # Ollama
    ollama_base_url: str = "http://ollama:11434"
    ollama_model: str = ""
    ollama_timeout: float = 300.0  # seconds, per backend call
    ollama_stream: bool = False  # accepted but ignored, replies are never streamed

    # Whitelist
    bot_auth_enabled: bool = False
    bot_admin_id: Optional[int] = None
    bot_auth_db_path: str = "/var/lib/ollamabot/bot_users.db"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("bot_auth_enabled", mode="before")
    @classmethod
    def _parse_auth_flag(cls, value):
        # Only 1/true/yes enable the whitelist, anything else leaves the bot open
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes")
        return value

    @field_validator("bot_admin_id", mode="before")
    @classmethod
    def _empty_admin_id(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("ollama_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _check_admin(self) -> "Settings":
        if not self.telegram_bot_token.strip():
            raise ValueError("TELEGRAM_BOT_TOKEN is not set")
        if self.bot_auth_enabled and not self.bot_admin_id:
            raise ValueError("auth enabled but BOT_ADMIN_ID is not set")
        if self.ollama_timeout <= 0:
            raise ValueError("OLLAMA_TIMEOUT must be positive")
        return self


@lru_cache()
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
