# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


_DEV_SECRET_KEY = "dev-secret-key-change-me"

DEFAULT_PROFANITY_WORDS: List[str] = [
    "damn",
    "shit",
    "fuck",
    "bitch",
    "bastard",
    "asshole",
]


class Settings(BaseSettings):
    # Auth
    secret_key: SecretStr = Field(
        default=SecretStr(_DEV_SECRET_KEY),
        description="HMAC key used to sign access tokens",
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    environment: str = Field(default="development", description="development|production")
    log_level: str = "INFO"

    # Store
    database_url: str = Field(default="sqlite:///./chat.db", description="SQLAlchemy URL")
    database_echo: bool = False

    # Cross-process relay (Broadcaster)
    redis_url: str = "redis://localhost:6379"
    chat_relay_enabled: bool = Field(
        default=False,
        description="Relay user/room pushes through Broadcaster so every worker delivers them",
    )
    chat_relay_channel: str = "chat-relay"

    # getChat paging
    chat_page_limit: int = Field(default=12, ge=1)
    chat_page_offset: int = Field(default=0, ge=0)
    chat_max_page_limit: int = Field(default=100, ge=1)

    # Content filtering
    # Comma-separated word list, e.g. PROFANITY_WORDS=foo,bar
    profanity_words_raw: str = Field(
        default=",".join(DEFAULT_PROFANITY_WORDS), alias="profanity_words"
    )
    profanity_mask_char: str = "*"

    # CORS
    allowed_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,  # allows SECRET_KEY to match secret_key
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").upper()

    @model_validator(mode="after")
    def _refuse_dev_secret_in_production(self) -> "Settings":
        if self.is_production and self.secret_key.get_secret_value() == _DEV_SECRET_KEY:
            raise ValueError("Refusing to start: SECRET_KEY must be set in production")
        return self

    @property
    def profanity_words(self) -> List[str]:
        return [word.strip().lower() for word in self.profanity_words_raw.split(",") if word.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = Settings()
logger.info(
    "[CONFIG] environment=%s relay_enabled=%s database=%s",
    settings.environment,
    settings.chat_relay_enabled,
    settings.database_url.split("@")[-1],
)
