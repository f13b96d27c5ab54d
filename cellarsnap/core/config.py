from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DB_URL: str
    REDIS_URL: str | None = None

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_COOKIE_NAME: str = "access_token"

    # Store calls are network round-trips; each one is bounded.
    STORE_TIMEOUT_SECONDS: float = 5.0
    RELATIONSHIP_HISTORY_LIMIT: int = 10
    FRIEND_SUGGESTION_LIMIT: int = 5
    FEED_PAGE_SIZE: int = 50

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_BACKEND: str = Field(
        default="memory",
        validation_alias=AliasChoices("RATE_LIMIT_BACKEND", "RATE_LIMITER"),
    )
    RATE_LIMIT_SWEEP_THRESHOLD: int = 500

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = [
        "https://cellarsnap.app",
        "https://www.cellarsnap.app",
    ]

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[1].parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
