"""
Scoutlete – Application configuration.
Reads environment variables from a .env file via pydantic-settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── App ──
    APP_NAME: str = "Scoutlete"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Database ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./scoutlete.db"

    # ── Identity provider tokens ──
    SECRET_KEY: str = "change-me-to-a-random-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    IDENTITY_WEBHOOK_SECRET: str = ""

    # ── Conversations ──
    MESSAGE_PAGE_SIZE: int = 100
    ANNOUNCEMENT_PAGE_SIZE: int = 50

    # ── Notifications ──
    NOTIFICATION_PAGE_SIZE: int = 20
    NOTIFICATION_PREVIEW_CHARS: int = 100


settings = Settings()
