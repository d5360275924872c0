from __future__ import annotations

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field("sqlite:///habitlog.db", alias="DATABASE_URL")
    google_token_encryption_key: str | None = Field(None, alias="GOOGLE_TOKEN_ENCRYPTION_KEY")
    backend_session_secret: str | None = Field(None, alias="BACKEND_SESSION_SECRET")

    drive_client_id: str | None = Field(None, alias="DRIVE_CLIENT_ID")
    drive_client_secret: str | None = Field(None, alias="DRIVE_CLIENT_SECRET")
    drive_redirect_uri: str | None = Field(None, alias="DRIVE_REDIRECT_URI")
    drive_document_name: str = Field("Bad Habits Data", alias="DRIVE_DOCUMENT_NAME")

    ai_insights_enabled: bool = Field(False, alias="AI_INSIGHTS_ENABLED")
    log_level: str = Field("INFO", alias="HABITLOG_LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def drive_configured(self) -> bool:
        return bool(self.drive_client_id and self.drive_client_secret and self.drive_redirect_uri)


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


# For local dev convenience only.
if os.getenv("HABITLOG_DEBUG_SETTINGS"):
    print(get_settings())
