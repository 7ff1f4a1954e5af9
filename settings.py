# settings.py
from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process configuration, read from the environment (or a local .env file).
    MONGO_URI is the only required value; without it the API does not start.
    """

    mongo_uri: str = Field(..., alias="MONGO_URI")
    database_name: str = Field("school", alias="DATABASE_NAME")

    # --- Outbound email (SendGrid) ---
    sendgrid_api_key: Optional[str] = Field(None, alias="SENDGRID_API_KEY")
    email_from: str = Field("School Office <no-reply@school.local>", alias="EMAIL_FROM")
    email_timeout: float = Field(10.0, alias="EMAIL_TIMEOUT", gt=0)

    port: int = Field(3000, alias="PORT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def email_enabled(self) -> bool:
        return bool(self.sendgrid_api_key)
