"""Application settings loaded from environment variables."""

from __future__ import annotations

import pytz
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """CareLog server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; there is no auth layer in front of the tools.
    carelog_host: str = "127.0.0.1"
    carelog_port: int = 8001
    carelog_log_level: str = "info"
    # Binding to a non-loopback host is refused unless this is true.
    carelog_allow_insecure_bind: bool = False

    # Storage (health data bank)
    db_path: str = "~/.carelog/health.db"

    # Encryption. Storage tools are only registered when a key is set.
    encryption_key: str = ""
    # Comma-separated retired keys that can still decrypt old rows.
    previous_encryption_keys: str = ""

    # Owner of records written through the tools
    default_user_id: str = "local"

    # IANA zone used to decide what "today" is for medication doses
    # and which calendar month a reading falls in.
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @property
    def tzinfo(self) -> pytz.BaseTzInfo:
        return pytz.timezone(self.timezone)

    def previous_keys(self) -> list[str]:
        return [k.strip() for k in self.previous_encryption_keys.split(",") if k.strip()]


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
