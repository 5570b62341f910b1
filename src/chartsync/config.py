"""
chartsync Configuration Module

Centralized configuration management using Pydantic Settings.
Supports environment variables and .env files.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChartSyncSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHARTSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    log_json: bool = False

    # Resource fields masked by the log redaction processor
    redact_fields: List[str] = Field(default_factory=lambda: ["name", "telecom", "address", "birthDate"])


class FhirServerSettings(BaseSettings):
    """FHIR server settings."""

    model_config = SettingsConfigDict(
        env_prefix="FHIR_",
        env_file=".env",
        extra="ignore",
    )

    base_url: str = "http://localhost:8080/fhir"
    access_token: SecretStr | None = None
    timeout: float = 30


class EHRSettings(BaseSettings):
    """Session settings for the record being edited."""

    model_config = SettingsConfigDict(
        env_prefix="EHR_",
        env_file=".env",
        extra="ignore",
    )

    patient_id: str = ""
    practitioner_id: str = ""

    # List resource whose entries are the unread resources
    unread_list_id: str | None = None


class Settings:
    """
    Aggregated settings container.

    Usage:
        from chartsync.config import get_settings
        settings = get_settings()
        print(settings.fhir.base_url)
        print(settings.ehr.patient_id)
    """

    def __init__(self):
        self.app = ChartSyncSettings()
        self.fhir = FhirServerSettings()
        self.ehr = EHRSettings()

    @property
    def is_development(self) -> bool:
        return self.app.env == "development"

    @property
    def is_production(self) -> bool:
        return self.app.env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: The application settings
    """
    return Settings()
