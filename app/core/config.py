"""Unified configuration for the ERP voice proxy."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
    )

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    # Database
    db_path: str = "app/data/erpvoice.db"

    # Logs
    log_rotate_mb: int = 5
    log_retention_days: int = 7
    mask_secrets_patterns: str = "api_key,api_secret,apikey,apisecret,token,authorization,password"

    # ERPNext upstream
    erp_timeout: float = 30.0
    erp_verify_ssl: bool = True

    # Session defaults
    default_user_id: int = 1
    default_wake_word: str = "Hey ERP"
    default_sensitivity: int = 7
    default_voice_response: bool = True
    default_continuous_listening: bool = False
    default_voice_language: str = "en-US"
    seed_quick_commands: list[str] = [
        "Check inventory for product Plate",
        "Create invoice for customer Administrator",
        "Show open orders",
        "Show contacts",
    ]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls.json_config_settings_source,
            file_secret_settings,
        )

    @staticmethod
    def json_config_settings_source() -> dict[str, object]:
        """Load config.json from the repository root when present."""
        config_path = Path(__file__).resolve().parents[2] / "config.json"
        if config_path.is_file():
            try:
                return json.loads(config_path.read_text())
            except ValueError:
                return {}
        return {}


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
