"""
Application configuration — loads from environment variables.
"""

from __future__ import annotations

import json
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central settings loaded from .env / environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./inventory_manager.db"

    # ── Secure store ─────────────────────────────
    SECURE_STORE_KEY: str = "dev-secure-store-key-change-in-production"

    # ── Auth / session ───────────────────────────
    SESSION_MAX_AGE_DAYS: int = 30
    MIN_PASSWORD_LENGTH: int = 6
    BCRYPT_ROUNDS: int = 12

    # ── Seed admin ───────────────────────────────
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"
    DEFAULT_ADMIN_FULL_NAME: str = "System Administrator"

    # ── App ──────────────────────────────────────
    APP_NAME: str = "Inventory Manager"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "info"
    CORS_ORIGINS: str = '["http://localhost:3000","http://localhost:5173"]'

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS_ORIGINS JSON string into a list."""
        return json.loads(self.CORS_ORIGINS)


# Singleton instance — import this everywhere
settings = Settings()
