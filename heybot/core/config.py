"""Unified configuration via pydantic-settings."""

import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HeybotConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HEYBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Identity
    name: str = "Heybot"
    alias: str | None = None

    # Adapter: a built-in name ("shell") or "package.module:attribute"
    adapter: str = "shell"

    # Logging
    log_level: str = "INFO"
    log_dir: Path | None = None
    log_max_bytes: int = 10_485_760
    log_backup_count: int = 5

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @field_validator("alias", mode="before")
    @classmethod
    def blank_alias_is_none(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return level
