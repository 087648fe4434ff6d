from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKEND_DIR = Path(__file__).resolve().parents[1]
BACKEND_ENV_FILE = BACKEND_DIR / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BLOCKSCHED_",
        env_file=str(BACKEND_ENV_FILE),
        env_file_encoding="utf-8",
    )

    project_name: str = "Block Scheduler API"
    database_url: str = f"sqlite:///{BACKEND_DIR / 'scheduler.db'}"

    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    history_backend: str = "database"
    history_dir: str = str(BACKEND_DIR / "history")
    history_key: str = "teaching_assignments_history_v1"

    academic_year: str = ""
    semester: str = ""
    enforce_subject_eligibility: bool = False

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("history_backend")
    @classmethod
    def check_history_backend(cls, value: str) -> str:
        cleaned = value.strip().lower()
        if cleaned not in {"database", "file"}:
            raise ValueError("history_backend must be 'database' or 'file'")
        return cleaned


@lru_cache
def get_settings() -> Settings:
    return Settings()
