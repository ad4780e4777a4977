from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    database_url: str = ""
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_max_bytes: int = 2_000_000
    log_backup_count: int = 3
    lookahead_days: int = 30
    max_lookahead_days: int = 365

    def require_database_url(self) -> str:
        if not self.database_url:
            raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")
        return self.database_url


load_env()

SETTINGS = Settings(
    database_url=os.getenv("DATABASE_URL", "").strip(),
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_dir=os.getenv("LOG_DIR", "logs"),
    log_max_bytes=int(os.getenv("LOG_MAX_BYTES", "2000000")),
    log_backup_count=int(os.getenv("LOG_BACKUP_COUNT", "3")),
    lookahead_days=int(os.getenv("LOOKAHEAD_DAYS", "30")),
    max_lookahead_days=int(os.getenv("MAX_LOOKAHEAD_DAYS", "365")),
)
