from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


DEFAULT_DB_PATH = Path("data") / "pm.sqlite3"


@dataclass(frozen=True)
class Settings:
    db_path: Path = DEFAULT_DB_PATH
    host: str = "127.0.0.1"
    port: int = 8000
    cookie_secure: bool = False
    cron_secret: str | None = None
    log_level: str = "INFO"
    log_dir: Path | None = None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    log_dir = env.get("PM_LOG_DIR", "").strip()
    return Settings(
        db_path=Path(env.get("PM_DB_PATH", "").strip() or DEFAULT_DB_PATH),
        host=env.get("PM_HOST", "").strip() or "127.0.0.1",
        port=int(env.get("PM_PORT", "").strip() or 8000),
        cookie_secure=env.get("PM_COOKIE_SECURE") == "1",
        cron_secret=env.get("PM_CRON_SECRET", "").strip() or None,
        log_level=(env.get("PM_LOG_LEVEL", "").strip() or "INFO").upper(),
        log_dir=Path(log_dir) if log_dir else None,
    )
