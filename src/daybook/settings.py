from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/daybook.db'
    - SQLITE_BUSY_TIMEOUT_MS: busy timeout applied to every sqlite connection (default: 5000)
    - DB_ECHO: 'true' to echo SQL statements (default: false)
    - LOG_LEVEL: logging threshold name (default: INFO)
    - LOG_FORMAT: 'console' (default) or 'json'
    """

    persistence_backend: str
    sqlite_db_path: str
    sqlite_busy_timeout_ms: int
    db_echo: bool
    log_level: str
    log_format: str


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/daybook.db").strip()
    busy_timeout = _parse_int(_get_env("SQLITE_BUSY_TIMEOUT_MS", "5000"), 5000)
    db_echo = _parse_bool(_get_env("DB_ECHO", "false"), False)

    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()
    log_format = _get_env("LOG_FORMAT", "console").strip().lower()
    if log_format not in {"console", "json"}:
        log_format = "console"

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        sqlite_busy_timeout_ms=busy_timeout,
        db_echo=db_echo,
        log_level=log_level,
        log_format=log_format,
    )
