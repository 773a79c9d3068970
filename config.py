"""Application-wide configuration helpers and constants."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

BASE_DIR: Final[Path] = Path(__file__).resolve().parent

load_dotenv(BASE_DIR / ".env")


logger = logging.getLogger(__name__)


def _clean_text(value: str | None) -> str:
    """Return ``value`` stripped of surrounding whitespace."""

    if value is None:
        return ""
    return value.strip()


def _path_from(env_value: str | None, default: str | Path) -> Path:
    """Resolve a filesystem path using an environment override when provided."""

    text = _clean_text(env_value)
    candidate = Path(text) if text else Path(default)
    candidate = candidate.expanduser()
    if candidate.is_absolute():
        try:
            return candidate.resolve()
        except (OSError, RuntimeError):  # pragma: no cover - fallback for exotic paths
            return candidate
    return candidate


def _coerce_positive_float(value: str | None, default: float) -> float:
    """Return ``value`` coerced to a positive float or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = float(text)
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


def _coerce_positive_int(value: str | None, default: int) -> int:
    """Return ``value`` coerced to a positive integer or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = int(float(text))
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


LOG_DIR_PATH: Final[Path] = _path_from(os.environ.get("LOG_DIR"), BASE_DIR / "logs")
LOG_DIR: Final[str] = os.fspath(LOG_DIR_PATH)
LOG_FILE_PATH: Final[Path] = _path_from(
    os.environ.get("LOG_FILE"), LOG_DIR_PATH / "app.log"
)
LOG_FILE: Final[str] = os.fspath(LOG_FILE_PATH)


def _build_db_dsn() -> str:
    """Return the collections database DSN, defaulting to a local SQLite file."""

    override = _clean_text(os.environ.get("DB_DSN"))
    if override:
        return override
    sqlite_path = _path_from(None, BASE_DIR / "user_collections.db").resolve()
    return f"sqlite:///{sqlite_path.as_posix()}"


DB_DSN: Final[str] = _build_db_dsn()

DEFAULT_IGDB_USER_AGENT: Final[str] = "AeroGames/1.0 (support@example.com)"
IGDB_USER_AGENT: Final[str] = (
    _clean_text(os.environ.get("IGDB_USER_AGENT")) or DEFAULT_IGDB_USER_AGENT
)

IGDB_CLIENT_ID: Final[str] = _clean_text(os.environ.get("IGDB_CLIENT_ID"))
IGDB_CLIENT_SECRET: Final[str] = _clean_text(os.environ.get("IGDB_CLIENT_SECRET"))
IGDB_ENABLED: bool = True

IGDB_REQUEST_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("IGDB_REQUEST_TIMEOUT"), 10.0
)

GAME_CACHE_TTL_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("GAME_CACHE_TTL_SECONDS"), 600.0
)
SEARCH_CACHE_TTL_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("SEARCH_CACHE_TTL_SECONDS"), 300.0
)
CACHE_MAX_ENTRIES: Final[int] = _coerce_positive_int(
    os.environ.get("CACHE_MAX_ENTRIES"), 1024
)

AUTH_URL: Final[str] = _clean_text(os.environ.get("AUTH_URL")).rstrip("/")
AUTH_SERVICE_KEY: Final[str] = _clean_text(os.environ.get("AUTH_SERVICE_KEY"))
AUTH_REQUEST_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("AUTH_REQUEST_TIMEOUT"), 10.0
)

API_BASE_URL: Final[str] = (
    _clean_text(os.environ.get("API_BASE_URL")) or "http://localhost:5000"
).rstrip("/")
API_REQUEST_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("API_REQUEST_TIMEOUT"), 15.0
)

COLLECTION_STORAGE_PATH: Final[Path] = _path_from(
    os.environ.get("COLLECTION_STORAGE_PATH"),
    Path("~/.aerogames/local_storage.json"),
)

SESSION_USER_ID: Final[str] = _clean_text(os.environ.get("AEROGAMES_USER_ID"))
SESSION_ACCESS_TOKEN: Final[str] = _clean_text(os.environ.get("AEROGAMES_ACCESS_TOKEN"))


def validate_igdb_credentials() -> bool:
    """Ensure IGDB credentials are configured and update ``IGDB_ENABLED``."""

    global IGDB_ENABLED

    missing = [
        name
        for name, value in (
            ("IGDB_CLIENT_ID", IGDB_CLIENT_ID),
            ("IGDB_CLIENT_SECRET", IGDB_CLIENT_SECRET),
        )
        if not value
    ]

    IGDB_ENABLED = not missing
    if missing:
        logger.error(
            "Missing required IGDB credentials; set %s.", " and ".join(missing)
        )

    return IGDB_ENABLED


__all__ = [
    "API_BASE_URL",
    "API_REQUEST_TIMEOUT_SECONDS",
    "AUTH_REQUEST_TIMEOUT_SECONDS",
    "AUTH_SERVICE_KEY",
    "AUTH_URL",
    "BASE_DIR",
    "CACHE_MAX_ENTRIES",
    "COLLECTION_STORAGE_PATH",
    "DB_DSN",
    "DEFAULT_IGDB_USER_AGENT",
    "GAME_CACHE_TTL_SECONDS",
    "IGDB_CLIENT_ID",
    "IGDB_CLIENT_SECRET",
    "IGDB_ENABLED",
    "IGDB_REQUEST_TIMEOUT_SECONDS",
    "IGDB_USER_AGENT",
    "LOG_DIR",
    "LOG_DIR_PATH",
    "LOG_FILE",
    "LOG_FILE_PATH",
    "SEARCH_CACHE_TTL_SECONDS",
    "SESSION_ACCESS_TOKEN",
    "SESSION_USER_ID",
    "validate_igdb_credentials",
]
