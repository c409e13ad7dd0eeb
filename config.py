"""Application-wide configuration helpers and constants."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Final

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


def _coerce_flag(value: str | None, default: bool) -> bool:
    """Return ``True``/``False`` for flag-like strings, ``default`` when unset."""

    text = _clean_text(value).lower()
    if not text:
        return default
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


COVERS_DIR_PATH: Final[Path] = _path_from(
    os.environ.get("COVERS_DIR"), BASE_DIR / "covers"
)
COVERS_DIR: Final[str] = os.fspath(COVERS_DIR_PATH)

LOG_DIR_PATH: Final[Path] = _path_from(os.environ.get("LOG_DIR"), BASE_DIR / "logs")
LOG_DIR: Final[str] = os.fspath(LOG_DIR_PATH)
LOG_FILE_PATH: Final[Path] = _path_from(
    os.environ.get("LOG_FILE"), LOG_DIR_PATH / "game_log.log"
)
LOG_FILE: Final[str] = os.fspath(LOG_FILE_PATH)


def _build_db_dsn() -> str:
    """Return the configured DSN, defaulting to a SQLite file beside the app."""

    override = _clean_text(os.environ.get("DB_DSN"))
    if override:
        return override
    sqlite_path = _path_from(None, BASE_DIR / "game_log.db").resolve()
    return f"sqlite:///{sqlite_path.as_posix()}"


DB_DSN: Final[str] = _build_db_dsn()
DB_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("DB_TIMEOUT"), 10.0
)

DEFAULT_IGDB_USER_AGENT: Final[str] = "Game-Log/1.0 (support@example.com)"
IGDB_USER_AGENT: Final[str] = (
    _clean_text(os.environ.get("IGDB_USER_AGENT")) or DEFAULT_IGDB_USER_AGENT
)

IGDB_CLIENT_ID: Final[str] = _clean_text(
    os.environ.get("IGDB_CLIENT_ID") or os.environ.get("TWITCH_CLIENT_ID")
)
IGDB_CLIENT_SECRET: Final[str] = _clean_text(
    os.environ.get("IGDB_CLIENT_SECRET") or os.environ.get("TWITCH_CLIENT_SECRET")
)

IGDB_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("IGDB_TIMEOUT"), 30.0
)
IGDB_SEARCH_DEFAULT_LIMIT: Final[int] = _coerce_positive_int(
    os.environ.get("IGDB_SEARCH_DEFAULT_LIMIT"), 20
)
IGDB_SEARCH_MAX_LIMIT: Final[int] = _coerce_positive_int(
    os.environ.get("IGDB_SEARCH_MAX_LIMIT"), 50
)
IGDB_SEARCH_ERRORS_AS_EMPTY: Final[bool] = _coerce_flag(
    os.environ.get("IGDB_SEARCH_ERRORS_AS_EMPTY"), False
)

ALLOW_NEW_STATUS_TERMS: Final[bool] = _coerce_flag(
    os.environ.get("ALLOW_NEW_STATUS_TERMS"), True
)
COVER_THUMBNAIL_SIZE: Final[int] = _coerce_positive_int(
    os.environ.get("COVER_THUMBNAIL_SIZE"), 300
)

APP_SECRET_KEY: Final[str] = _clean_text(os.environ.get("APP_SECRET_KEY")) or "dev-secret"
APP_PASSWORD: Final[str] = _clean_text(os.environ.get("APP_PASSWORD")) or "password"


def default_settings() -> dict[str, Any]:
    """Return the environment-derived settings copied into ``app.config``."""

    return {
        "DB_DSN": DB_DSN,
        "DB_TIMEOUT_SECONDS": DB_TIMEOUT_SECONDS,
        "COVERS_DIR": COVERS_DIR,
        "LOG_FILE": LOG_FILE,
        "IGDB_CLIENT_ID": IGDB_CLIENT_ID,
        "IGDB_CLIENT_SECRET": IGDB_CLIENT_SECRET,
        "IGDB_USER_AGENT": IGDB_USER_AGENT,
        "IGDB_TIMEOUT_SECONDS": IGDB_TIMEOUT_SECONDS,
        "IGDB_SEARCH_DEFAULT_LIMIT": IGDB_SEARCH_DEFAULT_LIMIT,
        "IGDB_SEARCH_MAX_LIMIT": IGDB_SEARCH_MAX_LIMIT,
        "IGDB_SEARCH_ERRORS_AS_EMPTY": IGDB_SEARCH_ERRORS_AS_EMPTY,
        "ALLOW_NEW_STATUS_TERMS": ALLOW_NEW_STATUS_TERMS,
        "COVER_THUMBNAIL_SIZE": COVER_THUMBNAIL_SIZE,
        "APP_SECRET_KEY": APP_SECRET_KEY,
        "APP_PASSWORD": APP_PASSWORD,
    }


def validate_igdb_credentials(
    client_id: str | None = None, client_secret: str | None = None
) -> bool:
    """Warn about missing IGDB credentials; return whether both are present."""

    resolved_id = IGDB_CLIENT_ID if client_id is None else _clean_text(client_id)
    resolved_secret = (
        IGDB_CLIENT_SECRET if client_secret is None else _clean_text(client_secret)
    )
    missing = [
        name
        for name, value in (
            ("IGDB_CLIENT_ID", resolved_id),
            ("IGDB_CLIENT_SECRET", resolved_secret),
        )
        if not value
    ]

    if missing:
        logger.warning(
            "Missing IGDB credentials; set %s or save them in settings.",
            " and ".join(missing),
        )

    return not missing


def _validate_settings() -> None:
    """Sanity-check critical configuration values."""

    if not APP_SECRET_KEY:
        raise RuntimeError("APP_SECRET_KEY must not be empty")
    if not APP_PASSWORD:
        raise RuntimeError("APP_PASSWORD must not be empty")
    if IGDB_SEARCH_DEFAULT_LIMIT > IGDB_SEARCH_MAX_LIMIT:
        raise RuntimeError(
            "IGDB_SEARCH_DEFAULT_LIMIT must not exceed IGDB_SEARCH_MAX_LIMIT"
        )


_validate_settings()


__all__ = [
    "ALLOW_NEW_STATUS_TERMS",
    "APP_PASSWORD",
    "APP_SECRET_KEY",
    "BASE_DIR",
    "COVERS_DIR",
    "COVERS_DIR_PATH",
    "COVER_THUMBNAIL_SIZE",
    "DB_DSN",
    "DB_TIMEOUT_SECONDS",
    "DEFAULT_IGDB_USER_AGENT",
    "IGDB_CLIENT_ID",
    "IGDB_CLIENT_SECRET",
    "IGDB_SEARCH_DEFAULT_LIMIT",
    "IGDB_SEARCH_ERRORS_AS_EMPTY",
    "IGDB_SEARCH_MAX_LIMIT",
    "IGDB_TIMEOUT_SECONDS",
    "IGDB_USER_AGENT",
    "LOG_DIR",
    "LOG_DIR_PATH",
    "LOG_FILE",
    "LOG_FILE_PATH",
    "default_settings",
    "validate_igdb_credentials",
]
