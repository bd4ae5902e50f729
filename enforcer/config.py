"""
Configuration - environment-driven settings for the review engine.

Values come from environment variables (optionally loaded from a `.env` file).
Every getter reads the environment at call time so tests can override them
with monkeypatch.

Variables:
    DATABASE_URL                SQLAlchemy URL of the local card store
    TEST_MODE                   "true" swaps words.db for test_words.db
    MONGO_URI / MONGO_DB_NAME   remote canonical copy
    REMOTE_TIMEOUT_MS           timeout for every remote call
    SESSION_*                   review session pacing (see SessionConfig)
    ISSUES_PATH                 JSON-lines file for reported issues
    LOG_LEVEL / LOG_SQL_PATH    logging
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment
load_dotenv()

# Defaults
DATA_DIR = Path("data")
DEFAULT_DATABASE_URL = f"sqlite:///{DATA_DIR / 'words.db'}"
DEFAULT_MONGO_DB_NAME = "language_enforcer"
DEFAULT_REMOTE_TIMEOUT_MS = 15000
DEFAULT_ISSUES_PATH = DATA_DIR / "reported_issues.jsonl"

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def is_test_mode() -> bool:
    """Check if running in test mode."""
    return os.getenv("TEST_MODE", "false").lower() == "true"


def get_database_url() -> str:
    """
    Get the card store URL from the environment.

    Falls back to a SQLite file under ./data. In test mode the database file
    name `words.db` is replaced by `test_words.db`, the same way the
    production database name is swapped for its test twin.

    Returns:
        SQLAlchemy database URL
    """
    url = os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
    if is_test_mode():
        url = url.replace("words.db", "test_words.db")
    return url


def get_mongo_uri() -> str:
    """Get the remote MongoDB URI. Raises ValueError if unset."""
    mongo_uri = os.getenv("MONGO_URI")
    if not mongo_uri:
        raise ValueError("MONGO_URI not found in environment variables")
    return mongo_uri


def get_mongo_db_name() -> str:
    return os.getenv("MONGO_DB_NAME", DEFAULT_MONGO_DB_NAME)


def get_remote_timeout_ms() -> int:
    return _env_int("REMOTE_TIMEOUT_MS", DEFAULT_REMOTE_TIMEOUT_MS)


def get_issues_path() -> Path:
    return Path(os.getenv("ISSUES_PATH", str(DEFAULT_ISSUES_PATH)))


@dataclass(frozen=True)
class SessionConfig:
    """
    Pacing of one review session.

    max_cards caps how many cards one Active run serves before the learner is
    asked whether to continue. None disables the optional limits.
    """
    max_cards: int = 10
    max_new_cards: int = 10
    stop_after_correct: Optional[int] = None
    max_minutes: Optional[int] = None

    def __post_init__(self):
        if self.max_cards < 1:
            raise ValueError("max_cards must be at least 1")
        if self.max_new_cards < 0:
            raise ValueError("max_new_cards must not be negative")

    @classmethod
    def from_env(cls) -> "SessionConfig":
        """Build a SessionConfig from SESSION_* environment variables."""
        return cls(
            max_cards=_env_int("SESSION_MAX_CARDS", 10),
            max_new_cards=_env_int("SESSION_MAX_NEW_CARDS", 10),
            stop_after_correct=_env_int("SESSION_STOP_AFTER_CORRECT", None),
            max_minutes=_env_int("SESSION_MAX_MINUTES", None),
        )


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the `enforcer` logger.

    LOG_LEVEL sets the level (default WARNING). When LOG_SQL_PATH is set,
    records are also appended to that file, together with the statements
    emitted by `sqlalchemy.engine`.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "WARNING")).upper()
    root = logging.getLogger("enforcer")
    root.setLevel(level_name)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    sql_log_path = os.getenv("LOG_SQL_PATH")
    if sql_log_path:
        sql_logger = logging.getLogger("sqlalchemy.engine")
        sql_logger.setLevel(logging.INFO)

        target = os.path.abspath(sql_log_path)
        file_handler = next(
            (
                handler for handler in root.handlers
                if isinstance(handler, logging.FileHandler) and handler.baseFilename == target
            ),
            None,
        )
        if file_handler is None:
            file_handler = logging.FileHandler(sql_log_path, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(file_handler)
        if file_handler not in sql_logger.handlers:
            sql_logger.addHandler(file_handler)
