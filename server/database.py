"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from common.logging_config import get_logger
from server.exceptions import StorageConflictError, StorageUnavailableError

logger = get_logger(__name__)

DATABASE_PATH = "garchomper.db"


def configure_database(path: str) -> None:
    """
    Point all subsequent connections at the given database file.
    """
    global DATABASE_PATH
    DATABASE_PATH = path


def init_database() -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    db_path = Path(DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with storage_errors("initialize database"), get_db_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                provider TEXT NOT NULL,
                provider_account_id TEXT NOT NULL,
                name TEXT,
                email TEXT,
                image TEXT,
                created_at TEXT NOT NULL,
                UNIQUE(provider, provider_account_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                token_hash TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(user_id) REFERENCES users(user_id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS files (
                file_id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                name TEXT NOT NULL,
                kind TEXT NOT NULL CHECK(kind IN ('IMAGE', 'PDF')),
                content TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(owner_id) REFERENCES users(user_id)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_owner ON files(owner_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)
        """)

        conn.commit()

    logger.info(f"Database schema ready [path={DATABASE_PATH}]")


def open_connection() -> sqlite3.Connection:
    """
    Open a connection the caller is responsible for closing.
    """
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = open_connection()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def storage_errors(operation: str) -> Generator[None, None, None]:
    """
    Translate sqlite3 failures into storage exceptions.

    Args:
        operation: Short description used in log lines and error messages
    """
    try:
        yield
    except sqlite3.IntegrityError as e:
        logger.warning(f"Storage conflict during {operation}: {e}")
        raise StorageConflictError(f"Storage rejected {operation}: {e}") from e
    except sqlite3.Error as e:
        logger.error(f"Storage failure during {operation}: {e}", exc_info=True)
        raise StorageUnavailableError(f"Storage unavailable during {operation}") from e
