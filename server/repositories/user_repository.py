"""User repository for database operations."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from server.database import get_db_connection, storage_errors
from server.utils import generate_uuid, parse_timestamp

logger = get_logger(__name__)


@dataclass
class User:
    user_id: str
    provider: str
    provider_account_id: str
    name: Optional[str]
    email: Optional[str]
    image: Optional[str]
    created_at: datetime


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        user_id=row["user_id"],
        provider=row["provider"],
        provider_account_id=row["provider_account_id"],
        name=row["name"],
        email=row["email"],
        image=row["image"],
        created_at=parse_timestamp(row["created_at"]),
    )


class UserRepository:
    @staticmethod
    def upsert_from_provider(
        provider: str,
        provider_account_id: str,
        name: Optional[str],
        email: Optional[str],
        image: Optional[str],
        created_at: datetime,
    ) -> User:
        """
        Return the user linked to a provider account, creating it on first sign-in.

        An existing user is returned unchanged; profile fields are only
        recorded when the user is created.
        """
        with storage_errors("user sign-in"), get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR IGNORE INTO users
                (user_id, provider, provider_account_id, name, email, image, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (generate_uuid(), provider, provider_account_id, name, email, image, created_at.isoformat())
            )
            created = cursor.rowcount > 0
            conn.commit()

            cursor.execute(
                """
                SELECT user_id, provider, provider_account_id, name, email, image, created_at
                FROM users WHERE provider = ? AND provider_account_id = ?
                """,
                (provider, provider_account_id)
            )
            row = cursor.fetchone()

        user = _row_to_user(row)
        if created:
            logger.info(f"User created from {provider} account [user_id={user.user_id}]")
        else:
            logger.debug(f"Existing user signed in [user_id={user.user_id}]")
        return user
