"""Session repository for database operations.

Only the keyed hash of a session token is stored; the raw token exists
solely on the client.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from server.database import get_db_connection, storage_errors
from server.utils import parse_timestamp

logger = get_logger(__name__)


@dataclass(frozen=True)
class VerifiedSession:
    """
    A session that resolved to a user; trusted for the rest of the request.
    """
    user_id: str
    name: Optional[str]
    email: Optional[str]
    image: Optional[str]
    expires_at: datetime


class SessionRepository:
    @staticmethod
    def create_session(token_hash: str, user_id: str, expires_at: datetime, created_at: datetime) -> None:
        with storage_errors("session creation"), get_db_connection() as conn:
            conn.execute(
                """
                INSERT INTO sessions (token_hash, user_id, expires_at, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (token_hash, user_id, expires_at.isoformat(), created_at.isoformat())
            )
            conn.commit()
        logger.info(f"Session issued [user_id={user_id}]")

    @staticmethod
    def get_verified_session(token_hash: str, now: datetime) -> Optional[VerifiedSession]:
        """
        Look up an unexpired session together with its user's display identity.
        """
        with storage_errors("session lookup"), get_db_connection() as conn:
            row = conn.execute(
                """
                SELECT s.user_id, s.expires_at, u.name, u.email, u.image
                FROM sessions s
                JOIN users u ON u.user_id = s.user_id
                WHERE s.token_hash = ?
                """,
                (token_hash,)
            ).fetchone()

        if row is None:
            return None

        expires_at = parse_timestamp(row["expires_at"])
        if expires_at <= now:
            logger.debug(f"Session expired [user_id={row['user_id']}]")
            return None

        return VerifiedSession(
            user_id=row["user_id"],
            name=row["name"],
            email=row["email"],
            image=row["image"],
            expires_at=expires_at,
        )

    @staticmethod
    def delete_session(token_hash: str) -> bool:
        with storage_errors("session deletion"), get_db_connection() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE token_hash = ?", (token_hash,))
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def delete_expired(now: datetime) -> int:
        """
        Remove sessions that expired before now.

        Returns:
            Number of sessions removed
        """
        with storage_errors("session cleanup"), get_db_connection() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (now.isoformat(),))
            conn.commit()
            removed = cursor.rowcount

        if removed:
            logger.info(f"Removed {removed} expired session(s)")
        return removed
