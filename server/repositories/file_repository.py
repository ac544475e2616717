"""File repository for database operations."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from common.logging_config import get_logger
from common.types import FileKind
from server.database import get_db_connection, open_connection, storage_errors
from server.utils import generate_uuid, parse_timestamp

logger = get_logger(__name__)


@dataclass
class File:
    file_id: str
    owner_id: str
    name: str
    kind: FileKind
    content: str
    created_at: datetime


@dataclass(frozen=True)
class NewFile:
    """A validated upload item that has not been stored yet."""
    name: str
    kind: FileKind
    content: str


def _row_to_file(row: sqlite3.Row) -> File:
    return File(
        file_id=row["file_id"],
        owner_id=row["owner_id"],
        name=row["name"],
        kind=FileKind(row["kind"]),
        content=row["content"],
        created_at=parse_timestamp(row["created_at"]),
    )


class FileRepository:
    @staticmethod
    def create_many(
        owner_id: str,
        items: Sequence[NewFile],
        created_at: datetime,
        conn=None
    ) -> List[File]:
        """
        Insert one row per item in a single transaction; either every row
        persists or none does.
        """
        files = [
            File(
                file_id=generate_uuid(),
                owner_id=owner_id,
                name=item.name,
                kind=item.kind,
                content=item.content,
                created_at=created_at,
            )
            for item in items
        ]

        logger.debug(f"Creating {len(files)} file(s) [owner_id={owner_id}]")
        should_close = conn is None

        with storage_errors("file upload"):
            if conn is None:
                conn = open_connection()

            try:
                cursor = conn.cursor()
                cursor.executemany(
                    """
                    INSERT INTO files (file_id, owner_id, name, kind, content, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (f.file_id, f.owner_id, f.name, f.kind.value, f.content, f.created_at.isoformat())
                        for f in files
                    ]
                )
                if should_close:
                    conn.commit()
            except sqlite3.Error:
                if should_close:
                    conn.rollback()
                raise
            finally:
                if should_close:
                    conn.close()

        logger.info(f"Created {len(files)} file(s) [owner_id={owner_id}]")
        return files

    @staticmethod
    def find_many_by_owner(owner_id: str) -> List[File]:
        with storage_errors("file listing"), get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT file_id, owner_id, name, kind, content, created_at
                FROM files WHERE owner_id = ?
                ORDER BY rowid
                """,
                (owner_id,)
            )
            rows = cursor.fetchall()

        return [_row_to_file(row) for row in rows]

    @staticmethod
    def find_one_by_id(file_id: str, conn=None) -> Optional[File]:
        query = """
            SELECT file_id, owner_id, name, kind, content, created_at
            FROM files WHERE file_id = ?
        """
        with storage_errors("file lookup"):
            if conn is not None:
                row = conn.execute(query, (file_id,)).fetchone()
            else:
                with get_db_connection() as own_conn:
                    row = own_conn.execute(query, (file_id,)).fetchone()

        if row is None:
            return None
        return _row_to_file(row)

    @staticmethod
    def delete_by_id(file_id: str, conn=None) -> bool:
        """
        Delete a file row.

        Returns:
            True if a row was deleted, False if no file had that id
        """
        logger.debug(f"Deleting file [file_id={file_id}]")
        should_close = conn is None

        with storage_errors("file deletion"):
            if conn is None:
                conn = open_connection()

            try:
                cursor = conn.execute("DELETE FROM files WHERE file_id = ?", (file_id,))
                deleted = cursor.rowcount > 0
                if should_close:
                    conn.commit()
            finally:
                if should_close:
                    conn.close()

        if deleted:
            logger.info(f"File deleted [file_id={file_id}]")
        return deleted
