"""Repository layer for data access."""

from server.repositories.user_repository import UserRepository
from server.repositories.session_repository import SessionRepository
from server.repositories.file_repository import FileRepository

__all__ = [
    "UserRepository",
    "SessionRepository",
    "FileRepository",
]
