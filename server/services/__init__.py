"""Service layer for business logic."""

from server.services.auth_service import AuthService
from server.services.file_service import FileService

__all__ = [
    "AuthService",
    "FileService",
]
