"""Custom exception classes for the server."""

from typing import Optional


class GarchomperError(Exception):
    """
    Base exception class for all server errors.
    """
    pass


class ConfigurationError(GarchomperError):
    """
    Raised when required environment configuration is missing or malformed.
    """
    pass


class UnauthorizedError(GarchomperError):
    """
    Raised when an authenticated-only procedure is called without a verified session.
    """
    pass


class ForbiddenError(GarchomperError):
    """
    Raised when a verified user acts on a file they don't own.
    """
    pass


class NotFoundError(GarchomperError):
    """
    Raised when no file has the requested identifier.
    """
    pass


class InputValidationError(GarchomperError):
    """
    Raised when procedure input is malformed.

    Attributes:
        field: Offending field name (e.g. "kind", "id", "items")
        index: Position of the offending item in a batch, if any
    """

    def __init__(self, message: str, field: Optional[str] = None, index: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.index = index

    @property
    def location(self) -> Optional[str]:
        if self.index is not None:
            return f"items[{self.index}].{self.field}"
        return self.field


class StorageUnavailableError(GarchomperError):
    """
    Raised when the database is unreachable or fails an operation.
    """
    pass


class StorageConflictError(GarchomperError):
    """
    Raised when the database rejects a write because of a constraint violation.
    """
    pass


class IdentityProviderError(GarchomperError):
    """
    Raised when the OAuth identity provider rejects or fails a sign-in step.
    """
    pass
