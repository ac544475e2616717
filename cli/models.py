"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class LoginCommand:
    """Sign in with the Google device flow."""

    command: Literal["login"] = "login"


@dataclass(frozen=True)
class LogoutCommand:
    """Sign out of the current session."""

    command: Literal["logout"] = "logout"


@dataclass(frozen=True)
class WhoamiCommand:
    """Show the signed-in account."""

    command: Literal["whoami"] = "whoami"


@dataclass(frozen=True)
class ListCommand:
    """List the caller's files."""

    command: Literal["list"] = "list"


@dataclass(frozen=True)
class UploadCommand:
    """Upload a batch of files."""

    file_list: tuple[str, ...]
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DeleteCommand:
    """Delete one file by id."""

    file_id: str
    command: Literal["delete"] = "delete"


@dataclass(frozen=True)
class GetCommand:
    """Save a file's content locally."""

    file_id: str
    output_path: str | None = None
    command: Literal["get"] = "get"


@dataclass(frozen=True)
class EmbedCommand:
    """Print the public embed link for a file."""

    file_id: str
    command: Literal["embed"] = "embed"


CommandRequest = (
    LoginCommand
    | LogoutCommand
    | WhoamiCommand
    | ListCommand
    | UploadCommand
    | DeleteCommand
    | GetCommand
    | EmbedCommand
)
