"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    DeleteCommand,
    EmbedCommand,
    GetCommand,
    ListCommand,
    LoginCommand,
    LogoutCommand,
    UploadCommand,
    WhoamiCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]
    args = tokens[1:]

    if command_name == "login":
        _expect_no_args("login", args)
        return LoginCommand()
    elif command_name == "logout":
        _expect_no_args("logout", args)
        return LogoutCommand()
    elif command_name == "whoami":
        _expect_no_args("whoami", args)
        return WhoamiCommand()
    elif command_name == "list":
        _expect_no_args("list", args)
        return ListCommand()
    elif command_name == "upload":
        return _parse_upload(args)
    elif command_name == "delete":
        return DeleteCommand(file_id=_single_file_id("delete", args))
    elif command_name == "get":
        return _parse_get(args)
    elif command_name == "embed":
        return EmbedCommand(file_id=_single_file_id("embed", args))
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _expect_no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")


def _single_file_id(command_name: str, args: list[str]) -> str:
    if len(args) != 1:
        raise ParseError(f"{command_name} requires exactly 1 argument: <file_id>")
    return args[0]


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload file-list' command."""
    if not args:
        raise ParseError("upload requires at least one file")

    return UploadCommand(file_list=tuple(args))


def _parse_get(args: list[str]) -> GetCommand:
    """Parse 'get <file_id> [output_path]' command."""
    if len(args) < 1 or len(args) > 2:
        raise ParseError("get requires 1 or 2 arguments: <file_id> [output_path]")

    file_id = args[0]
    output_path = args[1] if len(args) > 1 else None

    return GetCommand(file_id=file_id, output_path=output_path)
