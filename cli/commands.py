"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.models import (
    DeleteCommand,
    EmbedCommand,
    GetCommand,
    ListCommand,
    LoginCommand,
    LogoutCommand,
    UploadCommand,
    WhoamiCommand,
)
from cli.rpc_client import RpcClient

logger = get_logger(__name__)


_client: Optional[RpcClient] = None


def get_client() -> RpcClient:
    """
    Get or create global RpcClient instance.

    Returns:
        RpcClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new RpcClient instance")
        config = Config(Path.home() / '.garchomper' / 'config.json')
        _client = RpcClient(config)
    return _client


def handle_login(cmd: LoginCommand, client: Optional[RpcClient] = None) -> str:
    """
    Handle 'login' command.

    Args:
        cmd: LoginCommand
        client: Optional RpcClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    return client.login()


def handle_logout(cmd: LogoutCommand, client: Optional[RpcClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.logout()


def handle_whoami(cmd: WhoamiCommand, client: Optional[RpcClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.whoami()


def handle_list(cmd: ListCommand, client: Optional[RpcClient] = None) -> str:
    """
    Handle 'list' command.

    Args:
        cmd: ListCommand
        client: Optional RpcClient for dependency injection (testing)

    Returns:
        Formatted list of files
    """
    logger.info("Executing list command")
    if client is None:
        client = get_client()
    result = client.list_files()
    logger.debug("List command completed")
    return result


def handle_upload(cmd: UploadCommand, client: Optional[RpcClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with file_list
        client: Optional RpcClient for dependency injection (testing)

    Returns:
        Success or error message with upload results
    """
    logger.info(f"Executing upload command: {len(cmd.file_list)} files")
    if client is None:
        client = get_client()
    result = client.upload_files(list(cmd.file_list))
    logger.debug("Upload command completed")
    return result


def handle_delete(cmd: DeleteCommand, client: Optional[RpcClient] = None) -> str:
    """
    Handle 'delete' command.

    Args:
        cmd: DeleteCommand with file_id
        client: Optional RpcClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing delete command: file_id={cmd.file_id}")
    if client is None:
        client = get_client()
    return client.delete_file(cmd.file_id)


def handle_get(cmd: GetCommand, client: Optional[RpcClient] = None) -> str:
    """
    Handle 'get' command.

    Args:
        cmd: GetCommand with file_id and optional output_path
        client: Optional RpcClient for dependency injection (testing)

    Returns:
        Success or error message with download results
    """
    logger.info(f"Executing get command: file_id={cmd.file_id} output_path={cmd.output_path}")
    if client is None:
        client = get_client()
    result = client.get_file(cmd.file_id, cmd.output_path)
    logger.debug("Get command completed")
    return result


def handle_embed(cmd: EmbedCommand, client: Optional[RpcClient] = None) -> str:
    if client is None:
        client = get_client()
    return f"Embed link (anyone with it can view the file):\n{client.embed_link(cmd.file_id)}"
