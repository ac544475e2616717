"""Utility functions for CLI operations."""

import base64
import mimetypes
from pathlib import Path
from typing import Optional

from common.types import FileKind, kind_for_media_type

# mimetypes has no entry for webp on some platforms
mimetypes.add_type("image/webp", ".webp")


def guess_media_type(path: Path) -> Optional[str]:
    media_type, _ = mimetypes.guess_type(path.name)
    return media_type


def kind_for_path(path: Path) -> Optional[FileKind]:
    """
    FileKind for a local file, judged from its extension.

    Returns:
        FileKind, or None if the file is neither an image nor a PDF
    """
    media_type = guess_media_type(path)
    if media_type is None:
        return None
    return kind_for_media_type(media_type)


def encode_data_url(data: bytes, media_type: str) -> str:
    """
    Encode raw bytes as a base64 data URL.

    Args:
        data: File bytes
        media_type: MIME type placed in the URL header

    Returns:
        String of the form "data:<media_type>;base64,<payload>"
    """
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{payload}"


def decode_data_url(content: str) -> Optional[bytes]:
    """
    Decode the payload of a base64 data URL.

    Returns:
        Raw bytes, or None if content is not a base64 data URL
    """
    if not content.startswith("data:"):
        return None
    header, sep, payload = content.partition(",")
    if not sep or not header.endswith(";base64"):
        return None
    try:
        return base64.b64decode(payload, validate=True)
    except ValueError:
        return None


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"
