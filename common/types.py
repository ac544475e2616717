"""Shared data type definitions (FileKind, DataUrl)."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FileKind(str, Enum):
    """
    How a consumer renders a file's content.
    """
    IMAGE = "IMAGE"
    PDF = "PDF"


_DATA_URL_PATTERN = re.compile(
    r"^data:(?P<media_type>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w.+-]+=[^;,]*)*)(?P<base64>;base64)?,",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class DataUrl:
    """
    Header of an RFC 2397 data URL.
    """
    media_type: str
    is_base64: bool


def parse_data_url(content: str) -> Optional[DataUrl]:
    """
    Parse the header of a data URL.

    Args:
        content: Inline file content

    Returns:
        DataUrl if content starts with a data URL header, None otherwise
    """
    match = _DATA_URL_PATTERN.match(content)
    if match is None:
        return None
    media_type = (match.group("media_type") or "text/plain").lower()
    return DataUrl(media_type=media_type, is_base64=match.group("base64") is not None)


def kind_for_media_type(media_type: str) -> Optional[FileKind]:
    """
    Map a media type to the FileKind that renders it.

    Returns:
        FileKind, or None if the media type is neither an image nor a PDF
    """
    media_type = media_type.lower()
    if media_type.startswith("image/"):
        return FileKind.IMAGE
    if media_type == "application/pdf":
        return FileKind.PDF
    return None
