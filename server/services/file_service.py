"""File service for business logic.

Implements the four file procedures. Input is validated before any store
access; ownership and existence are checked inside the store transaction
before anything is mutated.
"""

import re
from typing import List, Optional, Sequence

from common.constants import MAX_UPLOAD_BATCH
from common.logging_config import get_logger
from common.protocol import UploadItem
from common.types import FileKind, kind_for_media_type, parse_data_url
from server.auth import AuthorizedContext
from server.database import open_connection, storage_errors
from server.exceptions import ForbiddenError, InputValidationError, NotFoundError
from server.repositories.file_repository import File, FileRepository, NewFile
from server.utils import utc_now

logger = get_logger(__name__)

FILE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_file_id(file_id: Optional[str]) -> str:
    """
    Check that a file id is a non-empty identifier-shaped string.

    Raises:
        InputValidationError: If the id is empty or contains unexpected characters
    """
    if not isinstance(file_id, str) or not FILE_ID_PATTERN.match(file_id):
        raise InputValidationError("id must be a non-empty file identifier", field="id")
    return file_id


def validate_upload_items(items: Sequence[UploadItem], max_batch: int = MAX_UPLOAD_BATCH) -> List[NewFile]:
    """
    Validate an upload batch as a whole.

    Args:
        items: Submitted items in order
        max_batch: Largest accepted batch

    Returns:
        NewFile per item, in input order

    Raises:
        InputValidationError: On the first offending item; nothing is returned
            for a partially valid batch
    """
    if not items:
        raise InputValidationError("items must contain at least one file", field="items")
    if len(items) > max_batch:
        raise InputValidationError(
            f"items may contain at most {max_batch} files, got {len(items)}",
            field="items",
        )

    validated = []
    for index, item in enumerate(items):
        if not item.name or not item.name.strip():
            raise InputValidationError(f"items[{index}].name must not be empty", field="name", index=index)

        if not item.content:
            raise InputValidationError(f"items[{index}].content must not be empty", field="content", index=index)

        try:
            kind = FileKind(item.kind)
        except ValueError:
            allowed = ", ".join(k.value for k in FileKind)
            raise InputValidationError(
                f"items[{index}].kind must be one of {allowed}, got '{item.kind}'",
                field="kind",
                index=index,
            )

        data_url = parse_data_url(item.content)
        if data_url is not None and kind_for_media_type(data_url.media_type) is not kind:
            raise InputValidationError(
                f"items[{index}].content has media type {data_url.media_type} which does not match kind {kind.value}",
                field="content",
                index=index,
            )

        validated.append(NewFile(name=item.name, kind=kind, content=item.content))

    return validated


class FileService:
    def __init__(self, max_upload_batch: int = MAX_UPLOAD_BATCH):
        self.file_repo = FileRepository()
        self.max_upload_batch = max_upload_batch

    def list_mine(self, context: AuthorizedContext) -> List[File]:
        files = self.file_repo.find_many_by_owner(context.user_id)
        logger.debug(f"Listed {len(files)} file(s) [user_id={context.user_id}]")
        return files

    def get_by_id(self, file_id: str) -> File:
        """
        Fetch a file by id regardless of owner; knowing the id is the capability.
        """
        validate_file_id(file_id)

        file = self.file_repo.find_one_by_id(file_id)
        if file is None:
            raise NotFoundError(f"File '{file_id}' not found")
        return file

    def upload_many(self, context: AuthorizedContext, items: Sequence[UploadItem]) -> List[str]:
        new_files = validate_upload_items(items, self.max_upload_batch)

        created = self.file_repo.create_many(context.user_id, new_files, utc_now())

        logger.info(f"Uploaded {len(created)} file(s) [user_id={context.user_id}]")
        return [file.file_id for file in created]

    def delete_file(self, context: AuthorizedContext, file_id: str) -> str:
        validate_file_id(file_id)

        with storage_errors("file deletion"):
            conn = open_connection()
        try:
            with storage_errors("file deletion"):
                conn.execute("BEGIN IMMEDIATE")

            file = self.file_repo.find_one_by_id(file_id, conn=conn)
            if file is None:
                raise NotFoundError(f"File '{file_id}' not found")

            if file.owner_id != context.user_id:
                logger.warning(
                    f"Delete refused: file owned by another user [file_id={file_id}] [user_id={context.user_id}]"
                )
                raise ForbiddenError("You do not own this file")

            self.file_repo.delete_by_id(file_id, conn=conn)

            with storage_errors("file deletion"):
                conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.info(f"Deleted file [file_id={file_id}] [user_id={context.user_id}]")
        return file_id
