"""File procedure routes.

Every procedure except get-by-id depends on get_current_user, which rejects
anonymous callers before the procedure body or the store is reached.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from common.constants import (
    PROCEDURE_DELETE_FILE,
    PROCEDURE_GET_BY_ID,
    PROCEDURE_LIST_MINE,
    PROCEDURE_UPLOAD_MANY,
    RPC_PREFIX,
)
from common.protocol import (
    DeleteFileRequest,
    DeleteFileResponse,
    FileResponse,
    ListFilesResponse,
    UploadManyRequest,
    UploadManyResponse,
)
from server.auth import AuthorizedContext, get_current_user, get_optional_session
from server.config import Settings, get_settings
from server.repositories.file_repository import File
from server.repositories.session_repository import VerifiedSession
from server.services.file_service import FileService

router = APIRouter(prefix=RPC_PREFIX, tags=["Files"])


def get_file_service(settings: Settings = Depends(get_settings)) -> FileService:
    return FileService(max_upload_batch=settings.max_upload_batch)


def to_file_response(file: File) -> FileResponse:
    return FileResponse(
        id=file.file_id,
        owner_id=file.owner_id,
        name=file.name,
        kind=file.kind,
        content=file.content,
        created_at=file.created_at,
    )


@router.get(f"/{PROCEDURE_LIST_MINE}", response_model=ListFilesResponse)
async def list_mine(
    context: AuthorizedContext = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    List the caller's files.

    Returns:
        - files: Every file owned by the caller, in upload order

    Raises:
        - 401: No verified session
        - 503: Storage unavailable
    """
    files = file_service.list_mine(context)
    return ListFilesResponse(files=[to_file_response(f) for f in files])


@router.get(f"/{PROCEDURE_GET_BY_ID}", response_model=FileResponse)
async def get_by_id(
    id: str = Query(..., description="File identifier"),
    session: Optional[VerifiedSession] = Depends(get_optional_session),
    file_service: FileService = Depends(get_file_service),
):
    """
    Fetch any file by id. Public: the id itself is the capability, and a
    session, when present, is only used to attribute the request in logs.

    Raises:
        - 400: Malformed id
        - 404: No file has this id
    """
    return to_file_response(file_service.get_by_id(id))


@router.post(
    f"/{PROCEDURE_UPLOAD_MANY}",
    response_model=UploadManyResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_many(
    request: UploadManyRequest,
    context: AuthorizedContext = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    Store a batch of files owned by the caller, all or nothing.

    Parameters:
        - items: [{name, kind: IMAGE|PDF, content}]

    Returns:
        - file_ids: New identifiers, in input order

    Raises:
        - 400: Any item invalid (nothing is stored)
        - 401: No verified session
        - 409/503: Storage rejected or failed the batch
    """
    file_ids = file_service.upload_many(context, request.items)
    return UploadManyResponse(file_ids=file_ids)


@router.post(f"/{PROCEDURE_DELETE_FILE}", response_model=DeleteFileResponse)
async def delete_file(
    request: DeleteFileRequest,
    context: AuthorizedContext = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    Delete one of the caller's files.

    Raises:
        - 400: Malformed id
        - 401: No verified session
        - 403: File belongs to another user (nothing deleted)
        - 404: No file has this id
    """
    deleted_id = file_service.delete_file(context, request.id)
    return DeleteFileResponse(id=deleted_id)
