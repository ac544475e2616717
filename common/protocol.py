"""Shared RPC message definitions.

Both the server (as FastAPI response models) and the CLI (to decode
responses) use these pydantic models, so rich types such as datetimes and
FileKind survive the trip across the JSON boundary.
"""

from datetime import datetime
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field

from common.types import FileKind

ModelT = TypeVar("ModelT", bound=BaseModel)


class FileResponse(BaseModel):
    """A stored file, content included."""
    id: str
    owner_id: str
    name: str
    kind: FileKind
    content: str
    created_at: datetime


class ListFilesResponse(BaseModel):
    """Response model for list-mine."""
    files: List[FileResponse]


class UploadItem(BaseModel):
    """
    One file submitted to upload-many.

    kind is kept as a plain string so the procedure can reject a bad value
    with the offending batch index.
    """
    name: str
    kind: str
    content: str


class UploadManyRequest(BaseModel):
    """Request model for upload-many."""
    items: List[UploadItem]


class UploadManyResponse(BaseModel):
    """Response model for upload-many."""
    file_ids: List[str]


class DeleteFileRequest(BaseModel):
    """Request model for delete-file."""
    id: str


class DeleteFileResponse(BaseModel):
    """Response model for delete-file."""
    id: str
    deleted: bool = True


class DeviceAuthorizationResponse(BaseModel):
    """Response model for starting the device sign-in flow."""
    device_code: str
    user_code: str
    verification_url: str
    expires_in: int
    interval: int


class DeviceTokenRequest(BaseModel):
    """Request model for polling the device sign-in flow."""
    device_code: str


class PendingResponse(BaseModel):
    """Response model while the user has not finished signing in."""
    status: str = "pending"


class SessionResponse(BaseModel):
    """Response model for a newly issued session."""
    session_token: str
    user_id: str
    name: Optional[str] = None
    expires_at: datetime


class SessionInfoResponse(BaseModel):
    """Response model describing the caller's verified session."""
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    expires_at: datetime


class SignOutResponse(BaseModel):
    """Response model for sign-out."""
    signed_out: bool = True


class ErrorResponse(BaseModel):
    """Response model for errors."""
    detail: str
    code: str = Field(..., description="Machine-readable error kind")


def decode_payload(model_cls: Type[ModelT], data: Any) -> ModelT:
    """
    Rebuild a message, restoring datetimes and enums from their JSON form.

    Raises:
        pydantic.ValidationError: If data does not match the message schema
    """
    return model_cls.model_validate(data)
