"""Project-wide constants (procedure paths, error codes, client limits)."""

SESSION_COOKIE_NAME: str = "garchomper.session-token"
SESSION_MAX_AGE_DAYS: int = 30

MAX_UPLOAD_BATCH: int = 50

# Client-side hint only; the server does not enforce a size limit.
MAX_UPLOAD_SIZE_BYTES: int = 4 * 1024 * 1024

RPC_PREFIX: str = "/rpc"

PROCEDURE_LIST_MINE: str = "list-mine"
PROCEDURE_GET_BY_ID: str = "get-by-id"
PROCEDURE_UPLOAD_MANY: str = "upload-many"
PROCEDURE_DELETE_FILE: str = "delete-file"

ERROR_UNAUTHORIZED: str = "UNAUTHORIZED"
ERROR_FORBIDDEN: str = "FORBIDDEN"
ERROR_NOT_FOUND: str = "NOT_FOUND"
ERROR_VALIDATION: str = "VALIDATION"
ERROR_STORAGE_UNAVAILABLE: str = "STORAGE_UNAVAILABLE"
ERROR_STORAGE_CONFLICT: str = "STORAGE_CONFLICT"
ERROR_IDENTITY_PROVIDER: str = "IDENTITY_PROVIDER_ERROR"
ERROR_INTERNAL: str = "INTERNAL_ERROR"
