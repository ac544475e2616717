"""Entry point for the Garchomper server."""

import sys
import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.constants import (
    ERROR_FORBIDDEN,
    ERROR_IDENTITY_PROVIDER,
    ERROR_INTERNAL,
    ERROR_NOT_FOUND,
    ERROR_STORAGE_CONFLICT,
    ERROR_STORAGE_UNAVAILABLE,
    ERROR_UNAUTHORIZED,
    ERROR_VALIDATION,
)
from common.logging_config import setup_logging
from server import service_locator
from server.cleanup_task import ExpiredSessionCleaner
from server.config import get_settings
from server.database import configure_database, get_db_connection, init_database
from server.exceptions import (
    ConfigurationError,
    ForbiddenError,
    GarchomperError,
    IdentityProviderError,
    InputValidationError,
    NotFoundError,
    StorageConflictError,
    StorageUnavailableError,
    UnauthorizedError,
)
from server.routes.auth_routes import router as auth_router
from server.routes.embed_routes import router as embed_router
from server.routes.rpc_routes import router as rpc_router

logger = setup_logging('server')

app = FastAPI(
    title="Garchomper",
    description="Share images and PDFs through authenticated procedures and public embed links",
    version="1.0.0"
)

cleanup_task = ExpiredSessionCleaner()


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time
    user_id = getattr(request.state, 'user_id', None)

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s "
        f"[request_id={request_id}] [user_id={user_id or 'anonymous'}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Validate configuration, initialize the database and start background tasks.
    """
    logger.info("Server starting up...")

    settings = get_settings()

    configure_database(settings.database_path)
    init_database()
    logger.info("Database initialized")

    await cleanup_task.start()


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup resources on application shutdown.
    """
    logger.info("Server shutting down...")

    await cleanup_task.stop()

    provider = service_locator._identity_provider
    if provider is not None:
        provider.close()
        service_locator.set_identity_provider(None)


def _error(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def _format_location(loc) -> str:
    parts = [p for p in loc if p not in ("body", "query", "path", "header", "cookie")]
    text = ""
    for part in parts:
        if isinstance(part, int):
            text += f"[{part}]"
        else:
            text += f".{part}" if text else str(part)
    return text or "request"


@app.exception_handler(UnauthorizedError)
async def unauthorized_handler(request: Request, exc: UnauthorizedError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Unauthorized: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_401_UNAUTHORIZED, str(exc), ERROR_UNAUTHORIZED)


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    user_id = getattr(request.state, 'user_id', 'unknown')
    logger.warning(
        f"Forbidden: {exc} [request_id={request_id}] [user_id={user_id}] path={request.url.path}"
    )
    return _error(status.HTTP_403_FORBIDDEN, str(exc), ERROR_FORBIDDEN)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info(
        f"Not found: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_404_NOT_FOUND, str(exc), ERROR_NOT_FOUND)


@app.exception_handler(InputValidationError)
async def input_validation_handler(request: Request, exc: InputValidationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Validation error at {exc.location}: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_400_BAD_REQUEST, str(exc), ERROR_VALIDATION)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    errors = exc.errors()
    if errors:
        first = errors[0]
        detail = f"{_format_location(first.get('loc', ()))}: {first.get('msg', 'invalid value')}"
    else:
        detail = "Malformed request"
    logger.warning(
        f"Malformed request: {detail} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_400_BAD_REQUEST, detail, ERROR_VALIDATION)


@app.exception_handler(StorageConflictError)
async def storage_conflict_handler(request: Request, exc: StorageConflictError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Storage conflict: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_409_CONFLICT, str(exc), ERROR_STORAGE_CONFLICT)


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Storage unavailable: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), ERROR_STORAGE_UNAVAILABLE)


@app.exception_handler(IdentityProviderError)
async def identity_provider_handler(request: Request, exc: IdentityProviderError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Identity provider error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error(status.HTTP_502_BAD_GATEWAY, str(exc), ERROR_IDENTITY_PROVIDER)


@app.exception_handler(GarchomperError)
async def garchomper_exception_handler(request: Request, exc: GarchomperError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Unhandled server error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), ERROR_INTERNAL)


@app.exception_handler(Exception)
async def unexpected_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Unexpected error: {type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", ERROR_INTERNAL)


app.include_router(auth_router)
app.include_router(rpc_router)
app.include_router(embed_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Garchomper API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Liveness endpoint. Returns 200 if the process is serving requests.
    """
    return {"status": "healthy", "service": "server"}


@app.get("/ready")
async def ready_check():
    """
    Readiness check endpoint.
    Verifies database connectivity.
    """
    try:
        with get_db_connection() as conn:
            conn.execute("SELECT 1").fetchone()
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    ready = db_status == "ok"
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={"ready": ready, "database": db_status}
    )


def main() -> None:
    """
    Validate configuration, then start the FastAPI server with uvicorn.
    """
    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error(f"Refusing to start: {e}")
        sys.exit(1)

    uvicorn.run(
        "server.main:app",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
