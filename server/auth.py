"""Session resolution and authorization for procedures."""

import functools
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from fastapi import Depends, Request

from common.constants import SESSION_COOKIE_NAME
from common.logging_config import get_logger
from server.config import Settings, get_settings
from server.exceptions import UnauthorizedError
from server.repositories.session_repository import SessionRepository, VerifiedSession
from server.utils import utc_now

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AuthorizedContext:
    """
    Execution context handed to authenticated procedures.
    """
    user_id: str
    session: VerifiedSession


def generate_session_token() -> str:
    """
    Generate a new opaque session token.
    """
    return secrets.token_urlsafe(32)


def hash_session_token(token: str, secret: str) -> str:
    """
    Keyed hash under which a session token is stored.

    Args:
        token: Raw session token
        secret: AUTH_SECRET

    Returns:
        Hex HMAC-SHA256 digest
    """
    return hmac.new(secret.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).hexdigest()


def extract_session_token(request: Request) -> Optional[str]:
    """
    Read the session token from the Authorization header or the session cookie.
    """
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
        if token:
            return token

    return request.cookies.get(SESSION_COOKIE_NAME) or None


def resolve_session(request: Request, settings: Settings) -> Optional[VerifiedSession]:
    """
    Resolve the request's credentials to a verified session.

    Returns:
        VerifiedSession, or None for anonymous, unknown or expired credentials
    """
    token = extract_session_token(request)
    if token is None:
        return None

    session = SessionRepository.get_verified_session(
        hash_session_token(token, settings.auth_secret),
        utc_now(),
    )
    if session is None:
        logger.debug("Presented session token did not resolve to a session")
    return session


async def get_optional_session(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[VerifiedSession]:
    """
    FastAPI dependency for public procedures; never rejects the request.
    """
    session = resolve_session(request, settings)
    if session is not None:
        request.state.user_id = session.user_id
    return session


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AuthorizedContext:
    """
    FastAPI dependency guarding authenticated procedures.

    Resolves the session before the procedure runs and injects the caller's
    user id into its context.

    Raises:
        UnauthorizedError: If the request carries no verified session
    """
    session = resolve_session(request, settings)
    if session is None:
        raise UnauthorizedError("Sign in required")

    request.state.user_id = session.user_id
    return AuthorizedContext(user_id=session.user_id, session=session)


def authorized(procedure: Callable[..., T]) -> Callable[..., T]:
    """
    Wrap a procedure taking an AuthorizedContext into one taking a session.

    The wrapped callable raises UnauthorizedError for a missing session and
    otherwise calls the procedure with the session's user id injected.
    """
    @functools.wraps(procedure)
    def wrapped(session: Optional[VerifiedSession], *args, **kwargs) -> T:
        if session is None:
            raise UnauthorizedError("Sign in required")
        return procedure(AuthorizedContext(user_id=session.user_id, session=session), *args, **kwargs)

    return wrapped
