"""Authentication API routes."""

from typing import Union

from fastapi import APIRouter, Depends, Request, Response, status

from common.constants import SESSION_COOKIE_NAME
from common.protocol import (
    DeviceAuthorizationResponse,
    DeviceTokenRequest,
    PendingResponse,
    SessionInfoResponse,
    SessionResponse,
    SignOutResponse,
)
from server.auth import AuthorizedContext, extract_session_token, get_current_user
from server.config import Settings, get_settings
from server.service_locator import get_identity_provider
from server.services.auth_service import AuthService
from server.services.google_provider import GoogleIdentityProvider

router = APIRouter(prefix="/auth", tags=["Authentication"])


def get_auth_service(
    settings: Settings = Depends(get_settings),
    provider: GoogleIdentityProvider = Depends(get_identity_provider),
) -> AuthService:
    return AuthService(settings, provider)


@router.post("/google/device", response_model=DeviceAuthorizationResponse)
def start_device_sign_in(auth_service: AuthService = Depends(get_auth_service)):
    """
    Start Google sign-in for a device without a browser.

    Returns:
        - device_code: Code the client polls with
        - user_code / verification_url: What the user enters in a browser
        - expires_in / interval: Polling limits in seconds

    Raises:
        - 502: Google rejected or failed the request
    """
    return DeviceAuthorizationResponse(**auth_service.start_sign_in())


@router.post("/google/token", response_model=Union[SessionResponse, PendingResponse])
def complete_device_sign_in(
    request: DeviceTokenRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    Poll device sign-in; issues a session once the user has approved.

    Returns:
        - 202 {status: "pending"} while the user has not finished
        - 200 session_token, user_id, name, expires_at (also set as cookie)

    Raises:
        - 502: Sign-in denied, expired or provider failure
    """
    issued = auth_service.complete_sign_in(request.device_code)
    if issued is None:
        response.status_code = status.HTTP_202_ACCEPTED
        return PendingResponse()

    response.set_cookie(
        SESSION_COOKIE_NAME,
        issued.token,
        max_age=settings.session_max_age_days * 24 * 3600,
        httponly=True,
        samesite="lax",
        secure=bool(settings.auth_url and settings.auth_url.startswith("https://")),
    )
    return SessionResponse(
        session_token=issued.token,
        user_id=issued.user.user_id,
        name=issued.user.name,
        expires_at=issued.expires_at,
    )


@router.get("/session", response_model=SessionInfoResponse)
async def get_session(context: AuthorizedContext = Depends(get_current_user)):
    """
    Describe the caller's verified session.

    Raises:
        - 401: No verified session
    """
    session = context.session
    return SessionInfoResponse(
        user_id=session.user_id,
        name=session.name,
        email=session.email,
        image=session.image,
        expires_at=session.expires_at,
    )


@router.post("/signout", response_model=SignOutResponse)
async def sign_out(
    request: Request,
    response: Response,
    context: AuthorizedContext = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    End the caller's session.

    Raises:
        - 401: No verified session
    """
    auth_service.sign_out(extract_session_token(request))
    response.delete_cookie(SESSION_COOKIE_NAME)
    return SignOutResponse()
