"""Authentication service for business logic.

Sign-in is delegated to the identity provider; this service only links the
provider account to a User and issues opaque session tokens.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from common.logging_config import get_logger
from server.auth import generate_session_token, hash_session_token
from server.config import Settings
from server.repositories.session_repository import SessionRepository
from server.repositories.user_repository import User, UserRepository
from server.services.google_provider import GoogleIdentityProvider
from server.utils import utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class IssuedSession:
    """A freshly issued session; the raw token is never stored server-side."""
    token: str
    user: User
    expires_at: datetime


class AuthService:
    def __init__(self, settings: Settings, provider: GoogleIdentityProvider):
        self.settings = settings
        self.provider = provider
        self.user_repo = UserRepository()
        self.session_repo = SessionRepository()

    def start_sign_in(self) -> dict:
        logger.info("Starting device sign-in")
        return self.provider.start_device_flow()

    def complete_sign_in(self, device_code: str) -> Optional[IssuedSession]:
        """
        Poll the provider once and issue a session when the user has approved.

        Returns:
            IssuedSession, or None while the user has not finished signing in
        """
        access_token = self.provider.poll_for_token(device_code)
        if access_token is None:
            return None

        profile = self.provider.fetch_profile(access_token)
        user = self.user_repo.upsert_from_provider(
            provider=self.provider.PROVIDER_NAME,
            provider_account_id=profile.account_id,
            name=profile.name,
            email=profile.email,
            image=profile.image,
            created_at=utc_now(),
        )
        return self.issue_session(user)

    def issue_session(self, user: User) -> IssuedSession:
        now = utc_now()
        expires_at = now + timedelta(days=self.settings.session_max_age_days)
        token = generate_session_token()

        self.session_repo.create_session(
            token_hash=hash_session_token(token, self.settings.auth_secret),
            user_id=user.user_id,
            expires_at=expires_at,
            created_at=now,
        )
        logger.info(f"Signed in [user_id={user.user_id}]")
        return IssuedSession(token=token, user=user, expires_at=expires_at)

    def sign_out(self, token: str) -> bool:
        removed = self.session_repo.delete_session(hash_session_token(token, self.settings.auth_secret))
        logger.info(f"Signed out [removed={removed}]")
        return removed
