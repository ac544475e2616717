"""Google OAuth 2.0 device authorization flow.

1. Start device authorization (user gets a verification URL + code)
2. Poll for token completion
3. Use the access token to fetch the user's identity from the userinfo endpoint
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from common.logging_config import get_logger
from server.exceptions import IdentityProviderError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderProfile:
    """Identity reported by the provider for a signed-in account."""
    account_id: str
    name: Optional[str]
    email: Optional[str]
    image: Optional[str]


class GoogleIdentityProvider:
    """Handles Google device authorization and identity lookup."""

    PROVIDER_NAME = "google"
    DEVICE_CODE_URL = "https://oauth2.googleapis.com/device/code"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
    SCOPES = "openid email profile"

    def __init__(self, client_id: str, client_secret: str, http_client: Optional[httpx.Client] = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.http = http_client or httpx.Client(timeout=10.0)

    def start_device_flow(self) -> dict:
        """Start the device authorization flow.

        Returns:
            Dict with device_code, user_code, verification_url, expires_in, interval.
        """
        try:
            resp = self.http.post(
                self.DEVICE_CODE_URL,
                data={"client_id": self.client_id, "scope": self.SCOPES},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Device authorization request failed: {e}")
            raise IdentityProviderError("Could not start Google sign-in") from e

        data = resp.json()
        return {
            "device_code": data["device_code"],
            "user_code": data["user_code"],
            "verification_url": data.get("verification_url", data.get("verification_uri", "")),
            "expires_in": data.get("expires_in", 1800),
            "interval": data.get("interval", 5),
        }

    def poll_for_token(self, device_code: str) -> Optional[str]:
        """Poll for token completion.

        Returns:
            The access token if the user has approved, None while still pending.

        Raises:
            IdentityProviderError: For denial, expiry or transport failures.
        """
        try:
            resp = self.http.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "device_code": device_code,
                    "grant_type": "urn:ietf:params:oauth:grant-type:device_code",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Token request failed: {e}")
            raise IdentityProviderError("Could not reach Google to finish sign-in") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise IdentityProviderError(f"Unexpected token response (status {resp.status_code})") from e

        if "access_token" in data:
            return data["access_token"]

        error = data.get("error", "")
        if error in ("authorization_pending", "slow_down"):
            return None

        error_desc = data.get("error_description", error) or "unknown error"
        logger.warning(f"Google sign-in failed: {error_desc}")
        raise IdentityProviderError(f"Google sign-in failed: {error_desc}")

    def fetch_profile(self, access_token: str) -> ProviderProfile:
        """Resolve an access token to the account's identity."""
        try:
            resp = self.http.get(
                self.USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Userinfo request failed: {e}")
            raise IdentityProviderError("Could not read Google account profile") from e

        data = resp.json()
        if not data.get("id"):
            raise IdentityProviderError("Google profile did not include an account id")

        return ProviderProfile(
            account_id=str(data["id"]),
            name=data.get("name"),
            email=data.get("email"),
            image=data.get("picture"),
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.http.close()
