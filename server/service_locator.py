"""Service locator for process-wide components."""

from typing import Optional

from fastapi import Depends

from server.config import Settings, get_settings
from server.services.google_provider import GoogleIdentityProvider

_identity_provider: Optional[GoogleIdentityProvider] = None


def set_identity_provider(provider: Optional[GoogleIdentityProvider]):
    """Set global identity provider instance"""
    global _identity_provider
    _identity_provider = provider


def get_identity_provider(settings: Settings = Depends(get_settings)) -> GoogleIdentityProvider:
    """Get global identity provider instance, creating it on first use"""
    global _identity_provider
    if _identity_provider is None:
        _identity_provider = GoogleIdentityProvider(settings.google_id, settings.google_secret)
    return _identity_provider
