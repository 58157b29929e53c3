"""FastAPI dependencies for authentication."""

from __future__ import annotations

from fastapi import HTTPException, Request

from dashboard.backend.auth.models import TokenClaims
from dashboard.backend.auth.service import OktaTokenVerifier
from nautilus.models import AuthProviderKind
from nautilus.settings.store import SettingsStore

# Module-level references, set by app factory.
_store: SettingsStore | None = None
_verifier: OktaTokenVerifier | None = None
_enforce: bool = False


def init_auth(store: SettingsStore | None, verifier: OktaTokenVerifier | None, enforce: bool) -> None:
    """Called by the app factory to inject the settings store and verifier."""
    global _store, _verifier, _enforce  # noqa: PLW0603
    _store = store
    _verifier = verifier
    _enforce = enforce


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:]


def require_auth(request: Request) -> TokenClaims | None:
    """Require a valid Okta token when enforcement and SSO are both on.

    Auth settings are read per request so enabling SSO takes effect
    without a restart. Returns None when no authentication applies.
    """
    if not _enforce or _store is None or _verifier is None:
        return None
    settings = _store.load_auth_settings()
    if not settings.enabled or settings.provider != AuthProviderKind.OKTA:
        return None

    token = _extract_bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    claims = _verifier.validate(token, settings)
    if claims is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return claims
