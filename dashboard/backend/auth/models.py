"""Data models for SSO authentication."""

from __future__ import annotations

from pydantic import BaseModel


class TokenClaims(BaseModel):
    """Verified claims of an Okta access token."""

    sub: str
    issuer: str
    client_id: str = ""
    email: str = ""
    exp: int = 0
