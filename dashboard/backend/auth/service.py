"""Okta access token verification with PyJWT.

Tokens are RS256 JWTs signed by the authorization server configured in
the auth settings. Signing keys are fetched from the issuer's JWKS
endpoint and cached per issuer.
"""

from __future__ import annotations

import logging
import threading

import jwt

from dashboard.backend.auth.models import TokenClaims
from nautilus.models import AuthSettings

logger = logging.getLogger(__name__)

ALGORITHMS = ["RS256"]


class OktaTokenVerifier:
    """Validates bearer tokens against an Okta issuer."""

    def __init__(self) -> None:
        self._jwk_clients: dict[str, jwt.PyJWKClient] = {}
        self._lock = threading.Lock()

    def _jwk_client(self, issuer: str) -> jwt.PyJWKClient:
        with self._lock:
            client = self._jwk_clients.get(issuer)
            if client is None:
                client = jwt.PyJWKClient(f"{issuer}/v1/keys")
                self._jwk_clients[issuer] = client
            return client

    def validate(self, token: str, settings: AuthSettings) -> TokenClaims | None:
        """Return the token's claims, or None if it is not valid."""
        issuer = settings.okta_issuer.rstrip("/")
        try:
            signing_key = self._jwk_client(issuer).get_signing_key_from_jwt(token)
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=ALGORITHMS,
                issuer=issuer,
                options={"verify_aud": False},
            )
        except jwt.PyJWTError as exc:
            logger.debug("Rejected bearer token: %s", exc)
            return None

        # Okta access tokens name the requesting app in "cid"
        client_id = payload.get("cid", "")
        if settings.okta_client_id and client_id and client_id != settings.okta_client_id:
            return None
        return TokenClaims(
            sub=payload.get("sub", ""),
            issuer=issuer,
            client_id=client_id,
            email=payload.get("email", payload.get("sub", "")),
            exp=int(payload.get("exp", 0)),
        )
