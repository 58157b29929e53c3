"""Settings endpoints: database, branding, SSO and cloud credentials.

``GET /api/settings/app`` and ``GET /api/settings/auth`` stay public so
the login page can render branding and start the SSO flow.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException

from nautilus.models import AppSettings, CloudCredentials, DatabaseSettings
from nautilus.models import AuthSettings as AuthSettingsModel
from dashboard.backend.auth.dependencies import require_auth
from dashboard.backend.auth.models import TokenClaims
from dashboard.backend.schemas import (
    AuthSettingsEnvelope,
    AuthSettingsUpdate,
    CloudTestResponse,
    StatusMessage,
)
from dashboard.backend.services.settings_service import SettingsService

router = APIRouter(prefix="/api/settings", tags=["settings"])

_service: SettingsService | None = None

Authenticated = Annotated[TokenClaims | None, Depends(require_auth)]


def init_router(service: SettingsService) -> None:
    global _service  # noqa: PLW0603
    _service = service


def _svc() -> SettingsService:
    assert _service is not None, "SettingsService not initialized"
    return _service


# --- Database ---


@router.get("/database", response_model=DatabaseSettings)
def get_database_settings(_user: Authenticated) -> DatabaseSettings:
    return _svc().get_database_settings()


@router.post("/database", response_model=StatusMessage)
def update_database_settings(body: DatabaseSettings, _user: Authenticated) -> StatusMessage:
    return _svc().update_database_settings(body)


@router.post("/database/test", response_model=StatusMessage)
def test_database_connection(_user: Authenticated) -> StatusMessage:
    return _svc().test_database_connection()


# --- Branding ---


@router.get("/app", response_model=AppSettings)
def get_app_settings() -> AppSettings:
    return _svc().get_app_settings()


@router.post("/app", response_model=StatusMessage)
def update_app_settings(body: AppSettings, _user: Authenticated) -> StatusMessage:
    try:
        return _svc().update_app_settings(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# --- SSO ---


@router.get("/auth", response_model=AuthSettingsEnvelope)
def get_auth_settings() -> AuthSettingsEnvelope:
    return AuthSettingsEnvelope(settings=_svc().get_auth_settings())


@router.post("/auth", response_model=AuthSettingsUpdate)
def update_auth_settings(body: AuthSettingsModel, _user: Authenticated) -> AuthSettingsUpdate:
    try:
        saved = _svc().update_auth_settings(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return AuthSettingsUpdate(
        success=True, message="Authentication settings updated successfully", settings=saved,
    )


# --- Cloud credentials ---


@router.get("/cloud-credentials", response_model=CloudCredentials)
def get_cloud_credentials(_user: Authenticated) -> CloudCredentials:
    return _svc().get_cloud_credentials()


@router.post("/cloud-credentials", response_model=StatusMessage)
def update_cloud_credentials(body: CloudCredentials, _user: Authenticated) -> StatusMessage:
    try:
        return _svc().update_cloud_credentials(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/cloud-credentials/test", response_model=CloudTestResponse)
def test_cloud_credentials(
    _user: Authenticated,
    body: Annotated[CloudCredentials | None, Body()] = None,
) -> CloudTestResponse:
    return _svc().test_cloud_connections(body)
