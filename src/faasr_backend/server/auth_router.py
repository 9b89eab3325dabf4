"""GitHub App installation flow and cookie sessions.

All routes are mounted under `/auth`.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse

from faasr_backend.errors import ConfigurationMissing, InstallationPermissionsMissing, ValidationFailed
from faasr_backend.github.app_auth import validate_installation_permissions
from faasr_backend.logging import bind_request_context
from faasr_backend.server.dependencies import (
    current_session,
    get_app_auth,
    get_settings,
    open_github,
    require_session_codec,
)
from faasr_backend.server.models import (
    ApiFork,
    ApiUser,
    CallbackResponse,
    MessageResponse,
    SessionResponse,
)
from faasr_backend.services.fork import ForkService
from faasr_backend.session import SESSION_COOKIE_NAME, UserSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/install", response_class=RedirectResponse, status_code=302)
def install(request: Request) -> RedirectResponse:
    settings = get_settings(request)
    if not settings.github_client_id.strip():
        raise ConfigurationMissing("GitHub App client ID not configured")
    url = f"https://github.com/apps/{settings.github_app_slug}/installations/new?state=install"
    return RedirectResponse(url, status_code=302)


@router.get("/callback", response_model=CallbackResponse)
def callback(
    request: Request,
    response: Response,
    installation_id: str | None = Query(default=None),
) -> CallbackResponse:
    if not installation_id or not installation_id.strip():
        raise ValidationFailed("Missing installation_id parameter")
    installation_id = installation_id.strip()
    if not installation_id.isdigit():
        raise ValidationFailed("Invalid installation_id parameter")
    bind_request_context(installation_id=installation_id)

    settings = get_settings(request)
    codec = require_session_codec(request)
    app_auth = get_app_auth(request)

    installation = app_auth.get_installation(installation_id)
    check = validate_installation_permissions(installation)
    if not check.valid:
        logger.warning(
            "Installation is missing permissions",
            extra={"installation_id": installation_id, "missing": check.missing_permissions},
        )
        raise InstallationPermissionsMissing(check.missing_permissions)

    account = installation.account
    bind_request_context(owner=account.login)
    with open_github(request, installation_id) as github:
        service = ForkService(
            github=github,
            max_attempts=settings.fork_poll_max_attempts,
            delay_seconds=settings.fork_poll_delay_seconds,
        )
        fork = service.ensure_fork(account.login)

    token = codec.issue(
        installation_id=installation_id,
        user_login=account.login,
        user_id=account.id,
        avatar_url=account.avatar_url,
    )
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=codec.ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
    )

    logger.info(
        "Installation completed",
        extra={"installation_id": installation_id, "owner": account.login, "fork_status": fork.status},
    )
    return CallbackResponse(
        user=ApiUser(login=account.login, id=account.id, avatar_url=account.avatar_url),
        fork=ApiFork(
            owner=fork.owner,
            repo_name=fork.repo_name,
            url=fork.fork_url,
            status=fork.status,
        ),
    )


@router.get("/session", response_model=SessionResponse, response_model_exclude_none=True)
def session(current: UserSession | None = Depends(current_session)) -> SessionResponse:
    if current is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(
        authenticated=True,
        user=ApiUser(login=current.user_login, id=current.user_id, avatar_url=current.avatar_url),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, response: Response) -> MessageResponse:
    settings = get_settings(request)
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
    )
    return MessageResponse(message="Logged out successfully")
