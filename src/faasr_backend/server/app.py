"""FastAPI app factory.

Endpoints are thin wrappers over the services in :mod:`faasr_backend.services`.
Collaborators can be injected for tests; otherwise they are built from settings.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import uuid4

import requests
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from faasr_backend import __version__
from faasr_backend.config import BackendSettings
from faasr_backend.errors import BackendError
from faasr_backend.github.app_auth import GitHubAppAuth
from faasr_backend.github.client import (
    GitHubAPIError,
    GitHubClient,
    GitHubDecodeError,
    describe_github_error,
)
from faasr_backend.identity import SupabaseIdentity
from faasr_backend.logging import request_context
from faasr_backend.server.auth_router import router as auth_router
from faasr_backend.server.dependencies import GitHubClientFactory
from faasr_backend.server.models import ErrorResponse, HealthResponse
from faasr_backend.server.workflows_router import router as workflows_router
from faasr_backend.session import SessionCodec

logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, details: list[str] | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


class RequestContextMiddleware:
    """Scope a logging context (request id, method, path) around each HTTP request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        with request_context(
            request_id=uuid4().hex[:12], method=scope["method"], path=scope["path"]
        ):
            await self.app(scope, receive, send)


def _describe_validation_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = error.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [_describe_validation_error(error) for error in exc.errors()]
        logger.info("Request rejected", extra={"path": request.url.path, "errors": details})
        return _error_response(400, "Invalid request", details)

    @app.exception_handler(BackendError)
    async def backend_error(request: Request, exc: BackendError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                extra={"path": request.url.path, "error": exc.message, "status_code": exc.status_code},
            )
        return _error_response(exc.status_code, exc.message, exc.details)

    @app.exception_handler(GitHubAPIError)
    async def github_error(request: Request, exc: GitHubAPIError) -> JSONResponse:
        logger.warning(
            "GitHub API error",
            extra={"path": request.url.path, "github_status": exc.status_code, "error": exc.message},
        )
        status_code = 502 if exc.status_code >= 500 else 500
        return _error_response(status_code, describe_github_error(exc))

    @app.exception_handler(GitHubDecodeError)
    async def github_decode_error(request: Request, exc: GitHubDecodeError) -> JSONResponse:
        logger.warning("GitHub response rejected", extra={"path": request.url.path, "error": str(exc)})
        return _error_response(502, str(exc))

    @app.exception_handler(requests.RequestException)
    async def network_error(request: Request, exc: requests.RequestException) -> JSONResponse:
        logger.warning("GitHub unreachable", extra={"path": request.url.path}, exc_info=exc)
        return _error_response(502, "Network error: unable to reach GitHub. Please try again.")

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path}, exc_info=exc)
        return _error_response(500, "Internal server error")


def create_app(
    settings: BackendSettings | None = None,
    *,
    app_auth: GitHubAppAuth | None = None,
    github_factory: GitHubClientFactory | None = None,
    identity: SupabaseIdentity | None = None,
) -> FastAPI:
    settings = settings or BackendSettings()

    app = FastAPI(
        title="FaaSr Backend",
        version=__version__,
        description="GitHub App installation, workflow upload and registration status for FaaSr.",
    )

    app.state.settings = settings
    app.state.app_auth = app_auth
    app.state.session_codec = SessionCodec(settings.jwt_secret) if settings.jwt_secret else None
    if identity is None and settings.has_identity_backend:
        identity = SupabaseIdentity(url=settings.supabase_url, anon_key=settings.supabase_anon_key)
    app.state.identity = identity
    app.state.github_factory = github_factory or (
        lambda token: GitHubClient(token=token, base_url=settings.github_base_url)
    )

    for warning in settings.configuration_warnings():
        logger.warning("Configuration warning", extra={"warning": warning})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )
    app.add_middleware(RequestContextMiddleware)

    _install_error_handlers(app)

    prefixes = [""]
    if settings.api_prefix:
        prefixes.append(settings.api_prefix)

    for prefix in prefixes:
        app.include_router(auth_router, prefix=prefix)
        app.include_router(workflows_router, prefix=prefix)
        app.add_api_route(
            f"{prefix}/health",
            health,
            methods=["GET"],
            response_model=HealthResponse,
            include_in_schema=not prefix,
        )

    return app


def health() -> HealthResponse:
    return HealthResponse(status="healthy", timestamp=datetime.now(tz=UTC), version=__version__)
