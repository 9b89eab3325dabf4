"""Request-scoped collaborators resolved from `app.state`.

`create_app` puts the settings and the injected collaborators on
`app.state`; handlers reach them only through these helpers.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from fastapi import Depends, HTTPException, Request

from faasr_backend.config import BackendSettings
from faasr_backend.errors import AuthenticationRequired, ConfigurationMissing
from faasr_backend.github.app_auth import GitHubAppAuth
from faasr_backend.github.client import GitHubClient
from faasr_backend.identity import SupabaseIdentity
from faasr_backend.logging import bind_request_context
from faasr_backend.session import SessionCodec, UserSession, extract_session_token


GitHubClientFactory = Callable[[str], GitHubClient]


def get_settings(request: Request) -> BackendSettings:
    settings = getattr(request.app.state, "settings", None)
    if not isinstance(settings, BackendSettings):
        # create_app always sets this; fail loudly if a test app forgot to.
        raise HTTPException(status_code=500, detail="Server settings not configured")
    return settings


def get_session_codec(request: Request) -> SessionCodec | None:
    return getattr(request.app.state, "session_codec", None)


def require_session_codec(request: Request) -> SessionCodec:
    codec = get_session_codec(request)
    if codec is None:
        raise ConfigurationMissing("Session signing secret (JWT_SECRET) is not configured")
    return codec


def get_identity(request: Request) -> SupabaseIdentity | None:
    return getattr(request.app.state, "identity", None)


def get_app_auth(request: Request) -> GitHubAppAuth:
    injected = getattr(request.app.state, "app_auth", None)
    if injected is not None:
        return injected

    settings = get_settings(request)
    if not settings.has_github_app_credentials:
        raise ConfigurationMissing("GitHub App configuration missing")
    return GitHubAppAuth(
        app_id=settings.github_app_id,
        private_key=settings.github_private_key,
        base_url=settings.github_base_url,
    )


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def current_session(request: Request) -> UserSession | None:
    """Resolve the caller's session: identity-backend bearer token first, then the cookie."""

    identity = get_identity(request)
    bearer = _bearer_token(request)
    if identity is not None and bearer is not None:
        session = identity.resolve(bearer)
        if session is not None:
            return session

    codec = get_session_codec(request)
    token = extract_session_token(request.headers.get("cookie"))
    if codec is None or token is None:
        return None
    return codec.validate(token)


def require_session(session: UserSession | None = Depends(current_session)) -> UserSession:
    if session is None:
        raise AuthenticationRequired()
    bind_request_context(installation_id=session.installation_id, owner=session.user_login)
    return session


@contextmanager
def open_github(request: Request, installation_id: str) -> Iterator[GitHubClient]:
    """Yield a GitHub client authenticated as the given installation."""

    app_auth = get_app_auth(request)
    token = app_auth.get_installation_token(installation_id)
    factory: GitHubClientFactory = request.app.state.github_factory
    github = factory(token.token)
    try:
        yield github
    finally:
        github.close()
