"""Session tokens.

A session is an HS256 JWT carrying the installation id and the GitHub account
that installed the app. Nothing is stored server-side: the session is rebuilt
from the token on every request.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import unquote

import jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

SESSION_COOKIE_NAME = "faasr_session"
SESSION_TTL_SECONDS = 24 * 60 * 60
JWT_ALGORITHM = "HS256"


@dataclass(frozen=True, slots=True)
class UserSession:
    installation_id: str
    user_login: str
    user_id: int
    avatar_url: str | None
    issued_at: datetime
    expires_at: datetime | None


class _SessionClaims(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True)

    installation_id: str = Field(alias="installationId")
    user_login: str = Field(alias="userLogin")
    user_id: int = Field(alias="userId")
    avatar_url: str | None = Field(default=None, alias="avatarUrl")
    iat: int
    exp: int


class SessionCodec:
    """Issue and validate signed session tokens."""

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("Session secret is required")
        self._secret = secret
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(
        self,
        *,
        installation_id: str,
        user_login: str,
        user_id: int,
        avatar_url: str | None = None,
    ) -> str:
        now = int(self._clock())
        payload: dict[str, object] = {
            "installationId": installation_id,
            "userLogin": user_login,
            "userId": user_id,
            "iat": now,
            "exp": now + self._ttl_seconds,
        }
        if avatar_url is not None:
            payload["avatarUrl"] = avatar_url
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def validate(self, token: str) -> UserSession | None:
        """Return the session for a token, or None if it is expired, tampered or malformed."""

        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["iat", "exp"], "verify_exp": False, "verify_iat": False},
            )
            claims = _SessionClaims.model_validate(decoded)
        except (jwt.InvalidTokenError, ValidationError):
            return None

        # Expiry is checked against the injected clock rather than PyJWT's wall clock.
        if claims.exp <= int(self._clock()):
            return None

        return UserSession(
            installation_id=claims.installation_id,
            user_login=claims.user_login,
            user_id=claims.user_id,
            avatar_url=claims.avatar_url,
            issued_at=datetime.fromtimestamp(claims.iat, tz=UTC),
            expires_at=datetime.fromtimestamp(claims.exp, tz=UTC),
        )


def extract_session_token(cookie_header: str | None) -> str | None:
    """Find the session cookie in a raw `Cookie` header."""

    if not cookie_header:
        return None
    for pair in cookie_header.split(";"):
        name, sep, value = pair.strip().partition("=")
        if sep and name == SESSION_COOKIE_NAME and value:
            return unquote(value)
    return None
