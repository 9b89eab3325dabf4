"""Bearer-token sessions backed by the Supabase Auth identity service.

Deployments that front the backend with Supabase Auth send the user's access
token as `Authorization: Bearer ...`. The GitHub identity lives in the user's
metadata, written when the installation was registered.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import jwt
import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from faasr_backend.session import UserSession

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10


class _GitHubMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True)

    installation_id: str = Field(alias="installationId")
    github_login: str = Field(alias="githubLogin")
    github_id: int = Field(alias="githubId")
    avatar_url: str | None = Field(default=None, alias="avatarUrl")


class _IdentityUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    created_at: datetime
    user_metadata: _GitHubMetadata


def _token_expiry(token: str) -> datetime | None:
    # The identity service already verified the token; the claim is informational.
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None
    exp = claims.get("exp")
    if isinstance(exp, int):
        return datetime.fromtimestamp(exp, tz=UTC)
    return None


class SupabaseIdentity:
    """Resolve identity-backend access tokens into user sessions."""

    def __init__(
        self,
        *,
        url: str,
        anon_key: str,
        session: requests.Session | None = None,
    ) -> None:
        if not url.strip() or not anon_key.strip():
            raise ValueError("Supabase URL and anon key are required")
        self._user_url = f"{url.strip().rstrip('/')}/auth/v1/user"
        self._anon_key = anon_key.strip()
        self._session = session or requests.Session()

    def resolve(self, token: str) -> UserSession | None:
        if not token.strip():
            return None
        try:
            resp = self._session.get(
                self._user_url,
                headers={"apikey": self._anon_key, "Authorization": f"Bearer {token}"},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException:
            logger.warning("Identity backend unreachable", exc_info=True)
            return None

        if resp.status_code != 200:
            logger.debug("Bearer token rejected", extra={"status_code": resp.status_code})
            return None

        try:
            user = _IdentityUser.model_validate(resp.json())
        except (ValueError, ValidationError):
            logger.info("Identity user lacks GitHub installation metadata")
            return None

        meta = user.user_metadata
        return UserSession(
            installation_id=meta.installation_id,
            user_login=meta.github_login,
            user_id=meta.github_id,
            avatar_url=meta.avatar_url,
            issued_at=user.created_at,
            expires_at=_token_expiry(token),
        )

    def close(self) -> None:
        self._session.close()
