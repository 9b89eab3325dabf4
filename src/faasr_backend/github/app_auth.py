"""GitHub App authentication: installation tokens and installation checks.

Wraps PyGithub's :class:`GithubIntegration` so the HTTP layer never deals with
app JWTs directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from github import Auth, GithubException, GithubIntegration
from pydantic import ValidationError

from faasr_backend.github.client import GitHubAPIError, GitHubDecodeError
from faasr_backend.github.models import InstallationPayload

logger = logging.getLogger(__name__)

# contents: create forks and commit files
# actions: trigger workflow_dispatch events
# metadata: basic repository metadata (always granted)
REQUIRED_PERMISSIONS: dict[str, str] = {
    "contents": "write",
    "actions": "write",
    "metadata": "read",
}


@dataclass(frozen=True, slots=True)
class InstallationToken:
    token: str
    expires_at: datetime | None


@dataclass(frozen=True, slots=True)
class PermissionCheck:
    valid: bool
    missing_permissions: list[str]


def normalize_private_key(raw: str) -> str:
    """Accept PEM keys stored with literal '\\n' escapes (common in env files)."""

    key = raw.strip().strip('"')
    if "\\n" in key:
        key = key.replace("\\n", "\n")
    return key


def validate_installation_permissions(installation: InstallationPayload) -> PermissionCheck:
    missing = [
        f"{name}:{level}"
        for name, level in REQUIRED_PERMISSIONS.items()
        if installation.permissions.get(name) != level
    ]
    return PermissionCheck(valid=not missing, missing_permissions=missing)


class GitHubAppAuth:
    """Installation-scoped operations for a single GitHub App."""

    def __init__(
        self,
        *,
        app_id: str,
        private_key: str,
        base_url: str = "https://api.github.com",
        integration: GithubIntegration | None = None,
    ) -> None:
        if integration is not None:
            self._integration = integration
            return

        if not app_id.strip() or not private_key.strip():
            raise ValueError("GitHub App id and private key are required")
        auth = Auth.AppAuth(app_id.strip(), normalize_private_key(private_key))
        self._integration = GithubIntegration(auth=auth, base_url=base_url.rstrip("/"))

    @staticmethod
    def _installation_number(installation_id: str) -> int:
        try:
            return int(installation_id)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid installation id: {installation_id!r}") from e

    def get_installation_token(self, installation_id: str) -> InstallationToken:
        number = self._installation_number(installation_id)
        try:
            authorization = self._integration.get_access_token(number)
        except GithubException as e:
            raise _as_api_error(e) from e

        token = getattr(authorization, "token", None)
        if not isinstance(token, str) or not token:
            raise GitHubDecodeError("Invalid installation token response from GitHub API")
        logger.debug("Issued installation token", extra={"installation_id": number})
        return InstallationToken(token=token, expires_at=getattr(authorization, "expires_at", None))

    def get_installation(self, installation_id: str) -> InstallationPayload:
        number = self._installation_number(installation_id)
        try:
            installation = self._integration.get_app_installation(number)
            raw = installation.raw_data
        except GithubException as e:
            raise _as_api_error(e) from e

        try:
            return InstallationPayload.model_validate(raw)
        except ValidationError as e:
            raise GitHubDecodeError("Invalid installation data response from GitHub API") from e


def _as_api_error(error: GithubException) -> GitHubAPIError:
    data = error.data if isinstance(error.data, dict) else {}
    message = data.get("message") if isinstance(data.get("message"), str) else str(error)
    return GitHubAPIError(message, error.status)
