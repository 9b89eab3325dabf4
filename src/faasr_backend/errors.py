"""Error taxonomy for the backend.

Each error carries the HTTP status it maps to; the app-level exception handler
renders them as `{"success": false, "error": ..., "details": ...}`.
"""

from __future__ import annotations


class BackendError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "An error occurred"

    def __init__(self, message: str | None = None, *, details: list[str] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class AuthenticationRequired(BackendError):
    status_code = 401
    default_message = "Authentication required"


class ValidationFailed(BackendError):
    """Input validation failed; `details` holds every collected message."""

    status_code = 400
    default_message = "Invalid request"

    def __init__(self, message: str | None = None, errors: list[str] | None = None) -> None:
        super().__init__(message, details=list(errors) if errors else None)

    @property
    def errors(self) -> list[str]:
        return list(self.details or [])


class NotFound(BackendError):
    status_code = 404
    default_message = "Not found"


class InstallationPermissionsMissing(BackendError):
    status_code = 403
    default_message = "Missing required permissions"

    def __init__(self, missing: list[str]) -> None:
        super().__init__(details=list(missing))


class ConfigurationMissing(BackendError):
    status_code = 500
    default_message = "Configuration error: required settings are missing"


class UpstreamFailure(BackendError):
    """An external platform failed or answered with something unusable."""

    status_code = 502
    default_message = "GitHub is experiencing server issues. Please try again in a few minutes."


class ForkNotReady(UpstreamFailure):
    """The fork did not become visible within the polling budget."""

    def __init__(self, *, owner: str, repo_name: str, attempts: int, elapsed_seconds: float) -> None:
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            f"Fork for {owner}/{repo_name} is not ready after {attempts} attempts "
            f"({elapsed_seconds:g}s)"
        )
