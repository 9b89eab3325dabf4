"""Configuration for the backend.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

The server is allowed to start without GitHub App credentials or a session
secret. Endpoints that need them validate at request time and answer with a
configuration error instead.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_JWT_SECRET_LENGTH = 32


class BackendSettings(BaseSettings):
    """Settings for the REST API.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `BackendSettings(_env_file=None)`.
    """

    github_app_id: str = Field(
        default="",
        validation_alias="GITHUB_APP_ID",
        description="GitHub App ID from the app settings page",
    )
    github_private_key: str = Field(
        default="",
        validation_alias="GITHUB_PRIVATE_KEY",
        description="GitHub App private key (PEM). Literal '\\n' escapes are accepted.",
    )
    github_client_id: str = Field(default="", validation_alias="GITHUB_CLIENT_ID")
    github_client_secret: str = Field(default="", validation_alias="GITHUB_CLIENT_SECRET")
    github_app_slug: str = Field(
        default="faasr",
        validation_alias="GITHUB_APP_SLUG",
        description="Public slug of the GitHub App, used to build the installation URL",
    )
    github_base_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_BASE_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    jwt_secret: str = Field(
        default="",
        validation_alias="JWT_SECRET",
        description=f"HS256 secret for session tokens (minimum {MIN_JWT_SECRET_LENGTH} characters)",
    )
    session_cookie_secure: bool = Field(
        default=True,
        validation_alias="SESSION_COOKIE_SECURE",
        description="Set the Secure flag on the session cookie. Disable only for plain-http dev.",
    )

    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_anon_key: str = Field(default="", validation_alias="SUPABASE_ANON_KEY")

    fork_poll_max_attempts: int = Field(
        default=30,
        validation_alias="FORK_POLL_MAX_ATTEMPTS",
        description="How many times to check for a freshly requested fork before giving up.",
        ge=1,
        le=300,
    )
    fork_poll_delay_seconds: float = Field(
        default=1.0,
        validation_alias="FORK_POLL_DELAY_SECONDS",
        description="Fixed delay (seconds) between fork readiness checks.",
        ge=0,
    )

    cors_allow_origin: str = Field(
        default="*",
        validation_alias="CORS_ALLOW_ORIGIN",
        description="Comma-separated list of allowed CORS origins, or '*'.",
    )
    cors_allow_credentials: bool = Field(default=False, validation_alias="CORS_ALLOW_CREDENTIALS")

    # Edge-function deployments serve every route under /functions/v1.
    api_prefix: str = Field(default="", validation_alias="API_PREFIX")

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("jwt_secret")
    @classmethod
    def _check_jwt_secret_length(cls, value: str) -> str:
        if value and len(value) < MIN_JWT_SECRET_LENGTH:
            raise ValueError(f"JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters long")
        return value

    @field_validator("api_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value

    @property
    def has_github_app_credentials(self) -> bool:
        return bool(self.github_app_id.strip() and self.github_private_key.strip())

    @property
    def has_identity_backend(self) -> bool:
        return bool(self.supabase_url.strip() and self.supabase_anon_key.strip())

    def parsed_cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.cors_allow_origin.split(",") if o.strip()]
        return origins or ["*"]

    def configuration_warnings(self) -> list[str]:
        """Describe missing or unsafe settings, one line each."""

        warnings: list[str] = []
        if not self.github_app_id.strip():
            warnings.append("GITHUB_APP_ID is not set")
        if not self.github_private_key.strip():
            warnings.append("GITHUB_PRIVATE_KEY is not set")
        if not self.github_client_id.strip():
            warnings.append("GITHUB_CLIENT_ID is not set")
        if not self.github_client_secret.strip():
            warnings.append("GITHUB_CLIENT_SECRET is not set")
        if not self.jwt_secret:
            warnings.append("JWT_SECRET is not set; cookie sessions are disabled")
        if self.cors_allow_credentials and "*" in self.parsed_cors_origins():
            warnings.append(
                "CORS_ALLOW_CREDENTIALS is true but CORS_ALLOW_ORIGIN includes '*'; "
                "browsers reject credentialed requests to wildcard origins"
            )
        return warnings
