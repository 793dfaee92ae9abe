"""
Configuration module for the rolegate service.

This module uses Pydantic Settings to load and validate environment variables
for the identity provider (OAuth login and Management API), signed sessions,
and CORS settings.

Environment variables are loaded from .env file or system environment.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Identity provider credentials are optional: when any of them is missing
    the Management API features degrade to "unavailable" instead of stopping
    the process.
    """

    # =========================================================================
    # Identity Provider (Auth0) Configuration
    # =========================================================================

    AUTH0_DOMAIN: Optional[str] = Field(
        None,
        description="Tenant domain without scheme (e.g., example.eu.auth0.com)",
    )

    AUTH0_CLIENT_ID: Optional[str] = Field(
        None,
        description="Application client ID (used for login and Management API)",
    )

    AUTH0_CLIENT_SECRET: Optional[str] = Field(
        None,
        description="Application client secret",
    )

    AUTH0_REDIRECT_URI: str = Field(
        default="http://localhost:8080/auth/callback",
        description="OAuth redirect URI registered with the provider",
        min_length=1,
    )

    AUTH0_SCOPE: str = Field(
        default="openid profile email",
        description="Scopes requested during login",
    )

    AUTH0_ROLES_CLAIM: str = Field(
        default="roles",
        description="User info claim carrying role names, when a login rule adds one",
    )

    # =========================================================================
    # Session Configuration
    # =========================================================================

    SESSION_SECRET: str = Field(
        ...,
        description="Secret for signing session cookies and session JWTs",
        min_length=32,
    )

    SESSION_JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, or HS512)",
    )

    SESSION_JWT_EXPIRY_MINUTES: int = Field(
        default=60 * 24 * 7,
        description="Session lifetime in minutes",
        ge=5,
        le=60 * 24 * 30,
    )

    SESSION_COOKIE_NAME: str = Field(
        default="rolegate-session",
        description="Name of the signed session cookie",
    )

    SESSION_HTTPS_ONLY: bool = Field(
        default=False,
        description="Mark the session cookie Secure",
    )

    # =========================================================================
    # Redirects
    # =========================================================================

    POST_LOGIN_REDIRECT: str = Field(
        default="/",
        description="Where the browser goes after a successful login",
    )

    LOGIN_PAGE_URL: str = Field(
        default="/login",
        description="Where the browser goes after a failed login",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(default="0.0.0.0")

    PORT: int = Field(default=8080, ge=1, le=65535)

    LOG_LEVEL: str = Field(default="INFO")

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    MANAGEMENT_HTTP_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for identity provider HTTP calls",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse ALLOWED_ORIGINS into a list (empty when unset)."""
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def auth0_base_url(self) -> str:
        """
        Base URL of the identity provider tenant.

        Returns:
            ``https://{domain}`` without trailing slash, or an empty string
            when the domain is not configured.
        """
        if not self.AUTH0_DOMAIN:
            return ""
        return f"https://{self.AUTH0_DOMAIN}"

    @property
    def management_api_base(self) -> str:
        return f"{self.auth0_base_url}/api/v2"

    @property
    def management_audience(self) -> str:
        return f"{self.auth0_base_url}/api/v2/"

    @property
    def management_configured(self) -> bool:
        """True when domain, client id and client secret are all present."""
        return bool(self.AUTH0_DOMAIN and self.AUTH0_CLIENT_ID and self.AUTH0_CLIENT_SECRET)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("AUTH0_DOMAIN")
    @classmethod
    def normalize_domain(cls, v: Optional[str]) -> Optional[str]:
        """
        Strip scheme and trailing slash from the tenant domain.

        Args:
            v: Raw domain value

        Returns:
            Bare host name, or None when empty
        """
        if v is None:
            return None

        v = v.strip()
        for prefix in ("https://", "http://"):
            if v.lower().startswith(prefix):
                v = v[len(prefix):]
        v = v.rstrip("/")
        return v or None

    @field_validator("SESSION_JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


def validate_configuration(settings: Optional[Settings] = None) -> dict:
    """
    Validate configuration and return a status report.

    Called during startup so operators see degraded features in the logs
    instead of discovering them on the first admin request.

    Returns:
        Dictionary with validation status, errors and warnings.
    """
    settings = settings or get_settings()
    errors = []
    warnings = []

    if not settings.management_configured:
        missing = [
            name
            for name in ("AUTH0_DOMAIN", "AUTH0_CLIENT_ID", "AUTH0_CLIENT_SECRET")
            if not getattr(settings, name)
        ]
        warnings.append(
            f"Management API unavailable, missing: {', '.join(missing)}"
        )

    if not settings.AUTH0_DOMAIN or not settings.AUTH0_CLIENT_ID:
        errors.append("Login is unavailable without AUTH0_DOMAIN and AUTH0_CLIENT_ID")

    if not settings.SESSION_HTTPS_ONLY and not settings.AUTH0_REDIRECT_URI.startswith("http://localhost"):
        warnings.append("SESSION_HTTPS_ONLY is disabled for a non-local redirect URI")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "management_configured": settings.management_configured,
        "session_expiry_minutes": settings.SESSION_JWT_EXPIRY_MINUTES,
    }
