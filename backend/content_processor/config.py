"""
Settings for the Content Processor backend.

Values come from environment variables (case-insensitive) or a ``.env`` file
and are validated once at startup through pydantic-settings. Groups:
application and HTTP, MongoDB, local upload storage, bearer tokens and the
OIDC identity provider.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
APP_ENVIRONMENTS = ("development", "staging", "production", "testing")
JWT_ALGORITHMS = ("HS256", "HS384", "HS512")


def _one_of(field: str, value: str, allowed: tuple[str, ...]) -> str:
    if value not in allowed:
        raise ValueError(f"{field} must be one of {', '.join(allowed)}, got '{value}'")
    return value


class Settings(BaseSettings):
    """
    Content Processor settings.

    Groups:
    - Application: name, environment, debug, logging, HTTP binding, CORS
    - MongoDB: URI, database name, pool sizes
    - Storage: Upload directory and size limit
    - JWT: Local bearer token signing parameters
    - OIDC: External identity provider used for login

    Example usage:
        ```python
        from content_processor.config import get_settings

        settings = get_settings()
        print(f"Storing uploads under: {settings.upload_path}")
        print(f"OIDC enabled: {settings.is_oidc_enabled}")
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="content-processor",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode with hot-reload")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    log_json: bool = Field(
        default=False, description="Emit structured JSON logs instead of plain text"
    )

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Secret key used to sign locally issued bearer tokens",
        min_length=32,
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8080, description="Port number for the API server", ge=1, le=65535)

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="List of allowed CORS origins for frontend access",
    )

    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Frontend base URL that receives the bearer token after OIDC login",
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017)",
    )

    mongodb_db_name: str = Field(
        default="content_processor", description="MongoDB database name"
    )

    mongodb_min_pool_size: int = Field(
        default=1, description="Minimum number of connections in MongoDB connection pool", ge=0
    )

    mongodb_max_pool_size: int = Field(
        default=50, description="Maximum number of connections in MongoDB connection pool", ge=1
    )

    # =========================================================================
    # File Storage Settings
    # =========================================================================

    upload_dir: str = Field(
        default="uploads",
        description="Directory for locally stored uploads (relative paths resolve from CWD)",
    )

    max_upload_size_mb: int = Field(
        default=500,
        description="Maximum file upload size in megabytes",
        ge=1,
        le=500,
    )

    # =========================================================================
    # JWT Configuration
    # =========================================================================

    jwt_algorithm: str = Field(
        default="HS256", description="Signing algorithm for locally issued tokens"
    )

    jwt_expiration_hours: int = Field(
        default=24, description="Bearer token expiration time in hours", ge=1, le=168
    )

    # =========================================================================
    # OIDC Configuration
    # =========================================================================

    oidc_provider: str = Field(
        default="microsoft",
        description="Provider tag recorded on users created through OIDC login",
    )

    oidc_issuer: str | None = Field(
        default=None,
        description="OIDC issuer URL (e.g., https://login.microsoftonline.com/<tenant>/v2.0)",
    )

    oidc_client_id: str | None = Field(default=None, description="OIDC client ID")

    oidc_client_secret: str | None = Field(default=None, description="OIDC client secret")

    oidc_redirect_uri: str = Field(
        default="http://localhost:8080/auth/callback",
        description="Redirect URI registered with the identity provider",
    )

    oidc_scopes: str = Field(
        default="openid profile email", description="Space separated OIDC scopes"
    )

    oidc_authorization_endpoint: str | None = Field(
        default=None, description="Overrides the discovered authorization endpoint"
    )

    oidc_token_endpoint: str | None = Field(
        default=None, description="Overrides the discovered token endpoint"
    )

    oidc_jwks_uri: str | None = Field(
        default=None, description="Overrides the discovered JWKS endpoint"
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return _one_of("log_level", v.lower(), LOG_LEVELS)

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        return _one_of("app_env", v.lower(), APP_ENVIRONMENTS)

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Locally issued tokens are always HMAC signed."""
        return _one_of("jwt_algorithm", v.upper(), JWT_ALGORITHMS)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Accept a comma separated string, as set through the environment."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("frontend_url")
    @classmethod
    def validate_frontend_url(cls, v: str) -> str:
        return v.rstrip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_oidc_enabled(self) -> bool:
        """
        Check if OIDC login is fully configured.

        Returns True when issuer, client ID and client secret are all set.
        Endpoint overrides are optional; missing ones are discovered from the
        issuer's ``/.well-known/openid-configuration`` document.
        """
        return all([self.oidc_issuer, self.oidc_client_id, self.oidc_client_secret])

    @property
    def max_upload_size_bytes(self) -> int:
        """Maximum upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def upload_path(self) -> Path:
        """Absolute, normalized storage root for uploaded files."""
        return Path(self.upload_dir).expanduser().resolve()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    return Settings()
