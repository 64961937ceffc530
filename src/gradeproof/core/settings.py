"""Application settings and configuration.

This module defines all configuration options for the gradeproof application.
Settings are loaded from environment variables with sensible defaults.
"""

from datetime import UTC, datetime

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CLIENT_SECRET = "gradeproof-client-secret-change-in-production"


def _current_year() -> str:
    return str(datetime.now(UTC).year)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="gradeproof", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database and storage
    database_url: str = Field(default="sqlite:///./gradeproof.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    upload_dir: str = Field(default="./uploads", alias="UPLOAD_DIR")

    # Client video access (token store and rate limiter)
    client_secret: str = Field(default=DEFAULT_CLIENT_SECRET, alias="CLIENT_SECRET")
    client_token_ttl_seconds: int = Field(default=60 * 60, alias="CLIENT_TOKEN_TTL_SECONDS")
    client_max_attempts: int = Field(default=5, alias="CLIENT_MAX_ATTEMPTS")
    client_block_seconds: int = Field(default=60 * 60, alias="CLIENT_BLOCK_SECONDS")
    client_captcha_answer: str = Field(
        default_factory=_current_year,
        alias="CLIENT_CAPTCHA_ANSWER",
    )
    upload_token_ttl_seconds: int = Field(default=24 * 60 * 60, alias="UPLOAD_TOKEN_TTL_SECONDS")
    session_sweep_interval_seconds: float = Field(
        default=10 * 60,
        alias="SESSION_SWEEP_INTERVAL_SECONDS",
    )

    # Video capture
    max_recording_seconds: int = Field(default=2 * 60, alias="MAX_RECORDING_SECONDS")
    recording_chunk_seconds: float = Field(default=1.0, alias="RECORDING_CHUNK_SECONDS")
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    upload_slice_bytes: int = Field(default=64 * 1024, alias="UPLOAD_SLICE_BYTES")
    capture_api_base_url: str = Field(
        default="http://localhost:8000",
        alias="CAPTURE_API_BASE_URL",
    )
    capture_http_timeout_seconds: float = Field(
        default=30.0,
        alias="CAPTURE_HTTP_TIMEOUT_SECONDS",
    )
    qr_fetch_timeout_seconds: float = Field(default=5.0, alias="QR_FETCH_TIMEOUT_SECONDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def uses_default_secret(self) -> bool:
        """Return True if the token signing secret was never configured."""
        return self.client_secret == DEFAULT_CLIENT_SECRET


settings = Settings()
