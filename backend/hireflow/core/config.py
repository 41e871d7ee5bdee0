"""Application configuration loaded from environment variables.

Settings for database, API, identity protection, onboarding session
lifecycle, and object storage. Uses pydantic-settings for validation and
.env file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure defaults that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "hireflow_dev_password"  # nosec B105
_INSECURE_DEFAULT_IDENTITY_SECRET = "hireflow-dev-identity-secret-change-me"  # nosec B105

# Minimum length for IDENTITY_HASH_SECRET in production (256 bits = 32 bytes)
_MIN_IDENTITY_SECRET_LENGTH = 32

# Upper bound on a single expired-session cleanup batch
MAX_CLEANUP_BATCH_LIMIT = 5000


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "hireflow"
    database_user: str = "hireflow_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # Production: Set ALLOWED_ORIGINS to the applicant portal domain(s)
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Identity protection
    # The hash secret keys the lookup HMAC; the encryption key is a Fernet key
    # (urlsafe base64, 32 bytes). Outside production an empty key is derived
    # from the hash secret so local runs need no extra setup.
    identity_hash_secret: SecretStr = SecretStr(_INSECURE_DEFAULT_IDENTITY_SECRET)
    identity_encryption_key: SecretStr = SecretStr("")

    # Onboarding session lifecycle
    resume_ttl_hours: int = 72
    cleanup_batch_limit: int = 500

    # Object storage
    # "memory" keeps objects in-process (local development and tests)
    storage_backend: Literal["memory", "s3"] = "memory"
    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    s3_endpoint_url: str = ""
    storage_temp_prefix: str = "temp-files"
    storage_submissions_prefix: str = "submissions"
    presign_expiry_seconds: int = 300
    max_upload_mb: int = 10

    # Object storage retry (transient S3 errors)
    storage_max_retries: int = 3
    storage_retry_base_delay_ms: int = 200
    storage_retry_max_delay_ms: int = 5000

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def max_upload_bytes(self) -> int:
        """Upload size limit in bytes."""
        return self.max_upload_mb * 1024 * 1024

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants and production security.

        Security: Prevents deployment with known insecure defaults.
        Checks:
        - Resume TTL, upload limit and cleanup batch limit are in range
        - Temp and submissions prefixes are distinct and non-empty
        - CORS must not use wildcard origin
        - S3 backend requires a bucket
        - Production: no default database password, a strong identity hash
          secret, and an explicit identity encryption key
        """
        if self.resume_ttl_hours <= 0:
            msg = f"RESUME_TTL_HOURS must be positive. Got: {self.resume_ttl_hours}"
            raise ValueError(msg)

        if self.max_upload_mb <= 0:
            msg = f"MAX_UPLOAD_MB must be positive. Got: {self.max_upload_mb}"
            raise ValueError(msg)

        if not 1 <= self.cleanup_batch_limit <= MAX_CLEANUP_BATCH_LIMIT:
            msg = (
                f"CLEANUP_BATCH_LIMIT must be between 1 and {MAX_CLEANUP_BATCH_LIMIT}. "
                f"Got: {self.cleanup_batch_limit}"
            )
            raise ValueError(msg)

        temp = self.storage_temp_prefix.strip("/")
        final = self.storage_submissions_prefix.strip("/")
        if not temp or not final or temp == final:
            msg = (
                "STORAGE_TEMP_PREFIX and STORAGE_SUBMISSIONS_PREFIX must be "
                "non-empty and different."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "List the applicant portal origins explicitly."
            )
            raise ValueError(msg)

        if self.storage_backend == "s3" and not self.s3_bucket:
            msg = "S3_BUCKET must be set when STORAGE_BACKEND=s3."
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.identity_hash_secret.get_secret_value()
            if (
                secret_value == _INSECURE_DEFAULT_IDENTITY_SECRET
                or len(secret_value) < _MIN_IDENTITY_SECRET_LENGTH
            ):
                msg = (
                    f"IDENTITY_HASH_SECRET must be set to at least "
                    f"{_MIN_IDENTITY_SECRET_LENGTH} characters in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

            if not self.identity_encryption_key.get_secret_value():
                msg = (
                    "IDENTITY_ENCRYPTION_KEY must be set in production. "
                    'Generate with: python -c "from cryptography.fernet import '
                    'Fernet; print(Fernet.generate_key().decode())"'
                )
                raise ValueError(msg)

        return self


settings = Settings()
