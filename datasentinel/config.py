"""Pipeline configuration with environment variable support."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MODES = ("search", "retrieve", "analyze", "monitor")


class Settings(BaseSettings):
    """Sentinel configuration loaded from environment variables.

    Loads from environment (SENTINEL_*), .env file, or defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="SENTINEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API settings
    api_url: str = "https://data.gov.in/api/3/action"
    portal_url: str = "https://data.gov.in/resource"
    api_timeout: float = 30.0
    download_timeout: float = 60.0
    user_agent: str = "DataSentinel/1.0"

    # Authentication (bearer token wins when both are set)
    api_key: str | None = None
    oauth_token: str | None = None

    # Rate limiting
    requests_per_hour: int = Field(default=1800, ge=1)
    concurrent_requests: int = Field(default=5, ge=1)
    retry_attempts: int = Field(default=5, ge=1)
    backoff_base: float = 1.0
    backoff_max: float = 30.0

    # Discovery
    mode: str = "search"
    query: str | None = None
    max_results: int = Field(default=50, ge=1)
    page_size: int = Field(default=100, ge=1)
    relevance_threshold: float = 0.0

    # Acquisition
    include_resources: bool = False
    resource_limit: int = Field(default=3, ge=0)
    max_file_size_mb: int = Field(default=50, ge=1)
    batch_workers: int = Field(default=1, ge=1)

    # Governance
    respect_licenses: bool = True
    block_restricted_data: bool = True
    enable_audit_log: bool = True
    pii_detection: bool = True
    audit_log_capacity: int = Field(default=1000, ge=1)

    debug: bool = False

    @field_validator("api_key", "oauth_token", "query", mode="before")
    @classmethod
    def parse_null(cls, v: str | None) -> str | None:
        """Convert 'null' string to None."""
        if isinstance(v, str) and v.strip().lower() in ("null", "none", ""):
            return None
        return v

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, v: str) -> str:
        """Lower-case the mode selector; unknown modes fail when the run starts."""
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def max_file_size_bytes(self) -> int:
        """Per-resource byte ceiling."""
        return self.max_file_size_mb * 1024 * 1024
