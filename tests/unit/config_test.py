"""Unit tests for configuration management."""

import pytest
from pydantic import ValidationError

from datasentinel.config import Settings


class TestSettings:
    """Test configuration."""

    def test_defaults(self, tmp_path, monkeypatch):
        """Test default settings."""
        monkeypatch.chdir(tmp_path)
        settings = Settings()

        assert settings.api_url == "https://data.gov.in/api/3/action"
        assert settings.api_timeout == 30
        assert settings.download_timeout == 60
        assert settings.requests_per_hour == 1800
        assert settings.concurrent_requests == 5
        assert settings.retry_attempts == 5
        assert settings.relevance_threshold == 0.0
        assert settings.resource_limit == 3
        assert settings.mode == "search"

    def test_governance_flags_default_on(self, tmp_path, monkeypatch):
        """Every governance check is enabled unless switched off."""
        monkeypatch.chdir(tmp_path)
        settings = Settings()

        assert settings.respect_licenses
        assert settings.block_restricted_data
        assert settings.enable_audit_log
        assert settings.pii_detection
        assert settings.audit_log_capacity == 1000

    def test_null_credentials(self, tmp_path, monkeypatch):
        """Test credential null conversion."""
        monkeypatch.chdir(tmp_path)

        assert Settings(api_key="null").api_key is None
        assert Settings(api_key="none").api_key is None
        assert Settings(oauth_token="").oauth_token is None
        assert Settings(api_key="secret").api_key == "secret"

    def test_mode_is_normalized(self, tmp_path, monkeypatch):
        """Mode selector is lower-cased and stripped."""
        monkeypatch.chdir(tmp_path)

        assert Settings(mode=" Retrieve ").mode == "retrieve"

    def test_max_file_size_bytes(self, tmp_path, monkeypatch):
        """Megabyte ceiling converts to bytes."""
        monkeypatch.chdir(tmp_path)

        assert Settings(max_file_size_mb=2).max_file_size_bytes == 2 * 1024 * 1024

    def test_env_loading(self, tmp_path, monkeypatch):
        """Test loading from environment."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SENTINEL_REQUESTS_PER_HOUR", "600")
        monkeypatch.setenv("SENTINEL_CONCURRENT_REQUESTS", "2")
        monkeypatch.setenv("SENTINEL_OAUTH_TOKEN", "token-123")
        monkeypatch.setenv("SENTINEL_PII_DETECTION", "false")

        settings = Settings()

        assert settings.requests_per_hour == 600
        assert settings.concurrent_requests == 2
        assert settings.oauth_token == "token-123"
        assert settings.pii_detection is False

    def test_env_file_loading(self, tmp_path, monkeypatch):
        """Test loading from .env file."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("SENTINEL_MAX_RESULTS=7\nSENTINEL_QUERY=null\n")

        settings = Settings()

        assert settings.max_results == 7
        assert settings.query is None

    def test_rejects_non_positive_limits(self, tmp_path, monkeypatch):
        """Rate and concurrency must be positive."""
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ValidationError):
            Settings(requests_per_hour=0)
        with pytest.raises(ValidationError):
            Settings(concurrent_requests=0)
