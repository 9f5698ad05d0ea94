"""
Unit tests for environment-driven configuration.
"""
import pytest
from pathlib import Path

from depwatch.config import ConfigError, DepwatchConfig, get_config


class TestDepwatchConfig:
    """Test configuration loading from environment."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for key in ("POSTGRES_URL", "DEPWATCH_BACKEND", "DEPWATCH_SQLITE_PATH",
                    "DEPWATCH_PORT", "DEPWATCH_TARGET", "GITHUB_API_KEY"):
            monkeypatch.delenv(key, raising=False)

    def test_defaults_to_sqlite_without_postgres_url(self):
        config = get_config()

        assert config.backend == "sqlite"
        assert config.sqlite_path == Path.home() / ".depwatch" / "repositories.db"
        assert config.port == 8000
        assert config.target_path is None

    def test_defaults_to_postgres_when_url_set(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_URL", "postgresql://u:p@localhost/db")

        config = DepwatchConfig()

        assert config.backend == "postgres"
        assert config.postgres_url == "postgresql://u:p@localhost/db"

    def test_postgres_backend_requires_url(self, monkeypatch):
        monkeypatch.setenv("DEPWATCH_BACKEND", "postgres")

        with pytest.raises(ConfigError, match="POSTGRES_URL"):
            DepwatchConfig()

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("DEPWATCH_BACKEND", "mysql")

        with pytest.raises(ConfigError, match="Unknown DEPWATCH_BACKEND"):
            DepwatchConfig()

    def test_invalid_port_rejected(self, monkeypatch):
        monkeypatch.setenv("DEPWATCH_PORT", "eighty")

        with pytest.raises(ConfigError):
            DepwatchConfig()

    def test_sqlite_path_and_target_expanded(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEPWATCH_SQLITE_PATH", str(tmp_path / "db.sqlite"))
        monkeypatch.setenv("DEPWATCH_TARGET", str(tmp_path / "target.yaml"))

        config = DepwatchConfig()

        assert config.sqlite_path == tmp_path / "db.sqlite"
        assert config.target_path == tmp_path / "target.yaml"

    def test_github_api_key_fallback(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GITHUB_API_KEY", "fallback-key")

        assert DepwatchConfig().require_github_token() == "fallback-key"

    def test_missing_token_raises(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)

        with pytest.raises(ConfigError, match="GITHUB_TOKEN"):
            DepwatchConfig().require_github_token()
