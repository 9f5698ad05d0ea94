"""
Configuration for depwatch collectors and dashboard.

Loads configuration from environment variables.
"""
import os
from pathlib import Path
from typing import Optional


class ConfigError(ValueError):
    """Raised when required configuration is missing or invalid."""
    pass


class DepwatchConfig:
    """Configuration shared by the collectors and the dashboard."""

    def __init__(self):
        """Load configuration from environment."""
        # Postgres configuration
        self.postgres_url = os.getenv("POSTGRES_URL") or None

        # Backend selection: postgres when a URL is configured, sqlite otherwise
        default_backend = "postgres" if self.postgres_url else "sqlite"
        self.backend = os.getenv("DEPWATCH_BACKEND", default_backend).lower()
        if self.backend not in ("postgres", "sqlite"):
            raise ConfigError(f"Unknown DEPWATCH_BACKEND: {self.backend}")
        if self.backend == "postgres" and not self.postgres_url:
            raise ConfigError("POSTGRES_URL is required for the postgres backend")

        # SQLite database (local dev)
        sqlite_path = os.getenv("DEPWATCH_SQLITE_PATH")
        if sqlite_path:
            self.sqlite_path = Path(sqlite_path).expanduser()
        else:
            self.sqlite_path = Path.home() / ".depwatch" / "repositories.db"

        # GitHub access
        self.github_token = os.getenv("GITHUB_TOKEN") or os.getenv("GITHUB_API_KEY")
        self.user_agent = os.getenv("DEPWATCH_USER_AGENT", "depwatch-dependents-scripts")

        # Target YAML (optional, defaults describe the toolkit)
        target_path = os.getenv("DEPWATCH_TARGET")
        self.target_path: Optional[Path] = Path(target_path).expanduser() if target_path else None

        # Dashboard server configuration
        self.host = os.getenv("DEPWATCH_HOST", "0.0.0.0")
        try:
            self.port = int(os.getenv("DEPWATCH_PORT", "8000"))
        except ValueError:
            raise ConfigError(f"DEPWATCH_PORT must be an integer, got {os.getenv('DEPWATCH_PORT')!r}")

        self.log_level = os.getenv("DEPWATCH_LOG_LEVEL", "INFO").upper()

    def require_github_token(self) -> str:
        """
        Return the GitHub token.

        Raises:
            ConfigError: If neither GITHUB_TOKEN nor GITHUB_API_KEY is set
        """
        if not self.github_token:
            raise ConfigError("GITHUB_TOKEN (or GITHUB_API_KEY) is required. Set it in your environment.")
        return self.github_token


def get_config() -> DepwatchConfig:
    """Get depwatch configuration."""
    return DepwatchConfig()
