"""Configuration management for the GitHub receiver."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALERT_LABEL = "alert:boom:"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GITHUB_RECEIVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server settings
    host: str = "0.0.0.0"
    port: int = 9393
    debug: bool = False

    # GitHub settings
    github_token: str = ""
    github_owner: str = ""  # User or organization (github.com/<owner>/<repo>)
    github_repos: list[str] = Field(default_factory=list)  # First repo receives new issues
    github_api_url: str = "https://api.github.com"
    alert_label: str = DEFAULT_ALERT_LABEL  # Changing this orphans existing issues

    # Reconciliation
    enable_auto_close: bool = False
    serialize_titles: bool = True  # Per-title in-process locking
    lock_timeout: float = 5.0  # seconds to wait for a title lock before proceeding
    request_timeout: float = 10.0  # seconds
    max_pages: int = 100

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Metrics
    metrics_enabled: bool = True
    metrics_path: str = "/metrics"

    def validate_required(self) -> list[str]:
        """Return the names of required settings that are missing."""
        missing: list[str] = []
        if not self.github_token:
            missing.append("github_token")
        if not self.github_owner:
            missing.append("github_owner")
        if not self.github_repos:
            missing.append("github_repos")
        return missing


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
