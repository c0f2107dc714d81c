"""Runtime configuration — env-driven via pydantic-settings.

All settings can be overridden via ENGINEPINS_* environment variables
or a .env file in the working directory. CLI options override both.

Examples
--------
Override via environment::

    export ENGINEPINS_CONCURRENCY=2
    export ENGINEPINS_LOG_LEVEL=DEBUG
    export ENGINEPINS_GITHUB_TOKEN=ghp_...
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PinsConfig(BaseSettings):
    """Paths, concurrency and network settings for a manifest build."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ENGINEPINS_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Durable state
    manifest_path: Path = Path("manifest.json")
    versions_path: Path = Path("versions.json")
    packages_path: Path = Path("packages.json")

    # Fetch-and-hash operations in flight per engine
    concurrency: int = Field(default=4, ge=1)
    request_timeout_seconds: float = Field(default=300.0, gt=0)

    # Version source
    github_api_url: str = "https://api.github.com"
    github_token: str = ""  # anonymous when empty

    log_level: str = "INFO"


# Module-level singleton: import as `from enginepins.config import config`
config = PinsConfig()
