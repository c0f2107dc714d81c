"""Tests for runtime config — env-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from enginepins.config import PinsConfig


class TestPinsConfig:
    def test_defaults(self):
        config = PinsConfig()
        assert config.concurrency == 4
        assert config.log_level == "INFO"
        assert config.github_api_url == "https://api.github.com"

    def test_default_paths(self):
        config = PinsConfig()
        assert config.manifest_path == Path("manifest.json")
        assert config.versions_path == Path("versions.json")
        assert config.packages_path == Path("packages.json")

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ENGINEPINS_CONCURRENCY", "2")
        monkeypatch.setenv("ENGINEPINS_MANIFEST_PATH", "/data/manifest.json")
        config = PinsConfig()
        assert config.concurrency == 2
        assert config.manifest_path == Path("/data/manifest.json")

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError):
            PinsConfig(concurrency=0)
