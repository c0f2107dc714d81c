"""External version sources."""

from enginepins.sources.github import (
    ENGINE_SOURCES,
    GitHubVersionSource,
    VersionSourceError,
    discover_versions,
    refresh_versions,
)

__all__ = [
    "ENGINE_SOURCES",
    "GitHubVersionSource",
    "VersionSourceError",
    "discover_versions",
    "refresh_versions",
]
