"""Version source — release and tag listings from the GitHub REST API.

Each engine is discovered from one repository, either by tag names or by
release titles. Listings are paginated by following ``Link: rel="next"``
headers. Raw names go through the Version Extractor; any failure to list
aborts discovery.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path

import httpx
from pydantic import BaseModel, ConfigDict
from semver import Version

from enginepins.core.versions import EngineVersions, save_versions, versions_from_names
from enginepins.models.platforms import Engine

logger = logging.getLogger(__name__)

_PER_PAGE = 100


class ListingKind(str, Enum):
    """Which GitHub listing carries an engine's version names."""

    TAGS = "tags"
    RELEASES = "releases"


class RepoSource(BaseModel):
    """Where an engine's versions are listed."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    kind: ListingKind


ENGINE_SOURCES: dict[Engine, RepoSource] = {
    Engine.ELASTICSEARCH: RepoSource(owner="elastic", repo="elasticsearch", kind=ListingKind.TAGS),
    Engine.OPENSEARCH: RepoSource(
        owner="opensearch-project", repo="OpenSearch", kind=ListingKind.RELEASES
    ),
    Engine.QUICKWIT: RepoSource(owner="quickwit-oss", repo="quickwit", kind=ListingKind.RELEASES),
}


class VersionSourceError(RuntimeError):
    """Raised when a repository listing cannot be fetched."""


class GitHubVersionSource:
    """Lists tag and release names of GitHub repositories.

    Parameters
    ----------
    client:
        ``httpx.AsyncClient`` used for API calls.
    api_url:
        Base URL of the GitHub REST API.
    token:
        Optional token; anonymous requests are heavily rate limited.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_url: str = "https://api.github.com",
        token: str = "",
    ) -> None:
        self._client = client
        self._api_url = api_url.rstrip("/")
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def _paginate(self, path: str) -> list[dict]:
        url: str | None = f"{self._api_url}{path}"
        params: dict[str, int] | None = {"per_page": _PER_PAGE}
        items: list[dict] = []
        while url is not None:
            try:
                response = await self._client.get(url, params=params, headers=self._headers)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise VersionSourceError(f"Listing {url} failed: {exc}") from exc
            try:
                page = response.json()
            except ValueError as exc:
                raise VersionSourceError(f"Listing {url} returned invalid JSON") from exc
            if not isinstance(page, list):
                raise VersionSourceError(f"Listing {url} did not return a JSON array")
            items.extend(page)
            # the next link already carries the query string
            url = response.links.get("next", {}).get("url")
            params = None
        logger.debug("Listed %d items from %s", len(items), path)
        return items

    async def tag_names(self, owner: str, repo: str) -> list[str]:
        items = await self._paginate(f"/repos/{owner}/{repo}/tags")
        return [item["name"] for item in items if item.get("name")]

    async def release_names(self, owner: str, repo: str) -> list[str]:
        items = await self._paginate(f"/repos/{owner}/{repo}/releases")
        return [item["name"] for item in items if item.get("name")]

    async def names(self, source: RepoSource) -> list[str]:
        if source.kind is ListingKind.TAGS:
            return await self.tag_names(source.owner, source.repo)
        return await self.release_names(source.owner, source.repo)


async def discover_versions(
    source: GitHubVersionSource,
    engines: list[Engine] | None = None,
) -> EngineVersions:
    """List and extract the versions of every engine concurrently."""
    engines = list(Engine) if engines is None else engines

    async def _one(engine: Engine) -> list[Version]:
        names = await source.names(ENGINE_SOURCES[engine])
        versions = versions_from_names(names)
        logger.info(
            "Discovered %d %s versions from %d names", len(versions), engine.value, len(names)
        )
        return versions

    results = await asyncio.gather(*(_one(engine) for engine in engines))
    return dict(zip(engines, results))


async def refresh_versions(
    path: Path,
    *,
    api_url: str = "https://api.github.com",
    token: str = "",
    client: httpx.AsyncClient | None = None,
) -> EngineVersions:
    """Discover versions from GitHub and write them to the cache at *path*."""
    if client is None:
        async with httpx.AsyncClient(timeout=60.0, follow_redirects=True) as owned:
            engine_versions = await discover_versions(GitHubVersionSource(owned, api_url, token))
    else:
        engine_versions = await discover_versions(GitHubVersionSource(client, api_url, token))
    save_versions(path, engine_versions)
    return engine_versions
