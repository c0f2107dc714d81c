"""Tests for the GitHub version source — pagination, extraction, failures."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from enginepins.core.versions import load_versions
from enginepins.models.platforms import Engine
from enginepins.sources.github import (
    ENGINE_SOURCES,
    GitHubVersionSource,
    VersionSourceError,
    discover_versions,
    refresh_versions,
)

API = "https://api.github.test"


def _listing_handler(pages: dict[str, list[list[dict]]], seen: list[httpx.Request]):
    """Serve ``pages[path]`` one page at a time with Link headers."""

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        path = request.url.path
        if path not in pages:
            return httpx.Response(404, json={"message": "Not Found"})
        page = int(request.url.params.get("page", "1"))
        chunks = pages[path]
        headers = {}
        if page < len(chunks):
            headers["Link"] = f'<{API}{path}?per_page=100&page={page + 1}>; rel="next"'
        return httpx.Response(200, json=chunks[page - 1], headers=headers)

    return handler


def _pages() -> dict[str, list[list[dict]]]:
    return {
        "/repos/elastic/elasticsearch/tags": [
            [{"name": "v8.13.4"}, {"name": "v8.13.3"}],
            [{"name": "v5.0.0.Beta1"}, {"name": "not-a-release"}],
        ],
        "/repos/opensearch-project/OpenSearch/releases": [
            [{"name": "OpenSearch 2.14.0"}, {"name": None}, {"name": "2.13.0"}],
        ],
        "/repos/quickwit-oss/quickwit/releases": [
            [{"name": "Quickwit 0.8.1"}],
            [{"name": "Quickwit 0.7.0-rc1"}],
            [{"name": "Quickwit 0.8.1"}],
        ],
    }


class TestGitHubVersionSource:
    def test_follows_pagination(self):
        seen: list[httpx.Request] = []

        async def run() -> list[str]:
            transport = httpx.MockTransport(_listing_handler(_pages(), seen))
            async with httpx.AsyncClient(transport=transport) as client:
                return await GitHubVersionSource(client, API).tag_names("elastic", "elasticsearch")

        names = asyncio.run(run())
        assert names == ["v8.13.4", "v8.13.3", "v5.0.0.Beta1", "not-a-release"]
        assert len(seen) == 2
        assert seen[0].url.params["per_page"] == "100"

    def test_token_sent_as_bearer(self):
        seen: list[httpx.Request] = []

        async def run() -> None:
            transport = httpx.MockTransport(_listing_handler(_pages(), seen))
            async with httpx.AsyncClient(transport=transport) as client:
                await GitHubVersionSource(client, API, token="t0k").release_names(
                    "quickwit-oss", "quickwit"
                )

        asyncio.run(run())
        assert all(r.headers["Authorization"] == "Bearer t0k" for r in seen)

    def test_listing_failure_is_fatal(self):
        async def run() -> list[str]:
            transport = httpx.MockTransport(_listing_handler({}, []))
            async with httpx.AsyncClient(transport=transport) as client:
                return await GitHubVersionSource(client, API).tag_names("nobody", "nothing")

        with pytest.raises(VersionSourceError):
            asyncio.run(run())


class TestDiscoverVersions:
    def test_every_engine_has_a_source(self):
        assert set(ENGINE_SOURCES) == set(Engine)

    def test_discovers_all_engines(self):
        async def run():
            transport = httpx.MockTransport(_listing_handler(_pages(), []))
            async with httpx.AsyncClient(transport=transport) as client:
                return await discover_versions(GitHubVersionSource(client, API))

        found = asyncio.run(run())
        assert {e: [str(v) for v in vs] for e, vs in found.items()} == {
            Engine.ELASTICSEARCH: ["5.0.0-beta1", "8.13.3", "8.13.4"],
            Engine.OPENSEARCH: ["2.13.0", "2.14.0"],
            Engine.QUICKWIT: ["0.7.0-rc1", "0.8.1"],
        }

    def test_refresh_writes_cache(self, tmp_path: Path):
        path = tmp_path / "versions.json"

        async def run():
            transport = httpx.MockTransport(_listing_handler(_pages(), []))
            async with httpx.AsyncClient(transport=transport) as client:
                return await refresh_versions(path, api_url=API, client=client)

        found = asyncio.run(run())
        assert load_versions(path) == found
        assert list(json.loads(path.read_text())) == ["elasticsearch", "opensearch", "quickwit"]
