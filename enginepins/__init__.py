"""enginepins: pinned release artifacts for search engines.

Builds a reproducible manifest mapping every (engine, version, architecture,
operating system) combination to a download URL and a Nix base-32 SHA-256,
and re-indexes it into a flat package list keyed by Nix system:
  - URL derivation per engine and version range
  - Version discovery from GitHub tags and releases
  - Streaming hashing with one fetch per distinct URL
  - Bounded concurrency per engine, all engines in parallel
  - Crash-safe manifest flushed after every new entry, resumable
  - Graceful shutdown on SIGINT/SIGTERM
"""

__version__ = "0.1.0"
__description__ = "Pinned download URLs and Nix content hashes for search engine releases"

from enginepins.core.builder import BuildResult, ManifestBuilder
from enginepins.core.manifest_store import ManifestStore
from enginepins.core.urls import derive_url
from enginepins.core.versions import extract_version
from enginepins.cli.app import app as cli

__all__ = [
    "ManifestBuilder",
    "BuildResult",
    "ManifestStore",
    "derive_url",
    "extract_version",
    "cli",
    "__version__",
]
