"""Content hashing of release artifacts in the Nix fixed-output convention.

Artifacts are streamed through SHA-256 chunk by chunk, never buffered
whole, and the digest is rendered in Nix's base-32 alphabet so that the
hash can be pasted straight into ``fetchurl { sha256 = ...; }``.
"""

from __future__ import annotations

import hashlib
import logging

import httpx

logger = logging.getLogger(__name__)

NIX_BASE32_ALPHABET = "0123456789abcdfghijklmnpqrsvwxyz"


class ArtifactFetchError(RuntimeError):
    """Raised when an artifact cannot be downloaded (transport failure)."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class ArtifactStatusError(ArtifactFetchError):
    """Raised when the artifact server answers with a non-success status."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(url, f"GET {url} returned HTTP {status_code}")
        self.status_code = status_code


def nix_base32(digest: bytes) -> str:
    """Encode *digest* with Nix's base-32 scheme.

    Nix emits the least significant 5-bit group first and uses an alphabet
    without ``e``, ``o``, ``u`` and ``t``. A 32-byte SHA-256 digest encodes
    to 52 characters.
    """
    size = len(digest)
    length = (size * 8 - 1) // 5 + 1 if size else 0
    chars: list[str] = []
    for n in range(length - 1, -1, -1):
        bit = n * 5
        i, j = divmod(bit, 8)
        c = digest[i] >> j
        if i + 1 < size:
            c |= digest[i + 1] << (8 - j)
        chars.append(NIX_BASE32_ALPHABET[c & 0x1F])
    return "".join(chars)


def nix_sha256(data: bytes) -> str:
    """Nix base-32 SHA-256 of in-memory *data*."""
    return nix_base32(hashlib.sha256(data).digest())


class ArtifactHasher:
    """Streams artifacts over HTTP and returns their Nix SHA-256.

    Parameters
    ----------
    client:
        Shared ``httpx.AsyncClient``. It should follow redirects, since
        GitHub release downloads redirect to object storage.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch_hash(self, url: str) -> str:
        """Download *url* and return the Nix base-32 SHA-256 of its body.

        Raises
        ------
        ArtifactStatusError
            On a non-2xx response. The body is not hashed.
        ArtifactFetchError
            On any transport-level failure.
        """
        logger.info("Expensive hashing of %s...", url)
        digest = hashlib.sha256()
        size = 0
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    raise ArtifactStatusError(url, response.status_code)
                # raw bytes: a Content-Encoding must not change the digest
                async for chunk in response.aiter_raw():
                    logger.debug("Hashing chunk of len %d", len(chunk))
                    digest.update(chunk)
                    size += len(chunk)
        except httpx.HTTPError as exc:
            raise ArtifactFetchError(url, f"GET {url} failed: {exc}") from exc

        encoded = nix_base32(digest.digest())
        logger.debug("Hashed %s (%d bytes) -> %s", url, size, encoded)
        return encoded
