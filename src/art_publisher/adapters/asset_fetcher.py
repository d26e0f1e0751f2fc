"""Remote image download client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class AssetFetcher(Protocol):
    """Interface for downloading remote images."""

    async def fetch_bytes(self, url: str) -> bytes:
        """Download a URL and return the response body."""


@dataclass
class HttpxAssetFetcher(AssetFetcher):
    """Asset fetcher using httpx."""

    http_client: httpx.AsyncClient
    timeout_seconds: float = 20

    @classmethod
    def create(cls, timeout_seconds: float = 20) -> "HttpxAssetFetcher":
        """Create an asset fetcher with a managed httpx session."""
        return cls(
            http_client=httpx.AsyncClient(follow_redirects=True),
            timeout_seconds=timeout_seconds,
        )

    async def fetch_bytes(self, url: str) -> bytes:
        """Download image bytes, failing on non-2xx responses."""
        response = await self.http_client.get(url, timeout=self.timeout_seconds)
        response.raise_for_status()
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
