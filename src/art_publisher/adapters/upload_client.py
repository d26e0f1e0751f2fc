"""Chunked upload client for the storage network."""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

import httpx

from art_publisher.adapters.car import CAR_CONTENT_TYPE, car_bytes
from art_publisher.domain.identity import Identity
from art_publisher.domain.uploads import Chunk
from art_publisher.errors import TransportError

_logger = logging.getLogger(__name__)


class Uploader(Protocol):
    """Interface for uploading chunks under an identity."""

    async def upload(self, identity: Identity, chunks: AsyncIterator[Chunk]) -> None:
        """Upload every chunk, raising TransportError on failure."""


@dataclass
class HttpxUploadClient(Uploader):
    """Upload client posting chunks with httpx."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxUploadClient":
        """Create an upload client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient())

    async def upload(self, identity: Identity, chunks: AsyncIterator[Chunk]) -> None:
        """Post each chunk to the upload endpoint in order as a CAR archive."""
        headers = {
            "Content-Type": CAR_CONTENT_TYPE,
            "X-Agent-DID": identity.did,
        }
        if identity.delegation:
            headers["Authorization"] = f"Bearer {identity.delegation}"
        url = f"{self.base_url}/car"
        index = 0
        async for chunk in chunks:
            try:
                response = await self.http_client.post(
                    url, content=car_bytes(chunk), headers=headers, timeout=60
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise TransportError(
                    f"Chunk {index} upload failed for {identity.did}: {exc}"
                ) from exc
            _logger.debug("Uploaded chunk %s (%s bytes)", index, chunk.size)
            index += 1

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
