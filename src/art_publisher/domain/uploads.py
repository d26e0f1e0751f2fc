"""Domain models for bundle uploads."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

Scalar = str | int | float | bool | None


class UploadInput(BaseModel):
    """Validated launch input; accepted whole or not at all."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    image_urls: tuple[str, ...] = Field(min_length=1)
    description: str = Field(min_length=1)
    parameters: dict[str, Scalar] = Field(min_length=1)


class BundleMetadata(BaseModel):
    """Metadata document stored next to the images."""

    description: str
    parameters: dict[str, Scalar]


@dataclass(frozen=True)
class NamedFile:
    """In-memory file payload with a bundle-relative name."""

    name: str
    data: bytes


@dataclass(frozen=True)
class FetchedAsset:
    """An image that was fetched and content addressed."""

    position: int
    source_url: str
    file: NamedFile
    content_address: str


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a successful publish."""

    root_address: str
    asset_count: int


@dataclass(frozen=True)
class Block:
    """A single content-addressed block."""

    address: str
    data: bytes


@dataclass(frozen=True)
class Chunk:
    """Group of blocks sent in one transport request.

    ``roots`` is set on the final chunk of a stream and names its root block.
    """

    blocks: tuple[Block, ...]
    roots: tuple[str, ...] = ()

    @property
    def size(self) -> int:
        """Return the payload size of all blocks in bytes."""
        return sum(len(block.data) for block in self.blocks)


@dataclass
class EncodedContent:
    """Block stream whose root address resolves once the stream is drained."""

    address: "asyncio.Future[str]"
    blocks: AsyncIterator[Block]

    async def resolve_address(self) -> str:
        """Drain the block stream and return the root address."""
        async for _ in self.blocks:
            pass
        return await self.address
