"""Upload pipeline: fetch images, package the bundle, upload it."""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Protocol

from art_publisher.adapters.asset_fetcher import AssetFetcher
from art_publisher.adapters.upload_client import Uploader
from art_publisher.domain.identity import Identity
from art_publisher.domain.uploads import (
    Block,
    Chunk,
    EncodedContent,
    FetchedAsset,
    NamedFile,
    UploadInput,
    UploadResult,
)
from art_publisher.errors import AssetFetchFailedError
from art_publisher.services.contact_sheet import (
    build_index_file,
    build_metadata_file,
    image_name,
)
from art_publisher.services.progress import ProgressAggregator, ProgressChannel

FETCH_BRANCH = "fetch"
UPLOAD_BRANCH = "upload"

_logger = logging.getLogger(__name__)


class ContentEncoder(Protocol):
    """Interface for content-addressed encoding and chunking."""

    def content_address_file(self, file: NamedFile) -> EncodedContent:
        """Encode a single file into a block stream."""

    def content_address_directory(self, files: Sequence[NamedFile]) -> EncodedContent:
        """Encode files as one directory block graph."""

    def chunk(self, blocks: AsyncIterator[Block]) -> AsyncIterator[Chunk]:
        """Group a block stream into transport-sized chunks."""


@dataclass
class UploadPipeline:
    """Runs the fetch branch and the package-and-upload branch concurrently."""

    asset_fetcher: AssetFetcher
    encoder: ContentEncoder
    uploader: Uploader
    max_concurrent_fetches: int = 8

    async def run(
        self,
        identity: Identity,
        upload_input: UploadInput,
        progress: ProgressAggregator | None = None,
    ) -> UploadResult:
        """Publish the bundle and return its root address.

        Per-image failures only shrink the bundle. A packaging or
        transport failure propagates to the caller unchanged.
        """
        aggregator = progress or ProgressAggregator()
        fetch_channel = aggregator.channel(FETCH_BRANCH)
        upload_channel = aggregator.channel(UPLOAD_BRANCH)

        fetch_task = asyncio.create_task(
            self._fetch_assets(upload_input.image_urls, fetch_channel)
        )
        upload_task = asyncio.create_task(
            self._package_and_upload(identity, upload_input, fetch_task, upload_channel)
        )
        _, result = await asyncio.gather(fetch_task, upload_task)
        return result

    async def _fetch_assets(
        self, urls: Sequence[str], channel: ProgressChannel
    ) -> list[FetchedAsset]:
        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)
        total = len(urls)
        settled = 0

        async def attempt(position: int, url: str) -> FetchedAsset | None:
            nonlocal settled
            try:
                async with semaphore:
                    return await self._fetch_one(position, url)
            except AssetFetchFailedError as exc:
                _logger.warning("Leaving image out of bundle: %s", exc)
                return None
            finally:
                settled += 1
                channel.report(settled / total)

        results = await asyncio.gather(
            *(attempt(position, url) for position, url in enumerate(urls))
        )
        channel.complete()
        return [asset for asset in results if asset is not None]

    async def _fetch_one(self, position: int, url: str) -> FetchedAsset:
        try:
            data = await self.asset_fetcher.fetch_bytes(url)
        except Exception as exc:
            raise AssetFetchFailedError(url, str(exc) or type(exc).__name__) from exc
        file = NamedFile(name=image_name(position), data=data)
        try:
            address = await self.encoder.content_address_file(file).resolve_address()
        except Exception as exc:
            raise AssetFetchFailedError(url, f"encoding failed: {exc}") from exc
        return FetchedAsset(
            position=position,
            source_url=url,
            file=file,
            content_address=address,
        )

    async def _package_and_upload(
        self,
        identity: Identity,
        upload_input: UploadInput,
        fetch_task: "asyncio.Task[list[FetchedAsset]]",
        channel: ProgressChannel,
    ) -> UploadResult:
        assets = await fetch_task
        stage = "metadata"
        try:
            metadata_file = build_metadata_file(
                upload_input.description, upload_input.parameters
            )
            metadata_address = await self.encoder.content_address_file(
                metadata_file
            ).resolve_address()
            stage = "index"
            index_file = build_index_file(
                assets,
                upload_input.description,
                upload_input.parameters,
                metadata_address,
            )
            stage = "directory"
            directory = self.encoder.content_address_directory(
                [index_file, metadata_file, *(asset.file for asset in assets)]
            )
            stage = "upload"
            await self.uploader.upload(identity, self.encoder.chunk(directory.blocks))
            root_address = await directory.address
        except Exception:
            _logger.exception(
                "Publish failed at stage %s for %s", stage, identity.did
            )
            raise
        channel.complete()
        _logger.info(
            "Published %s images for %s at %s", len(assets), identity.did, root_address
        )
        return UploadResult(root_address=root_address, asset_count=len(assets))
