"""Tests for the fan-out/fan-in upload pipeline."""

import asyncio
import json
import re
from dataclasses import dataclass, field

import pytest

from art_publisher.adapters.dag_encoder import RAW_CODEC, DagEncoder, content_address
from art_publisher.domain.identity import Identity
from art_publisher.domain.uploads import (
    EncodedContent,
    NamedFile,
    UploadInput,
    UploadResult,
)
from art_publisher.errors import TransportError
from art_publisher.services.pipeline import UploadPipeline
from art_publisher.services.progress import ProgressAggregator
from tests.conftest import FakeAssetFetcher, RecordingUploader, make_pipeline

IDENTITY = Identity(
    did="did:key:z6MkArtist",
    email="artist@example.com",
    verified=True,
    delegation="delegation-token",
)


def _input(*urls: str) -> UploadInput:
    return UploadInput(
        image_urls=urls,
        description="a lighthouse at dusk",
        parameters={"seed": 1},
    )


def _read_file(blocks: dict[str, bytes], address: str) -> bytes:
    data = blocks[address]
    if content_address(data, RAW_CODEC) == address:
        return data
    node = json.loads(data)
    return b"".join(blocks[link["cid"]["/"]] for link in node["links"])


def _root_entries(uploader: RecordingUploader, root: str) -> dict[str, str]:
    node = json.loads(uploader.block_data()[root])
    return {entry["name"]: entry["cid"]["/"] for entry in node["entries"]}


def test_bundle_contains_index_metadata_and_images() -> None:
    uploader = RecordingUploader()
    pipeline = make_pipeline(uploader=uploader)
    upload_input = _input("https://img.test/a.png", "https://img.test/b.png")

    result = asyncio.run(pipeline.run(IDENTITY, upload_input))

    entries = _root_entries(uploader, result.root_address)
    assert list(entries) == ["index.html", "metadata.json", "0.png", "1.png"]
    assert result.asset_count == 2
    assert uploader.identities == [IDENTITY.did]
    assert uploader.chunks[-1].blocks[-1].address == result.root_address
    assert uploader.chunks[-1].roots == (result.root_address,)


def test_index_references_exactly_the_uploaded_images() -> None:
    uploader = RecordingUploader()
    pipeline = make_pipeline(uploader=uploader)
    urls = ("https://img.test/a.png", "https://img.test/b.png")

    result = asyncio.run(pipeline.run(IDENTITY, _input(*urls)))

    blocks = uploader.block_data()
    entries = _root_entries(uploader, result.root_address)
    index = _read_file(blocks, entries["index.html"]).decode("utf-8")
    image_cids = re.findall(r'href="\d+\.png" data-cid="([^"]+)"', index)
    assert image_cids == [
        content_address(f"image:{url}".encode(), RAW_CODEC) for url in urls
    ]
    assert image_cids == [entries["0.png"], entries["1.png"]]
    assert f'data-cid="{entries["metadata.json"]}"' in index


def test_failed_images_are_left_out() -> None:
    fetcher = FakeAssetFetcher(failing={"https://img.test/b.png"})
    uploader = RecordingUploader()
    pipeline = make_pipeline(fetcher, uploader)
    upload_input = _input(
        "https://img.test/a.png", "https://img.test/b.png", "https://img.test/c.png"
    )

    result = asyncio.run(pipeline.run(IDENTITY, upload_input))

    entries = _root_entries(uploader, result.root_address)
    assert result.asset_count == 2
    assert [name for name in entries if name.endswith(".png")] == ["0.png", "2.png"]


def test_all_images_failing_still_publishes_documents() -> None:
    urls = ("https://img.test/a.png", "https://img.test/b.png")
    fetcher = FakeAssetFetcher(failing=set(urls))
    uploader = RecordingUploader()
    pipeline = make_pipeline(fetcher, uploader)

    result = asyncio.run(pipeline.run(IDENTITY, _input(*urls)))

    entries = _root_entries(uploader, result.root_address)
    assert result.asset_count == 0
    assert list(entries) == ["index.html", "metadata.json"]
    metadata = json.loads(_read_file(uploader.block_data(), entries["metadata.json"]))
    assert metadata == {"description": "a lighthouse at dusk", "parameters": {"seed": 1}}


def test_images_keep_launch_order_regardless_of_fetch_timing() -> None:
    urls = ("https://img.test/slow.png", "https://img.test/fast.png")
    fetcher = FakeAssetFetcher(delays={urls[0]: 0.05})
    uploader = RecordingUploader()
    pipeline = make_pipeline(fetcher, uploader)

    result = asyncio.run(pipeline.run(IDENTITY, _input(*urls)))

    assert fetcher.fetched == [urls[1], urls[0]]
    entries = _root_entries(uploader, result.root_address)
    blocks = uploader.block_data()
    assert _read_file(blocks, entries["0.png"]) == f"image:{urls[0]}".encode()
    assert _read_file(blocks, entries["1.png"]) == f"image:{urls[1]}".encode()


def test_progress_is_monotonic_and_completes_once() -> None:
    aggregator = ProgressAggregator()
    seen: list[float] = []
    aggregator.subscribe(seen.append)
    pipeline = make_pipeline()
    upload_input = _input(*(f"https://img.test/{n}.png" for n in range(4)))

    asyncio.run(pipeline.run(IDENTITY, upload_input, aggregator))

    assert seen == sorted(seen)
    assert seen[-1] == 1.0
    assert seen.count(1.0) == 1
    assert all(value <= 0.5 for value in seen[:-1])


def test_transport_failure_propagates() -> None:
    pipeline = make_pipeline(uploader=RecordingUploader(fail=True))

    with pytest.raises(TransportError):
        asyncio.run(pipeline.run(IDENTITY, _input("https://img.test/a.png")))


def test_result_is_upload_result() -> None:
    result = asyncio.run(make_pipeline().run(IDENTITY, _input("https://img.test/a.png")))

    assert isinstance(result, UploadResult)
    assert result.root_address.startswith("b")


@dataclass
class FailingEncoder(DagEncoder):
    """Encoder that refuses to address selected file names."""

    failing_names: frozenset[str] = field(default_factory=frozenset)

    def content_address_file(self, file: NamedFile) -> EncodedContent:
        if file.name in self.failing_names:
            raise ValueError(f"cannot encode {file.name}")
        return super().content_address_file(file)


def test_encode_failure_drops_only_that_image() -> None:
    uploader = RecordingUploader()
    pipeline = UploadPipeline(
        asset_fetcher=FakeAssetFetcher(),
        encoder=FailingEncoder(
            max_block_size=64, chunk_size=256, failing_names=frozenset({"1.png"})
        ),
        uploader=uploader,
    )
    urls = tuple(f"https://img.test/{n}.png" for n in range(3))

    result = asyncio.run(pipeline.run(IDENTITY, _input(*urls)))

    entries = _root_entries(uploader, result.root_address)
    assert result.asset_count == 2
    assert [name for name in entries if name.endswith(".png")] == ["0.png", "2.png"]
    blocks = uploader.block_data()
    assert _read_file(blocks, entries["0.png"]) == f"image:{urls[0]}".encode()
    assert _read_file(blocks, entries["2.png"]) == f"image:{urls[2]}".encode()
