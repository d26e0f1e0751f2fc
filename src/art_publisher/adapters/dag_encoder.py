"""Content-addressed encoding of bundle files into block graphs."""

import asyncio
import base64
import hashlib
import json
from collections.abc import AsyncIterator, Callable, Iterator, Sequence
from dataclasses import dataclass

from art_publisher.adapters.car import varint
from art_publisher.domain.uploads import Block, Chunk, EncodedContent, NamedFile
from art_publisher.services.pipeline import ContentEncoder

RAW_CODEC = 0x55
DAG_JSON_CODEC = 0x0129
_SHA2_256 = 0x12
_CID_VERSION = 1


def content_address(data: bytes, codec: int) -> str:
    """Return the base32 CIDv1 string for data under a codec."""
    digest = hashlib.sha256(data).digest()
    cid = (
        varint(_CID_VERSION)
        + varint(codec)
        + varint(_SHA2_256)
        + varint(len(digest))
        + digest
    )
    return "b" + base64.b32encode(cid).decode("ascii").lower().rstrip("=")


def _link(address: str) -> dict[str, str]:
    return {"/": address}


def _node_block(payload: dict[str, object]) -> Block:
    data = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return Block(address=content_address(data, DAG_JSON_CODEC), data=data)


@dataclass
class DagEncoder(ContentEncoder):
    """Encodes files and directories as sha2-256 block graphs.

    Files up to ``max_block_size`` become a single raw block; larger files
    are split into raw leaves under a dag-json file node. A directory is a
    dag-json node listing each entry's name, link and size. The root
    block is always the last block of a stream.
    """

    max_block_size: int = 256 * 1024
    chunk_size: int = 1024 * 1024

    def content_address_file(self, file: NamedFile) -> EncodedContent:
        """Encode a single file."""
        return self._encode(lambda: self._file_blocks(file))

    def content_address_directory(self, files: Sequence[NamedFile]) -> EncodedContent:
        """Encode files as one flat directory."""
        return self._encode(lambda: self._directory_blocks(list(files)))

    async def chunk(self, blocks: AsyncIterator[Block]) -> AsyncIterator[Chunk]:
        """Group blocks into chunks of at most ``chunk_size`` payload bytes.

        The final chunk names the stream's last block as its root.
        """
        pending: list[Block] = []
        size = 0
        async for block in blocks:
            if pending and size + len(block.data) > self.chunk_size:
                yield Chunk(blocks=tuple(pending))
                pending = []
                size = 0
            pending.append(block)
            size += len(block.data)
        if pending:
            yield Chunk(blocks=tuple(pending), roots=(pending[-1].address,))

    def _encode(self, produce: Callable[[], Iterator[Block]]) -> EncodedContent:
        address: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        return EncodedContent(address=address, blocks=_stream(produce(), address))

    def _file_blocks(self, file: NamedFile) -> Iterator[Block]:
        data = file.data
        if len(data) <= self.max_block_size:
            yield Block(address=content_address(data, RAW_CODEC), data=data)
            return
        links: list[dict[str, object]] = []
        for offset in range(0, len(data), self.max_block_size):
            piece = data[offset : offset + self.max_block_size]
            leaf = Block(address=content_address(piece, RAW_CODEC), data=piece)
            links.append({"cid": _link(leaf.address), "size": len(piece)})
            yield leaf
        yield _node_block({"type": "file", "size": len(data), "links": links})

    def _directory_blocks(self, files: list[NamedFile]) -> Iterator[Block]:
        entries: list[dict[str, object]] = []
        for file in files:
            root: Block | None = None
            for block in self._file_blocks(file):
                root = block
                yield block
            if root is not None:
                entries.append(
                    {
                        "name": file.name,
                        "cid": _link(root.address),
                        "size": len(file.data),
                    }
                )
        yield _node_block({"type": "directory", "entries": entries})


async def _stream(
    blocks: Iterator[Block], address: "asyncio.Future[str]"
) -> AsyncIterator[Block]:
    """Yield blocks, resolving the address with the root once drained."""
    root: Block | None = None
    for block in blocks:
        root = block
        yield block
    if root is not None and not address.done():
        address.set_result(root.address)
