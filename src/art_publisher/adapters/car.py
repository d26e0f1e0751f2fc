"""CARv1 archive framing for block chunks."""

import base64
from collections.abc import Sequence

from art_publisher.domain.uploads import Chunk

CAR_CONTENT_TYPE = "application/vnd.ipld.car"
_CAR_VERSION = 1
_CBOR_UNSIGNED = 0
_CBOR_BYTES = 2
_CBOR_TEXT = 3
_CBOR_ARRAY = 4
_CBOR_MAP = 5
_CBOR_TAG = 6
_CID_TAG = 42


def varint(value: int) -> bytes:
    """Encode an unsigned integer as an LEB128 varint."""
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def cid_bytes(address: str) -> bytes:
    """Decode a base32 CIDv1 string into its binary form."""
    if not address.startswith("b"):
        raise ValueError(f"Unsupported CID multibase: {address}")
    body = address[1:].upper()
    return base64.b32decode(body + "=" * (-len(body) % 8))


def _cbor_head(major: int, value: int) -> bytes:
    if value < 24:
        return bytes([major << 5 | value])
    if value < 0x100:
        return bytes([major << 5 | 24, value])
    if value < 0x10000:
        return bytes([major << 5 | 25]) + value.to_bytes(2, "big")
    return bytes([major << 5 | 26]) + value.to_bytes(4, "big")


def _cbor_text(text: str) -> bytes:
    encoded = text.encode("utf-8")
    return _cbor_head(_CBOR_TEXT, len(encoded)) + encoded


def car_header(roots: Sequence[str]) -> bytes:
    """Encode ``{"roots": [...], "version": 1}`` as dag-cbor."""
    out = bytearray(_cbor_head(_CBOR_MAP, 2))
    out += _cbor_text("roots")
    out += _cbor_head(_CBOR_ARRAY, len(roots))
    for root in roots:
        # dag-cbor links carry a leading identity multibase byte.
        link = b"\x00" + cid_bytes(root)
        out += _cbor_head(_CBOR_TAG, _CID_TAG)
        out += _cbor_head(_CBOR_BYTES, len(link)) + link
    out += _cbor_text("version")
    out += _cbor_head(_CBOR_UNSIGNED, _CAR_VERSION)
    return bytes(out)


def car_bytes(chunk: Chunk) -> bytes:
    """Serialize a chunk as a CARv1 archive."""
    header = car_header(chunk.roots)
    parts = [varint(len(header)), header]
    for block in chunk.blocks:
        cid = cid_bytes(block.address)
        parts.append(varint(len(cid) + len(block.data)))
        parts.append(cid)
        parts.append(block.data)
    return b"".join(parts)
