"""Tests for CARv1 archive framing."""

import pytest

from art_publisher.adapters.car import car_bytes, car_header, cid_bytes, varint
from art_publisher.adapters.dag_encoder import RAW_CODEC, content_address
from art_publisher.domain.uploads import Block, Chunk


def _read_varint(data: bytes, offset: int) -> tuple[int, int]:
    value = 0
    shift = 0
    while True:
        byte = data[offset]
        offset += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7


def _block(data: bytes) -> Block:
    return Block(address=content_address(data, RAW_CODEC), data=data)


def test_varint_encodes_multibyte_values() -> None:
    assert varint(1) == b"\x01"
    assert varint(300) == b"\xac\x02"


def test_cid_bytes_decodes_raw_sha256_cid() -> None:
    address = content_address(b"hello", RAW_CODEC)

    cid = cid_bytes(address)

    assert cid[:4] == b"\x01\x55\x12\x20"
    assert len(cid) == 36
    with pytest.raises(ValueError):
        cid_bytes("zQm-not-base32")


def test_header_links_roots_as_tagged_cids() -> None:
    root = content_address(b"root", RAW_CODEC)

    header = car_header([root])

    expected = (
        b"\xa2\x65roots\x81\xd8\x2a\x58\x25\x00"
        + cid_bytes(root)
        + b"\x67version\x01"
    )
    assert header == expected
    assert car_header([]) == b"\xa2\x65roots\x80\x67version\x01"


def test_car_bytes_frames_header_and_sections() -> None:
    first = _block(b"one")
    second = _block(b"two")
    chunk = Chunk(blocks=(first, second), roots=(second.address,))

    archive = car_bytes(chunk)

    header_length, offset = _read_varint(archive, 0)
    assert archive[offset : offset + header_length] == car_header([second.address])
    offset += header_length
    sections = []
    while offset < len(archive):
        length, offset = _read_varint(archive, offset)
        section = archive[offset : offset + length]
        sections.append((section[:36], section[36:]))
        offset += length
    assert sections == [
        (cid_bytes(first.address), b"one"),
        (cid_bytes(second.address), b"two"),
    ]
