"""Recursive Length Prefix encoding and low-level splitting."""

from enum import Enum
from typing import Union

Item = Union[bytes, list]


class Kind(Enum):
    """Kind of an RLP value."""

    BYTE = "byte"
    STRING = "string"
    LIST = "list"


class RlpError(ValueError):
    """Malformed or unencodable RLP data."""


def _header(length: int, offset: int) -> bytes:
    if length < 56:
        return bytes([offset + length])
    size = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([offset + 55 + len(size)]) + size


def encode(item) -> bytes:
    """Encode bytes, str, non-negative int or nested lists/tuples of those."""
    if isinstance(item, (bytes, bytearray, memoryview)):
        payload = bytes(item)
        if len(payload) == 1 and payload[0] < 0x80:
            return payload
        return _header(len(payload), 0x80) + payload
    if isinstance(item, str):
        return encode(item.encode("utf-8"))
    if isinstance(item, int):
        if item < 0:
            raise RlpError("cannot encode negative integer")
        return encode(item.to_bytes((item.bit_length() + 7) // 8, "big"))
    if isinstance(item, (list, tuple)):
        payload = b"".join(encode(element) for element in item)
        return _header(len(payload), 0xC0) + payload
    raise RlpError(f"cannot encode value of type {type(item).__name__}")


def _read_size(buf: bytes, size_len: int) -> int:
    if len(buf) < size_len:
        raise RlpError("unexpected EOF")
    raw = buf[:size_len]
    if raw[0] == 0:
        raise RlpError("non-canonical size information")
    size = int.from_bytes(raw, "big")
    if size < 56:
        raise RlpError("non-canonical size information")
    return size


def _read_kind(buf: bytes) -> tuple[Kind, int, int]:
    if not buf:
        raise RlpError("unexpected EOF")
    b = buf[0]
    if b < 0x80:
        kind, tag_size, content_size = Kind.BYTE, 0, 1
    elif b < 0xB8:
        kind, tag_size, content_size = Kind.STRING, 1, b - 0x80
        if content_size == 1 and len(buf) > 1 and buf[1] < 0x80:
            raise RlpError("non-canonical size information")
    elif b < 0xC0:
        kind, tag_size = Kind.STRING, b - 0xB7 + 1
        content_size = _read_size(buf[1:], b - 0xB7)
    elif b < 0xF8:
        kind, tag_size, content_size = Kind.LIST, 1, b - 0xC0
    else:
        kind, tag_size = Kind.LIST, b - 0xF7 + 1
        content_size = _read_size(buf[1:], b - 0xF7)
    if content_size > len(buf) - tag_size:
        raise RlpError("value size exceeds available input length")
    return kind, tag_size, content_size


def split(buf: bytes) -> tuple[Kind, bytes, bytes]:
    """Split off the first value: return its kind, its content and the rest."""
    buf = bytes(buf)
    kind, tag_size, content_size = _read_kind(buf)
    end = tag_size + content_size
    return kind, buf[tag_size:end], buf[end:]


def split_string(buf: bytes) -> tuple[bytes, bytes]:
    """Split off a leading string value; return its content and the rest."""
    kind, content, rest = split(buf)
    if kind is Kind.LIST:
        raise RlpError("expected String or Byte")
    return content, rest


def split_list(buf: bytes) -> tuple[bytes, bytes]:
    """Split off a leading list value; return its content and the rest."""
    kind, content, rest = split(buf)
    if kind is not Kind.LIST:
        raise RlpError("expected List")
    return content, rest


def count_values(buf: bytes) -> int:
    """Count the encoded values that follow one another in ``buf``."""
    count = 0
    buf = bytes(buf)
    while buf:
        _, tag_size, content_size = _read_kind(buf)
        buf = buf[tag_size + content_size:]
        count += 1
    return count


def _decode_item(buf: bytes) -> tuple[Item, bytes]:
    kind, content, rest = split(buf)
    if kind is Kind.LIST:
        items = []
        while content:
            item, content = _decode_item(content)
            items.append(item)
        return items, rest
    return content, rest


def decode(data: bytes) -> Item:
    """Decode one complete value into bytes or nested lists of bytes."""
    item, rest = _decode_item(bytes(data))
    if rest:
        raise RlpError("input contains more than one value")
    return item