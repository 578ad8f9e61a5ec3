"""Merkle Patricia trie nodes, their RLP form and their decoding."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Optional, Union

from yuinfra import rlp
from yuinfra.mpt_encoding import compact_to_hex, has_term
from yuinfra.rlp import Kind, RlpError

HASH_LEN = 32
_INDICES = [*"0123456789abcdef", "[17]"]


class HashNode(bytes):
    """Reference to a node by its hash."""

    def cache(self) -> tuple[Optional[HashNode], bool]:
        return None, True

    def fstring(self, ind: str) -> str:
        return f"<{self.hex()}> "

    def __str__(self) -> str:
        return self.fstring("")


class ValueNode(bytes):
    """A stored value."""

    def cache(self) -> tuple[Optional[HashNode], bool]:
        return None, True

    def fstring(self, ind: str) -> str:
        return f"{self.hex()} "

    def __str__(self) -> str:
        return self.fstring("")


@dataclass
class NodeFlag:
    """Cached hash of a node and whether it still has to be written."""

    hash: Optional[HashNode] = None
    dirty: bool = False


def _rlp_item(n: Optional[Node], missing):
    if n is None:
        return missing
    if isinstance(n, (FullNode, ShortNode)):
        return n.to_rlp_item()
    return bytes(n)


@dataclass
class FullNode:
    """Branch node: sixteen children by nibble plus a value slot."""

    children: list = field(default_factory=lambda: [None] * 17)
    flags: NodeFlag = field(default_factory=NodeFlag)

    def copy(self) -> FullNode:
        return FullNode(list(self.children), dataclasses.replace(self.flags))

    def cache(self) -> tuple[Optional[HashNode], bool]:
        return self.flags.hash, self.flags.dirty

    def to_rlp_item(self) -> list:
        """RLP item: seventeen entries, empty strings for missing children."""
        return [_rlp_item(child, b"") for child in self.children]

    def fstring(self, ind: str) -> str:
        parts = [f"[\n{ind}  "]
        for label, child in zip(_INDICES, self.children):
            if child is None:
                parts.append(f"{label}: <nil> ")
            else:
                parts.append(f"{label}: {child.fstring(ind + '  ')}")
        parts.append(f"\n{ind}] ")
        return "".join(parts)

    def __str__(self) -> str:
        return self.fstring("")


@dataclass
class ShortNode:
    """Extension or leaf node: a key fragment leading to one child."""

    key: bytes
    val: Optional[Node]
    flags: NodeFlag = field(default_factory=NodeFlag)

    def copy(self) -> ShortNode:
        return ShortNode(self.key, self.val, dataclasses.replace(self.flags))

    def cache(self) -> tuple[Optional[HashNode], bool]:
        return self.flags.hash, self.flags.dirty

    def to_rlp_item(self) -> list:
        """RLP item: the key as given and the child."""
        return [bytes(self.key), _rlp_item(self.val, [])]

    def fstring(self, ind: str) -> str:
        return f"{{{bytes(self.key).hex()}: {self.val.fstring(ind + '  ')}}} "

    def __str__(self) -> str:
        return self.fstring("")


Node = Union[FullNode, ShortNode, HashNode, ValueNode]


class MissingNodeError(LookupError):
    """A trie node is not present in the database."""

    def __init__(self, node_hash: bytes, path: bytes) -> None:
        self.node_hash = bytes(node_hash)
        self.path = bytes(path or b"")
        super().__init__(self.node_hash, self.path)

    def __str__(self) -> str:
        return f"missing trie node {self.node_hash.hex()} (path {self.path.hex()})"


class DecodeError(ValueError):
    """A node encoding is malformed; ``stack`` names the path to the bad part."""

    def __init__(self, what, stack=None) -> None:
        self.what = what
        self.stack: list[str] = list(stack or [])
        super().__init__(what)

    def __str__(self) -> str:
        if not self.stack:
            return str(self.what)
        return f"{self.what} (decode path: {'<-'.join(self.stack)})"


def _wrap(exc: Exception, ctx: str) -> DecodeError:
    if isinstance(exc, DecodeError):
        exc.stack.append(ctx)
        return exc
    return DecodeError(exc, [ctx])


def _count_values(buf: bytes) -> int:
    count = 0
    while buf:
        try:
            _, _, buf = rlp.split(buf)
        except RlpError:
            break
        count += 1
    return count


def decode_node(hash_: Optional[bytes], buf: bytes) -> Node:
    """Parse the RLP encoding of a trie node."""
    buf = bytes(buf)
    if not buf:
        raise DecodeError("unexpected EOF")
    try:
        elems, _ = rlp.split_list(buf)
    except RlpError as exc:
        raise DecodeError(f"decode error: {exc}") from exc
    count = _count_values(elems)
    if count == 2:
        try:
            return _decode_short(hash_, elems)
        except (DecodeError, RlpError) as exc:
            raise _wrap(exc, "short")
    if count == 17:
        try:
            return _decode_full(hash_, elems)
        except (DecodeError, RlpError) as exc:
            raise _wrap(exc, "full")
    raise DecodeError(f"invalid number of list elements: {count}")


def must_decode_node(hash_: bytes, buf: bytes) -> Node:
    """Decode a stored node, naming its hash in any error."""
    try:
        return decode_node(hash_, buf)
    except DecodeError as exc:
        raise DecodeError(f"node {bytes(hash_).hex()}: {exc}") from exc


def _flag(hash_: Optional[bytes]) -> NodeFlag:
    return NodeFlag(hash=HashNode(hash_) if hash_ is not None else None)


def _decode_short(hash_: Optional[bytes], elems: bytes) -> ShortNode:
    kbuf, rest = rlp.split_string(elems)
    key = compact_to_hex(kbuf)
    if has_term(key):
        try:
            val, _ = rlp.split_string(rest)
        except RlpError as exc:
            raise DecodeError(f"invalid value node: {exc}") from exc
        return ShortNode(key, ValueNode(val), _flag(hash_))
    try:
        ref, _ = _decode_ref(rest)
    except (DecodeError, RlpError) as exc:
        raise _wrap(exc, "val")
    return ShortNode(key, ref, _flag(hash_))


def _decode_full(hash_: Optional[bytes], elems: bytes) -> FullNode:
    n = FullNode(flags=_flag(hash_))
    for i in range(16):
        try:
            n.children[i], elems = _decode_ref(elems)
        except (DecodeError, RlpError) as exc:
            raise _wrap(exc, f"[{i}]")
    val, _ = rlp.split_string(elems)
    if val:
        n.children[16] = ValueNode(val)
    return n


def _decode_ref(buf: bytes) -> tuple[Optional[Node], bytes]:
    kind, val, rest = rlp.split(buf)
    if kind is Kind.LIST:
        size = len(buf) - len(rest)
        if size > HASH_LEN:
            raise DecodeError(
                f"oversized embedded node (size is {size} bytes, want size < {HASH_LEN})"
            )
        return decode_node(None, buf), rest
    if kind is Kind.STRING and len(val) == 0:
        return None, rest
    if kind is Kind.STRING and len(val) == HASH_LEN:
        return HashNode(val), rest
    raise DecodeError(f"invalid RLP string size {len(val)} (want 0 or 32)")