import pytest

from yuinfra import rlp
from yuinfra.mpt_encoding import hex_to_compact, keybytes_to_hex
from yuinfra.mpt_node import (
    DecodeError,
    FullNode,
    HashNode,
    MissingNodeError,
    NodeFlag,
    ShortNode,
    ValueNode,
    decode_node,
    must_decode_node,
)

ROOT_HASH = bytes(range(32))


def _encode(n):
    return rlp.encode(n.to_rlp_item())


def test_short_leaf_round_trip():
    hex_key = keybytes_to_hex(b"key")
    node = ShortNode(hex_to_compact(hex_key), ValueNode(b"value"))
    decoded = decode_node(ROOT_HASH, _encode(node))
    assert isinstance(decoded, ShortNode)
    assert decoded.key == hex_key
    assert decoded.val == b"value"
    assert isinstance(decoded.val, ValueNode)
    assert decoded.flags.hash == ROOT_HASH


def test_short_extension_with_hash_child():
    hex_key = keybytes_to_hex(b"ab")[:-1]
    child = HashNode(bytes(reversed(ROOT_HASH)))
    node = ShortNode(hex_to_compact(hex_key), child)
    decoded = decode_node(ROOT_HASH, _encode(node))
    assert decoded.key == hex_key
    assert isinstance(decoded.val, HashNode)
    assert decoded.val == child


def test_full_node_round_trip():
    hash_child = HashNode(bytes(reversed(ROOT_HASH)))
    embedded = ShortNode(hex_to_compact(bytes([5, 16])), ValueNode(b"x"))
    node = FullNode()
    node.children[1] = hash_child
    node.children[2] = embedded
    node.children[16] = ValueNode(b"v")
    decoded = decode_node(ROOT_HASH, _encode(node))
    assert isinstance(decoded, FullNode)
    assert decoded.children[1] == hash_child
    inner = decoded.children[2]
    assert isinstance(inner, ShortNode)
    assert inner.key == bytes([5, 16])
    assert inner.val == b"x"
    assert inner.flags.hash is None
    assert decoded.children[16] == b"v"
    assert [i for i, c in enumerate(decoded.children) if c is None] == [
        i for i in range(17) if i not in (1, 2, 16)
    ]
    assert decoded.flags.hash == ROOT_HASH


def test_full_node_rlp_item_fills_missing_children():
    item = FullNode().to_rlp_item()
    assert len(item) == 17
    assert all(entry == b"" for entry in item)


def test_decode_empty_buffer():
    with pytest.raises(DecodeError):
        decode_node(ROOT_HASH, b"")


def test_decode_not_a_list():
    with pytest.raises(DecodeError, match="decode error"):
        decode_node(ROOT_HASH, rlp.encode(b"abc"))


def test_decode_wrong_element_count():
    with pytest.raises(DecodeError, match="invalid number of list elements"):
        decode_node(ROOT_HASH, rlp.encode([b"a", b"b", b"c"]))


def test_decode_bad_reference_size_reports_path():
    compact = hex_to_compact(keybytes_to_hex(b"a")[:-1])
    with pytest.raises(DecodeError) as info:
        decode_node(ROOT_HASH, rlp.encode([compact, b"abcde"]))
    assert "invalid RLP string size" in str(info.value)
    assert info.value.stack == ["val", "short"]
    assert "(decode path: val<-short)" in str(info.value)


def test_decode_oversized_embedded_node():
    compact = hex_to_compact(keybytes_to_hex(b"a")[:-1])
    with pytest.raises(DecodeError, match="oversized embedded node"):
        decode_node(ROOT_HASH, rlp.encode([compact, [b"x" * 40]]))


def test_decode_bad_full_child_reports_index():
    items = [b""] * 17
    items[3] = b"abc"
    with pytest.raises(DecodeError) as info:
        decode_node(ROOT_HASH, rlp.encode(items))
    assert info.value.stack == ["[3]", "full"]


def test_must_decode_node_names_hash():
    with pytest.raises(DecodeError) as info:
        must_decode_node(ROOT_HASH, b"")
    assert ROOT_HASH.hex() in str(info.value)


def test_full_node_copy_is_independent():
    original = FullNode()
    original.children[0] = ValueNode(b"a")
    duplicate = original.copy()
    duplicate.children[0] = ValueNode(b"b")
    duplicate.flags.dirty = True
    assert original.children[0] == b"a"
    assert original.flags.dirty is False


def test_short_node_copy_keeps_fields_and_separates_flags():
    original = ShortNode(b"\x01", ValueNode(b"v"), NodeFlag(HashNode(ROOT_HASH), True))
    duplicate = original.copy()
    assert duplicate == original
    duplicate.flags.dirty = False
    assert original.flags.dirty is True


def test_cache_values():
    node = ShortNode(b"\x01", ValueNode(b"v"), NodeFlag(HashNode(ROOT_HASH), True))
    assert node.cache() == (ROOT_HASH, True)
    assert FullNode().cache() == (None, False)
    assert ValueNode(b"v").cache() == (None, True)
    assert HashNode(ROOT_HASH).cache() == (None, True)


def test_value_and_hash_fstring():
    assert ValueNode(b"\xab").fstring("") == "ab "
    assert str(HashNode(b"\xab")) == "<ab> "


def test_short_node_str():
    assert str(ShortNode(b"\x01", ValueNode(b"\xff"))) == "{01: ff } "


def test_full_node_fstring_layout():
    node = FullNode()
    node.children[1] = ValueNode(b"\xab")
    text = node.fstring("")
    assert text.startswith("[\n  ")
    assert text.endswith("\n] ")
    assert "0: <nil> " in text
    assert "1: <nil>" not in text
    assert "[17]: <nil> " in text
    assert "1: " + ValueNode(b"\xab").fstring("    ") in text


def test_missing_node_error_message():
    err = MissingNodeError(ROOT_HASH, b"\x01\x02")
    assert str(err).startswith("missing trie node " + ROOT_HASH.hex())
    assert err.node_hash == ROOT_HASH
    assert err.path == b"\x01\x02"