import pytest

from yuinfra import rlp
from yuinfra.kv import KvError, SqliteKvdb
from yuinfra.mpt_encoding import hex_to_compact, keybytes_to_hex
from yuinfra.mpt_node import ShortNode, ValueNode
from yuinfra.nodebase import MPT_DATA, NodeBase


@pytest.fixture
def kvdb(tmp_path):
    db = SqliteKvdb(str(tmp_path / "testdb"))
    yield db
    db.close()


@pytest.fixture
def nodebase(kvdb):
    return NodeBase(kvdb)


def test_put_and_get(nodebase):
    exp_get = b"value"
    nodebase.begin()
    nodebase.insert(b"key", exp_get)
    nodebase.commit()
    assert nodebase.get(b"key") == exp_get


def test_uncommitted_insert_not_visible(nodebase):
    nodebase.begin()
    nodebase.insert(b"key", b"value")
    assert nodebase.get(b"key") is None
    nodebase.commit()
    assert nodebase.get(b"key") == b"value"


def test_values_stored_under_namespace(kvdb, nodebase):
    nodebase.begin()
    nodebase.insert(b"key", b"value")
    nodebase.commit()
    assert kvdb.get(MPT_DATA, b"key") == b"value"
    assert kvdb.get("", b"key") is None


def test_insert_without_begin_raises(nodebase):
    with pytest.raises(KvError):
        nodebase.insert(b"key", b"value")


def test_commit_twice_raises(nodebase):
    nodebase.begin()
    nodebase.insert(b"key", b"value")
    nodebase.commit()
    with pytest.raises(KvError):
        nodebase.commit()


def test_node_decodes_stored_encoding(nodebase):
    hex_key = keybytes_to_hex(b"key")
    blob = rlp.encode(ShortNode(hex_to_compact(hex_key), ValueNode(b"value")).to_rlp_item())
    node_hash = bytes(range(32))
    nodebase.begin()
    nodebase.insert(node_hash, blob)
    nodebase.commit()

    node = nodebase.node(node_hash)
    assert isinstance(node, ShortNode)
    assert node.key == hex_key
    assert node.val == b"value"
    assert node.flags.hash == node_hash


def test_node_missing_returns_none(nodebase):
    assert nodebase.node(bytes(32)) is None