# yuinfra

Infrastructure pieces for building a blockchain node in Python.

- `yuinfra.mpt_trie.Trie`: a Merkle Patricia trie whose nodes live in a
  key-value database, with Keccak-256 hashing, `commit`, `hash` and `prove`.
- `yuinfra.nodebase.NodeBase`: the store of encoded trie nodes, kept under the
  `mpt-data` prefix of a key-value database.
- `yuinfra.mpt_node`, `yuinfra.mpt_encoding`, `yuinfra.hasher`: trie nodes and
  their decoding (`decode_node`), key encodings (`keybytes_to_hex`,
  `hex_to_compact`, `compact_to_hex`, ...), and the node hasher with
  `keccak256`.
- `yuinfra.merkle_tree.MerkleTree`: a SHA-256 Merkle tree over 32-byte hashes.
- `yuinfra.rlp`: RLP `encode` and `decode`, plus the low-level `split`,
  `split_string`, `split_list` and `count_values`; malformed input raises
  `RlpError`.
- `yuinfra.codec`: `RlpCodec` and `PickleCodec`, both with `encode_to_bytes`
  and `decode_bytes`.
- `yuinfra.kv`: prefixed key-value stores (`SqliteKvdb`, `LmdbKvdb`), prefixed
  views (`KvInstance`) and buffered transactions (`KvTxn`), made with
  `new_kvdb(KVConf(...))`.
- `yuinfra.sqldb`: SQL databases through SQLAlchemy, made with
  `new_sql_db(SqlDbConf(...))`.
- `yuinfra.p2p`: the `P2pNetwork` interface, an in-process `MockP2p`, and the
  line-framed `write_to_stream`, `read_from_stream` and `handle_p2p_request`.
- Small utilities: `yuinfra.compress` (`zip_files`, and `unzip_file`, which
  raises `IllegalPathError` for entries that would land outside the target
  directory), `yuinfra.netaddr` (`make_port`, `make_local_ip`, `make_ip`) and
  `yuinfra.timestamps` (`now_nano_ts`, `now_ts`).

## Install

    pip install .

For running the tests:

    pip install ".[test]"
    pytest

## Example: a trie on disk

    from yuinfra.kv import KVConf, new_kvdb
    from yuinfra.nodebase import NodeBase
    from yuinfra.mpt_trie import EMPTY_ROOT, Trie

    kvdb = new_kvdb(KVConf(kv_type="sqlite", path="./statedb"))
    nodes = NodeBase(kvdb)

    trie = Trie(EMPTY_ROOT, nodes)
    trie.update(b"key", b"value")
    trie.update(b"kez", b"other")
    root = trie.commit(None)

    reopened = Trie(root, nodes)
    assert reopened.get(b"key") == b"value"
    proof = reopened.prove(b"key")

A root of 32 zero bytes or `EMPTY_ROOT` starts a fresh trie. Opening a root
that is not in the database, or reaching a node that is missing, raises
`MissingNodeError`. Updating a key with an empty value deletes it.

`prove` commits the trie and returns a list that starts with the root hash
and the root node's encoding, followed by the encodings of the hashed nodes
on the path to the key. `commit` accepts a callback that is called with
`(value, parent_hash)` for each value held directly by a stored node.

## Example: a Merkle root

    from yuinfra.merkle_tree import MerkleTree

    tree = MerkleTree.from_hashes([bytes(32), bytes([1]) * 32])
    print(tree.root_hash().hex())

An odd number of leaves is padded by repeating the last one; an empty list
gives a root of 32 zero bytes.

## Example: a key-value store

    from yuinfra.kv import KVConf, new_kvdb

    with new_kvdb(KVConf(kv_type="lmdb", path="./kvdata")) as db:
        accounts = db.new("accounts")
        accounts.set(b"alice", b"100")
        assert accounts.exist(b"alice")

        with accounts.new_kv_txn() as txn:
            txn.set(b"bob", b"50")
            txn.delete(b"alice")

`kv_type` may be `sqlite` or `bolt` (a single SQLite file) or `lmdb` or
`pebble` (an LMDB directory). Any other value raises `KvError`. A transaction
used as a context manager commits when its block succeeds and rolls back when
it raises. `SqliteKvdb.iterate(prefix, key)` yields `(full_key, value)` pairs
for all keys that start with the prefix and key, in key order.

## Example: a SQL database

    from sqlalchemy import Column, Integer, MetaData, String, Table
    from yuinfra.sqldb import SqlDbConf, new_sql_db

    metadata = MetaData()
    blocks = Table("blocks", metadata, Column("id", Integer, primary_key=True),
                   Column("hash", String))

    with new_sql_db(SqlDbConf(sql_db_type="sqlite", dsn="./chain.db")) as db:
        db.create_if_not_exist(blocks)
        db.auto_migrate(blocks)

`sql_db_type` is `sqlite`, `mysql` or `postgre`. For sqlite `dsn` is a file
path (empty for an in-memory database); for the others it is a database URL,
and the matching database driver has to be installed separately. An unknown
type, or a database that cannot be opened or migrated, raises `SqlDbError`.
`auto_migrate` creates the table or adds the columns it lacks; it never drops
anything. Tables may be SQLAlchemy `Table` objects or mapped classes.

## Peer messaging

Messages on a stream are one line each: the request code in decimal, the
payload, and a newline. The first three bytes of a line are read as the code.
`handle_p2p_request` answers one request with the handler registered for its
code and raises `P2pError` when there is none.

`MockP2p(nodes_num)` delivers every publication on a topic `nodes_num` times,
raises `P2pError` for topics that were not added, and answers `request_peer`
with its own handler for the code.

## What is not included

There is no real peer-to-peer transport: the package offers the
`P2pNetwork` interface, the in-process `MockP2p` and the stream helpers, but
nothing that discovers peers or opens network connections. There is no
command-line program and no server.