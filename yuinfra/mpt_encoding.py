"""Key encodings used by the Merkle Patricia trie.

Keys appear in three forms. KEYBYTES is the raw key. HEX holds one byte per
nibble, optionally followed by the terminator 16, which marks that the node at
the key holds a value. COMPACT (hex-prefix encoding) packs the nibbles two per
byte behind a flag nibble whose lowest bit is the oddness of the length and
whose second bit is the terminator; for odd lengths the first nibble shares
the flag byte.
"""

TERMINATOR = 16


def _decode_nibbles(nibbles: bytes) -> bytes:
    """Pack pairs of nibbles into bytes."""
    return bytes(((hi << 4) | lo) & 0xFF for hi, lo in zip(nibbles[0::2], nibbles[1::2]))


def has_term(s: bytes) -> bool:
    """Whether a hex key ends with the terminator."""
    return len(s) > 0 and s[-1] == TERMINATOR


def hex_to_compact(hex_key: bytes) -> bytes:
    """Convert a hex key into compact encoding."""
    hex_key = bytes(hex_key)
    terminator = 0
    if has_term(hex_key):
        terminator = 1
        hex_key = hex_key[:-1]
    flag = terminator << 5
    if len(hex_key) & 1:
        flag |= 1 << 4
        flag |= hex_key[0]
        hex_key = hex_key[1:]
    return bytes([flag]) + _decode_nibbles(hex_key)


def keybytes_to_hex(key: bytes) -> bytes:
    """Split each key byte into two nibbles and append the terminator."""
    nibbles = bytearray()
    for b in bytes(key):
        nibbles.append(b >> 4)
        nibbles.append(b & 0x0F)
    nibbles.append(TERMINATOR)
    return bytes(nibbles)


def compact_to_hex(compact: bytes) -> bytes:
    """Convert a compact key back into hex form."""
    compact = bytes(compact)
    if not compact:
        return compact
    base = keybytes_to_hex(compact)
    if base[0] < 2:
        base = base[:-1]
    chop = 2 - (base[0] & 1)
    return base[chop:]


def hex_to_keybytes(hex_key: bytes) -> bytes:
    """Turn hex nibbles back into key bytes; the key must have even length."""
    hex_key = bytes(hex_key)
    if has_term(hex_key):
        hex_key = hex_key[:-1]
    if len(hex_key) & 1:
        raise ValueError("can't convert hex key of odd length")
    return _decode_nibbles(hex_key)


def prefix_len(a: bytes, b: bytes) -> int:
    """Length of the common prefix of ``a`` and ``b``."""
    return next(
        (i for i, (x, y) in enumerate(zip(a, b)) if x != y),
        min(len(a), len(b)),
    )