import pytest

from yuinfra.mpt_encoding import (
    compact_to_hex,
    has_term,
    hex_to_compact,
    hex_to_keybytes,
    keybytes_to_hex,
    prefix_len,
)

KEYS = [b"", b"k", b"key", b"\x00\xff\x10", bytes(range(40))]


def test_hex_to_compact_odd_without_terminator():
    assert hex_to_compact(bytes([1, 2, 3, 4, 5])) == bytes([0x11, 0x23, 0x45])


def test_hex_to_compact_even_with_terminator():
    assert hex_to_compact(bytes([0, 15, 1, 12, 11, 8, 16])) == bytes([0x20, 0x0F, 0x1C, 0xB8])


def test_keybytes_to_hex_splits_nibbles():
    assert keybytes_to_hex(b"\x12\x34") == bytes([1, 2, 3, 4, 16])


@pytest.mark.parametrize("key", KEYS)
def test_keybytes_hex_round_trip(key):
    hex_key = keybytes_to_hex(key)
    assert has_term(hex_key)
    assert len(hex_key) == 2 * len(key) + 1
    assert hex_to_keybytes(hex_key) == key


@pytest.mark.parametrize("key", KEYS)
def test_compact_round_trip_with_terminator(key):
    hex_key = keybytes_to_hex(key)
    assert compact_to_hex(hex_to_compact(hex_key)) == hex_key


@pytest.mark.parametrize("key", [k for k in KEYS if k])
def test_compact_round_trip_without_terminator_even_and_odd(key):
    even = keybytes_to_hex(key)[:-1]
    odd = even[1:]
    assert compact_to_hex(hex_to_compact(even)) == even
    assert compact_to_hex(hex_to_compact(odd)) == odd


def test_compact_length_halves_nibbles():
    even = keybytes_to_hex(b"abcd")[:-1]
    assert len(hex_to_compact(even)) == len(even) // 2 + 1


def test_compact_to_hex_empty():
    assert compact_to_hex(b"") == b""


def test_hex_to_keybytes_odd_length_raises():
    odd = keybytes_to_hex(b"ab")[1:]
    with pytest.raises(ValueError):
        hex_to_keybytes(odd)


def test_has_term():
    assert not has_term(b"")
    assert not has_term(keybytes_to_hex(b"x")[:-1])
    assert has_term(keybytes_to_hex(b""))


def test_prefix_len_stops_at_first_difference():
    common = b"ab"
    assert prefix_len(common + b"c", common + b"d") == len(common)


def test_prefix_len_bounded_by_shorter():
    a = b"abc"
    assert prefix_len(a, a + b"def") == len(a)
    assert prefix_len(a + b"def", a) == len(a)
    assert prefix_len(a, a) == len(a)
    assert prefix_len(b"", a) == len(b"")