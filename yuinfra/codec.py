"""Pluggable value codecs."""

import pickle
from abc import ABC, abstractmethod
from typing import Any

from yuinfra import rlp


class Codec(ABC):
    """Turns values into bytes and back."""

    @abstractmethod
    def encode_to_bytes(self, val: Any) -> bytes:
        """Serialise ``val``."""

    @abstractmethod
    def decode_bytes(self, data: bytes) -> Any:
        """Deserialise ``data``."""


class RlpCodec(Codec):
    """RLP codec; decoding yields bytes or nested lists of bytes."""

    def encode_to_bytes(self, val: Any) -> bytes:
        return rlp.encode(val)

    def decode_bytes(self, data: bytes) -> Any:
        return rlp.decode(data)


class PickleCodec(Codec):
    """Codec for arbitrary Python objects."""

    def encode_to_bytes(self, val: Any) -> bytes:
        return pickle.dumps(val)

    def decode_bytes(self, data: bytes) -> Any:
        return pickle.loads(data)