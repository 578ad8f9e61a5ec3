"""Peer-to-peer network interface, an in-process mock and the line protocol."""

import queue
import re
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, Mapping, Optional

REQUEST_CODE_BYTES_LEN = 3

P2pHandler = Callable[[bytes], bytes]

_CODE_RE = re.compile(rb"[+-]?\d+")


class P2pError(Exception):
    """A peer-to-peer operation failed."""


class P2pNetwork(ABC):
    """Operations a node needs from its peer-to-peer network."""

    @abstractmethod
    def local_id(self) -> str:
        """Identifier of this node."""

    @abstractmethod
    def get_boot_nodes(self) -> list[str]:
        """Identifiers of the configured boot nodes."""

    @abstractmethod
    def connect_boot_nodes(self) -> None:
        """Connect to every boot node."""

    @abstractmethod
    def add_topic(self, topic_name: str) -> None:
        """Join a publish/subscribe topic."""

    @abstractmethod
    def set_handlers(self, handlers: Mapping[int, P2pHandler]) -> None:
        """Install request handlers keyed by request code."""

    @abstractmethod
    def request_peer(self, peer_id: str, code: int, request: bytes) -> Optional[bytes]:
        """Send a request to a peer and return its response."""

    @abstractmethod
    def pub_p2p(self, topic: str, msg: bytes) -> None:
        """Publish a message on a topic."""

    @abstractmethod
    def sub_p2p(self, topic: str) -> bytes:
        """Wait for the next message on a topic."""


class MockP2p(P2pNetwork):
    """In-process network that delivers each publication once per node."""

    def __init__(self, nodes_num: int) -> None:
        self.nodes_num = nodes_num
        self.handlers: dict[int, P2pHandler] = {}
        self.connected_peers: list[str] = []
        self._topics: dict[str, queue.Queue] = {}

    def local_id(self) -> str:
        return ""

    def get_boot_nodes(self) -> list[str]:
        return []

    def connect_boot_nodes(self) -> None:
        """Record every boot node as connected; the mock has none."""
        for peer in self.get_boot_nodes():
            if peer not in self.connected_peers:
                self.connected_peers.append(peer)

    def add_topic(self, topic_name: str) -> None:
        self._topics[topic_name] = queue.Queue(maxsize=self.nodes_num)

    def set_handlers(self, handlers: Mapping[int, P2pHandler]) -> None:
        self.handlers = dict(handlers)

    def request_peer(self, peer_id: str, code: int, request: bytes) -> Optional[bytes]:
        """Answer the request with this node's own handler for ``code``."""
        handler = self.handlers.get(code)
        if handler is None:
            raise P2pError(f"no p2p-handler for code({code})")
        return handler(bytes(request))

    def _topic(self, topic: str) -> queue.Queue:
        try:
            return self._topics[topic]
        except KeyError:
            raise P2pError(f"no p2p topic: {topic}") from None

    def pub_p2p(self, topic: str, msg: bytes) -> None:
        channel = self._topic(topic)
        for _ in range(self.nodes_num):
            channel.put(msg)

    def sub_p2p(self, topic: str) -> bytes:
        return self._topic(topic).get()


def _read_line(stream: BinaryIO) -> bytes:
    line = stream.readline()
    if not line.endswith(b"\n"):
        raise EOFError("stream ended before end of message")
    return line[:-1]


def _parse(line: bytes) -> tuple[int, bytes]:
    code_bytes = line[:REQUEST_CODE_BYTES_LEN]
    if not _CODE_RE.fullmatch(code_bytes):
        raise P2pError(f"invalid request code {code_bytes!r}")
    return int(code_bytes), line[REQUEST_CODE_BYTES_LEN:]


def write_to_stream(code: int, data: bytes, stream: BinaryIO) -> None:
    """Write one message: the decimal code, the payload and a newline."""
    stream.write(str(code).encode() + bytes(data) + b"\n")


def read_from_stream(code: int, stream: BinaryIO) -> Optional[bytes]:
    """Read one message; return its payload if it carries ``code``, else None."""
    req_code, payload = _parse(_read_line(stream))
    if req_code == code:
        return payload
    return None


def handle_p2p_request(stream: BinaryIO, handlers: Mapping[int, P2pHandler]) -> None:
    """Serve one request from ``stream`` with the handler for its code."""
    req_code, payload = _parse(_read_line(stream))
    handler = handlers.get(req_code)
    if handler is None:
        raise P2pError(f"no p2p-handler for code({req_code})")
    write_to_stream(req_code, handler(payload), stream)