"""Helpers that build ``host:port`` address strings."""


def make_port(port: str) -> str:
    """Return ``port`` with a leading colon, adding one if it is missing."""
    if port.startswith(":"):
        return port
    return ":" + port


def make_local_ip(port: str) -> str:
    """Return a ``localhost`` address for ``port``."""
    return make_ip("localhost", port)


def make_ip(host: str, port: str) -> str:
    """Join ``host`` and ``port`` with exactly one colon between them."""
    if port.startswith(":"):
        return host + port
    return host + ":" + port