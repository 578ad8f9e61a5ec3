"""Wall-clock timestamps."""

import time


def now_nano_ts() -> int:
    """Current Unix time in nanoseconds."""
    return time.time_ns()


def now_ts() -> int:
    """Current Unix time in whole seconds."""
    return int(time.time())