from __future__ import annotations

import datetime
from collections.abc import Callable

Clock = Callable[[], int]


def utc_now() -> int:
    """Current UNIX time in whole seconds (UTC)."""
    return int(datetime.datetime.now(datetime.UTC).timestamp())
