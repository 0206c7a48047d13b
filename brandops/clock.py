"""Wall-clock helpers shared by the cache, pipeline and HTTP layers."""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def clock_bucket(moment: datetime, width_seconds: int) -> int:
    """Index of the fixed-width window containing *moment*.

    Two instants share a bucket when they fall in the same
    ``width_seconds`` slice of the Unix epoch.
    """
    if width_seconds <= 0:
        raise ValueError("width_seconds must be positive")
    return int(moment.timestamp() // width_seconds)
