"""UTC time helpers.

Cache-side timestamps (rate-limit windows, voice sessions, event enqueue
times) are integer epoch milliseconds; store-side timestamps are aware
datetimes.
"""

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)
