"""
Module: clock.py
Description: Wall-clock helpers shared by the delivery pipeline.

Timestamps throughout the service are integer epoch milliseconds,
which is also what goes out on the wire.
"""

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
