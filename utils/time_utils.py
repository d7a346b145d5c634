"""
utils/time_utils.py

Purpose: Time and expiry helpers

- ISO-8601 timestamps for stored records
- Epoch milliseconds for notifications and realtime events
"""

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Returns the current UTC time (timezone-aware).
    """
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """
    Returns the current UTC time as an ISO-8601 string with a trailing Z.
    """
    return utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_ms() -> int:
    """
    Returns milliseconds since the Unix epoch.
    """
    return int(time.time() * 1000)

