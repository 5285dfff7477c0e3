"""
Time helpers.

WHAT: Naive-UTC timestamps and injectable clocks
WHY: Database columns store naive UTC; expiry rules need a controllable "now"
HOW: utcnow() plus a Clock type alias used by the engine and tests
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time without tzinfo, matching DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
