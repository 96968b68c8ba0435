"""
paraclaim/core/time.py

Two notions of time live here and nowhere else:

    unix_now()        — integer Unix seconds; the domain clock used for
                        coverage windows, deposits and observations
    audit_timestamp() — wire format for audit envelopes:
                        YYYY-MM-DDTHH:MM:SS.mmmZ (milliseconds, explicit Z)

Components take a `clock` callable so tests can pin "now".
"""

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]

DAY_SECONDS  = 86_400
YEAR_SECONDS = 365 * DAY_SECONDS


def unix_now() -> int:
    """Current time as whole Unix seconds."""
    return int(time.time())


def audit_timestamp() -> str:
    """
    Return current UTC time in audit wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    now = datetime.now(timezone.utc)
    ms  = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"


class FixedClock:
    """Manually advanced clock. Used by tests and offline quoting."""

    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now
