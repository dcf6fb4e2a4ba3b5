"""UTC clock for turn timestamps and conversation idle tracking.

Turns, requests and context touch times are all stamped through
``utc_now`` so they compare safely; tests patch it here to age a
conversation without sleeping.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def idle_for(last_activity: datetime) -> timedelta:
    """Time elapsed since *last_activity*; never negative."""
    return max(timedelta(0), utc_now() - last_activity)
