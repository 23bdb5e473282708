# carebase/utils/timezone.py
from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Returns a *naive* datetime representing UTC time.
    DateTime columns are naive; keep every comparison in the same frame.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
