"""Timestamp helpers for values written to Supabase"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def from_unix(timestamp: Optional[int]) -> Optional[str]:
    """Convert a Stripe Unix timestamp to an ISO-8601 UTC string"""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
