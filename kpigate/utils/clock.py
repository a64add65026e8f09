"""Timestamp helpers shared by the stores."""

from datetime import datetime, timezone


def now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def today() -> str:
    """Current UTC date as YYYY-MM-DD, the format evaluation dates are keyed by."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")
