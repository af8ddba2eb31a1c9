"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


def unix_now() -> int:
    """Return the current UTC time as whole unix seconds, as stored on hooks."""
    return int(utcnow().timestamp())
