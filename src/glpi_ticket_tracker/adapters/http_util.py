"""Shared HTTP client utilities (e.g. timeouts)."""

from __future__ import annotations

import httpx


def timeouts_for(seconds: float | None) -> httpx.Timeout:
    """Build httpx.Timeout; ``None`` disables timeouts entirely."""
    if seconds is None:
        return httpx.Timeout(None)
    total = float(seconds)
    connect = min(5.0, total)
    return httpx.Timeout(connect=connect, read=total, write=total, pool=connect)
