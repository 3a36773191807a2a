"""Fixed-window per-key rate limiter."""

from __future__ import annotations

import logging
from datetime import datetime

from rapids.services.key_store import KeyStore, to_ms

logger = logging.getLogger(__name__)

WINDOW_MS = 60_000


def window_start(now: datetime) -> int:
    """Start of the epoch-aligned minute containing ``now``, in milliseconds."""
    return to_ms(now) // WINDOW_MS * WINDOW_MS


class RateLimiter:
    """Requests-per-minute cap counted in the key store.

    Windows are fixed 60 second buckets, not sliding, so a burst straddling a
    boundary can see up to twice the limit within a second or so.
    """

    def __init__(self, store: KeyStore):
        self._store = store

    async def allow(self, key_id: str, limit: int | None, now: datetime) -> bool:
        """Count the request and return True, or return False once the window is full."""
        if limit is None:
            return True

        current = window_start(now)
        # Keep the current and previous window, drop anything older
        await self._store.purge_rate_windows_before(current - WINDOW_MS)

        count = await self._store.increment_rate_window(key_id, current, limit)
        if count is None:
            logger.info("Rate limit reached for key %s (%d/min)", key_id, limit)
            return False
        return True

    async def purge(self, now: datetime) -> int:
        """Delete windows older than the previous one. Returns count deleted."""
        return await self._store.purge_rate_windows_before(window_start(now) - WINDOW_MS)
