"""
Optimistic toggle state (likes and similar counters) with explicit revert.
"""

import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger("dubsync")


class OptimisticToggle:
    """A local intent overlaid on a server-confirmed (active, count) pair."""

    def __init__(self, active: bool, count: int) -> None:
        self.confirmed_active = active
        self.confirmed_count = count
        self.active = active
        self.count = count
        self.pending = False

    async def toggle(self, transaction: Callable[[bool], Awaitable[None]]) -> bool:
        """Flip the intent now, then commit it; on failure revert to confirmed."""
        desired = not self.active
        self.active = desired
        self.count = self.count + (1 if desired else -1)
        self.pending = True
        try:
            await transaction(desired)
        except Exception as e:
            logger.error(f"Toggle transaction failed, reverting: {e}")
            self.active = self.confirmed_active
            self.count = self.confirmed_count
            raise
        else:
            self.confirmed_active = self.active
            self.confirmed_count = self.count
        finally:
            self.pending = False
        return self.active
