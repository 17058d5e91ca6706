"""
Build trigger debouncing.

Editors often write a file several times per save. Each write would start a
full compiler run, so build triggers for the same source are collapsed:
only the last trigger inside the quiet window actually builds.

Example:
--------
widget.ts modified at t=0ms     } superseded
widget.ts modified at t=50ms    } superseded
widget.ts modified at t=100ms   → builds at t=300ms (200ms window)
"""

import asyncio
import logging
from pathlib import Path
from typing import Hashable

logger = logging.getLogger(__name__)

# Longest accepted quiet window, in seconds
MAX_DELAY = 10


class BuildDebouncer:
    """
    Per-key trailing-edge debouncer.

    Callers await settle(key). It returns True for the caller that should
    go ahead (no newer trigger arrived during the window) and False for
    callers that were superseded or cancelled.
    """

    def __init__(self, delay: float = 0.2) -> None:
        """
        Args:
            delay: Quiet window in seconds; 0 disables debouncing

        Raises:
            ValueError: If delay is negative or above 10 seconds
        """
        if not 0 <= delay <= MAX_DELAY:
            raise ValueError(f"delay must be between 0 and {MAX_DELAY} seconds")
        self._delay = delay
        # key -> generation of the latest trigger
        self._generations: dict[Hashable, int] = {}
        self._counter = 0

    @property
    def delay(self) -> float:
        return self._delay

    async def settle(self, key: Hashable) -> bool:
        if self._delay == 0:
            return True

        self._counter += 1
        generation = self._counter
        self._generations[key] = generation

        await asyncio.sleep(self._delay)

        if self._generations.get(key) != generation:
            if isinstance(key, Path):
                logger.debug(f"Build trigger for {key.name} superseded")
            return False

        del self._generations[key]
        return True

    def cancel(self, key: Hashable) -> bool:
        """
        Drop any pending trigger for key.

        Returns:
            True if a trigger was pending
        """
        return self._generations.pop(key, None) is not None

    def pending(self) -> int:
        return len(self._generations)
