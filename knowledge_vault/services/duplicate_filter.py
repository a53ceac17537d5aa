"""Short-lived recency filter that rejects accidental double saves.

Keys are ``(source_url, normalized text prefix)`` pairs held in a
``cachetools.TTLCache`` whose TTL is the recency window, so entries older
than the window expire lazily on access.  The filter is advisory: it is
not persisted, and losing it (restart, eviction) only means a duplicate
might be saved twice.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog
from cachetools import TTLCache

from knowledge_vault.utils.logging import get_logger
from knowledge_vault.utils.text import capture_prefix


class DuplicateFilter:
    """Recency index of recently accepted captures.

    Parameters
    ----------
    window_seconds:
        How long an accepted capture blocks an identical one.
    prefix_length:
        Number of normalized characters compared.
    max_entries:
        Upper bound on tracked keys; the least recently used key is
        dropped first.
    clock:
        Monotonic time source in seconds.  Injectable for tests.
    """

    def __init__(
        self,
        window_seconds: float = 5.0,
        prefix_length: int = 100,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._prefix_length = prefix_length
        self._seen: TTLCache[tuple[str, str], float] = TTLCache(
            maxsize=max_entries,
            ttl=window_seconds,
            timer=clock,
        )
        self._clock = clock
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def check_and_record(self, text: str, source_url: str) -> bool:
        """Return ``True`` and record the capture, or ``False`` if it is a duplicate."""
        key = self._key(text, source_url)
        if key in self._seen:
            self._logger.info("duplicate_capture_rejected", source_url=source_url)
            return False
        self._seen[key] = self._clock()
        return True

    def forget(self, text: str, source_url: str) -> None:
        """Drop the record for a capture whose enqueue did not go through."""
        self._seen.pop(self._key(text, source_url), None)

    def clear(self) -> None:
        self._seen.clear()

    def __len__(self) -> int:
        self._seen.expire()
        return len(self._seen)

    def _key(self, text: str, source_url: str) -> tuple[str, str]:
        return (source_url, capture_prefix(text, self._prefix_length))
