"""Per-URL result cache for the Lookup API classifier.

Entries expire individually: a URL with matches lives as long as the shortest
``cacheDuration`` the upstream attached to its matches, a URL without matches
lives for the configured negative TTL. The cache is bounded; when full, the
oldest inserted entry is evicted first.

Thread-safety:
    Safe for single-threaded asyncio use (all access from the event loop).
    NOT safe for concurrent OS-thread access (not needed here).
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Optional

from sbgateway.classifier.protocol import URLThreat


class ThreatCache:
    """Bounded TTL cache mapping a URL to its classifier result.

    Args:
        max_entries: Capacity; the oldest entry is evicted beyond this.
        clock:       Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[str, tuple[float, list[URLThreat]]] = OrderedDict()
        self._max_entries = max_entries
        self._clock = clock

    def get(self, url: str) -> Optional[list[URLThreat]]:
        """Return the cached threats for ``url``, or None on miss / expiry."""
        entry = self._entries.get(url)
        if entry is None:
            return None
        expires_at, threats = entry
        if expires_at <= self._clock():
            del self._entries[url]
            return None
        return list(threats)

    def put(self, url: str, threats: list[URLThreat], ttl_s: float) -> None:
        """Cache ``threats`` for ``url`` for ``ttl_s`` seconds. Non-positive TTLs are not stored."""
        if ttl_s <= 0 or self._max_entries <= 0:
            return
        self._entries.pop(url, None)
        self._entries[url] = (self._clock() + ttl_s, list(threats))
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)
