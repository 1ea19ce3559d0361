"""LRU cache with TTL for availability lookups."""

import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Tuple

from bulk_orders.models.data_models import AvailabilityResult


@dataclass
class CacheMetrics:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ProductCache:
    """
    Availability cache keyed by SKU.

    Entries expire after `ttl_seconds`; when full, the least recently used
    entry is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_size: int = 1000,
        now: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._now = now
        self._entries: "OrderedDict[str, Tuple[AvailabilityResult, float]]" = OrderedDict()
        self.metrics = CacheMetrics()

    def get(self, sku: str) -> Optional[AvailabilityResult]:
        entry = self._entries.get(sku)
        if entry is None:
            self.metrics.misses += 1
            return None

        value, stored_at = entry
        if self._now() - stored_at > self.ttl_seconds:
            del self._entries[sku]
            self.metrics.expirations += 1
            self.metrics.misses += 1
            return None

        self._entries.move_to_end(sku)
        self.metrics.hits += 1
        return value

    def set(self, sku: str, value: AvailabilityResult) -> None:
        if sku in self._entries:
            self._entries.move_to_end(sku)
        elif len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
            self.metrics.evictions += 1
        self._entries[sku] = (value, self._now())

    def consume(self, sku: str, quantity: int) -> None:
        """Deduct quantity written to the cart from a cached entry, keeping its age."""
        entry = self._entries.get(sku)
        if entry is None:
            return
        value, stored_at = entry
        remaining = max(0, value.quantity - quantity)
        self._entries[sku] = (replace(value, quantity=remaining, available=remaining > 0), stored_at)

    def invalidate(self, sku: str) -> None:
        self._entries.pop(sku, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, float]:
        return {
            "size": len(self._entries),
            "hits": self.metrics.hits,
            "misses": self.metrics.misses,
            "evictions": self.metrics.evictions,
            "expirations": self.metrics.expirations,
            "hit_rate": round(self.metrics.hit_rate, 4),
        }
