"""
Session-scoped ranking cache.

Keeps a computed ranking stable for the life of a page view: a hit returns
the stored order verbatim, even if the interaction log changed since it
was computed. Entries are replaced wholesale on expiry or refresh, never
patched.

The key is a stable signature of the page context, the collection / search
/ anchor identity, the candidate-set size, and a digest of the active hard
constraints, the sort and the candidate ids, so a hit can never serve items
excluded by a different filter or belonging to a different grid.
"""

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple

from core.logging import LoggerMixin
from recs.models import FilterContext, Recommendation


def ranking_cache_key(
    context: FilterContext,
    candidate_count: int,
    candidate_ids: Optional[Iterable[str]] = None,
) -> str:
    """
    Stable signature for a ranking request.

    ``candidate_ids`` is order-insensitive; two grids of the same size but
    different items get different keys.

    Example:
        page-load-ranking-collection-kits-24-3f2a9c1b0d7e
    """
    if context.search_query:
        identity = context.search_query.strip().lower()
    elif context.collection_handle:
        identity = context.collection_handle
    elif context.current_product_id:
        identity = context.current_product_id
    else:
        identity = "-"

    constraints = context.model_dump(
        include={"price_range", "categories", "brands", "availability", "sort_by"},
        mode="json",
    )
    constraints["categories"] = sorted(c.lower() for c in constraints["categories"])
    constraints["brands"] = sorted(b.lower() for b in constraints["brands"])
    if candidate_ids is not None:
        constraints["candidates"] = sorted(set(candidate_ids))
    digest = hashlib.sha1(
        json.dumps(constraints, sort_keys=True).encode("utf-8")
    ).hexdigest()[:12]

    return f"page-load-ranking-{context.context.value}-{identity}-{candidate_count}-{digest}"


@dataclass(frozen=True)
class RankingCacheEntry:
    """Immutable cached ranking."""

    key: str
    recommendations: Tuple[Recommendation, ...]
    created_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl_seconds


class RankingCache(LoggerMixin):
    """
    Thread-safe TTL cache of full ordered rankings.

    Reads and the single wholesale write on a miss are the only operations;
    concurrent misses for the same key are last-writer-wins. When more than
    ``max_entries`` live, the least recently used entries are evicted.

    Usage:
        cache = RankingCache(ttl_seconds=300)
        ranking, hit = cache.get_or_compute(key, compute_fn)
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, RankingCacheEntry] = {}
        self._last_access: Dict[str, float] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Tuple[Recommendation, ...]]:
        """Stored ranking for ``key``, None if absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self._last_access.pop(key, None)
                return None
            self._last_access[key] = now
            return entry.recommendations

    def put(self, key: str, recommendations: Sequence[Recommendation]) -> RankingCacheEntry:
        """Replace the entry for ``key`` wholesale."""
        now = self._clock()
        entry = RankingCacheEntry(
            key=key,
            recommendations=tuple(recommendations),
            created_at=now,
            ttl_seconds=self._ttl_seconds,
        )
        with self._lock:
            self._entries[key] = entry
            self._last_access[key] = now
            self._evict_locked(now)
        return entry

    def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Sequence[Recommendation]],
    ) -> Tuple[Tuple[Recommendation, ...], bool]:
        """
        Return (ranking, hit). On a miss ``compute`` runs outside the lock
        and its result is stored before returning.
        """
        cached = self.get(key)
        if cached is not None:
            with self._lock:
                self._hits += 1
            self.logger.debug("Ranking cache hit", key=key)
            return cached, True

        with self._lock:
            self._misses += 1
        ranking = compute()
        entry = self.put(key, ranking)
        self.logger.debug("Ranking cache stored", key=key, size=len(entry.recommendations))
        return entry.recommendations, False

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """
        Drop entries whose key starts with ``prefix`` (all entries if None).

        Returns:
            Number of entries removed
        """
        with self._lock:
            if prefix is None:
                keys = list(self._entries)
            else:
                keys = [k for k in self._entries if k.startswith(prefix)]
            for key in keys:
                del self._entries[key]
                self._last_access.pop(key, None)
        if keys:
            self.logger.info("Ranking cache invalidated", count=len(keys), prefix=prefix)
        return len(keys)

    def clear(self) -> None:
        self.invalidate()

    def _evict_locked(self, now: float) -> None:
        for key in [k for k, e in self._entries.items() if e.is_expired(now)]:
            del self._entries[key]
            self._last_access.pop(key, None)

        overflow = len(self._entries) - self._max_entries
        if overflow > 0:
            oldest = sorted(self._entries, key=lambda k: self._last_access.get(k, 0.0))
            for key in oldest[:overflow]:
                del self._entries[key]
                self._last_access.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, float]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "ttl_seconds": self._ttl_seconds,
                "max_entries": self._max_entries,
            }
