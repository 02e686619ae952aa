"""Dashboard statistics derived from the submission store.

Stats are a view over the store, never an independently maintained counter.
By default every read scans the store. An optional :class:`StatsCache` keeps
per-kind counts for a short TTL; the gateway invalidates a kind as soon as a
decision on it commits, and stores built with ``on_create`` invalidate it on
each new submission. The cache is per process.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .states import SubmissionKind, SubmissionStatus
from .store import SubmissionStore

logger = logging.getLogger(__name__)

StatusCounts = Dict[SubmissionStatus, int]


@dataclass(frozen=True)
class DashboardStats:
    """Submission counters shown on the admin dashboard."""

    organisations: int
    businesses: int
    artists: int
    pending_organisations: int
    pending_businesses: int
    pending_artists: int

    @property
    def total_pending(self) -> int:
        return self.pending_organisations + self.pending_businesses + self.pending_artists

    def total_for(self, kind: SubmissionKind) -> int:
        return getattr(self, kind.plural)

    def pending_for(self, kind: SubmissionKind) -> int:
        return getattr(self, f"pending_{kind.plural}")

    def to_dict(self) -> Dict[str, int]:
        return {
            "organisations": self.organisations,
            "businesses": self.businesses,
            "artists": self.artists,
            "pending_organisations": self.pending_organisations,
            "pending_businesses": self.pending_businesses,
            "pending_artists": self.pending_artists,
            "total_pending": self.total_pending,
        }


class StatsCache:
    """Per-kind status counts kept for at most ``ttl_seconds``.

    One cache may be shared by many aggregators (for example one per
    request, each over its own database session).

    Args:
        ttl_seconds: How long counts may be served. 0 disables caching.
        clock: Monotonic time source, replaceable in tests
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[SubmissionKind, Tuple[float, StatusCounts]] = {}
        # Bumped on every invalidation so a scan that started earlier
        # cannot repopulate the cache with pre-decision counts
        self._generations: Dict[SubmissionKind, int] = {kind: 0 for kind in SubmissionKind}
        self._lock = threading.Lock()

    def get_or_load(self, kind: SubmissionKind, load: Callable[[], StatusCounts]) -> StatusCounts:
        if self.ttl_seconds <= 0:
            return load()

        now = self._clock()
        with self._lock:
            cached = self._entries.get(kind)
            generation = self._generations[kind]
        if cached and now - cached[0] < self.ttl_seconds:
            return cached[1]

        counts = load()
        with self._lock:
            if self._generations[kind] == generation:
                self._entries[kind] = (now, counts)
        return counts

    def invalidate(self, kind: Optional[SubmissionKind] = None) -> None:
        """Drop cached counts for one kind, or for every kind."""
        kinds = list(SubmissionKind) if kind is None else [kind]
        with self._lock:
            for k in kinds:
                self._entries.pop(k, None)
                self._generations[k] += 1
        logger.debug("Invalidated stats cache for %s", kind.value if kind else "all kinds")


class StatsAggregator:
    """Computes :class:`DashboardStats` by folding store counts per kind.

    Args:
        store: Submission store to scan
        cache: Optional shared cache; without one every call scans the store
    """

    def __init__(self, store: SubmissionStore, cache: Optional[StatsCache] = None):
        self.store = store
        self.cache = cache

    def compute_stats(self) -> DashboardStats:
        """Build the dashboard view from current store contents."""
        fields = {}
        for kind in SubmissionKind:
            by_status = self._counts_for(kind)
            fields[kind.plural] = sum(by_status.values())
            fields[f"pending_{kind.plural}"] = by_status.get(SubmissionStatus.PENDING, 0)

        return DashboardStats(**fields)

    def invalidate(self, kind: Optional[SubmissionKind] = None) -> None:
        if self.cache is not None:
            self.cache.invalidate(kind)

    def _counts_for(self, kind: SubmissionKind) -> StatusCounts:
        if self.cache is None:
            return self.store.count_by_status(kind)
        return self.cache.get_or_load(kind, lambda: self.store.count_by_status(kind))
