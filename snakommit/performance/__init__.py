"""
Performance utilities for snakommit.

This module provides the building blocks used to keep the interactive
workflow responsive: a bounded TTL cache, a batch processor for bulk file
operations, a parallel dispatch helper and lightweight instrumentation.
None of these are tied to git; they can be reused for any bulk operation.
"""

import os
import time
import logging
from collections import defaultdict
from contextlib import contextmanager
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached value together with the time it was stored."""
    value: Any
    timestamp: float

    def age(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.timestamp

    def is_expired(self, ttl: float, now: Optional[float] = None) -> bool:
        return self.age(now) > ttl


class Cache:
    """
    Key/value cache with expiration and capacity eviction.

    Entries older than ``ttl`` seconds are treated as absent. When the cache
    is full, ``set`` first drops expired entries and, if that is not enough,
    evicts the oldest entries until the cache is back to half its capacity.

    The cache is a best-effort accelerator: no operation raises.
    """

    def __init__(self, max_size: int = 100, ttl: float = 300.0):
        """
        Initialize the cache.

        Args:
            max_size: Number of entries that triggers a cleanup pass
            ttl: Time-to-live in seconds for cached entries
        """
        self._entries: Dict[Hashable, CacheEntry] = {}
        self.max_size = max_size
        self.ttl = ttl
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        """
        Get a value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if absent or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if entry.is_expired(self.ttl):
            self._entries.pop(key, None)
            self.misses += 1
            logger.debug(f"Cache entry expired: {key}")
            return None

        self.hits += 1
        return entry.value

    def set(self, key: Hashable, value: Any) -> Any:
        """
        Store a value with a fresh timestamp.

        Writes are attributed to ``misses`` so that the hit rate reflects
        how often a value had to be recomputed.

        Args:
            key: Cache key
            value: Value to cache

        Returns:
            The cached value
        """
        if len(self._entries) >= self.max_size:
            self._cleanup()

        self._entries[key] = CacheEntry(value=value, timestamp=time.time())
        self.misses += 1
        return value

    def invalidate(self, key: Hashable) -> None:
        """Remove a single key; no-op when absent."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove all entries. Hit/miss counters are kept."""
        self._entries.clear()

    def reset_stats(self) -> None:
        """Reset hit/miss counters."""
        self.hits = 0
        self.misses = 0

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a percentage."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total * 100

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics as dictionary."""
        return {
            'size': len(self._entries),
            'max_size': self.max_size,
            'ttl': self.ttl,
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hit_rate,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self.ttl)

    def _cleanup(self) -> None:
        """Drop expired entries, then the oldest ones down to half capacity."""
        now = time.time()
        expired_keys = [key for key, entry in self._entries.items()
                        if entry.is_expired(self.ttl, now)]
        for key in expired_keys:
            del self._entries[key]

        evicted = 0
        if len(self._entries) >= self.max_size:
            # sorted() is stable, so equal timestamps keep insertion order
            oldest_first = sorted(self._entries.items(), key=lambda item: item[1].timestamp)
            evicted = len(self._entries) - self.max_size // 2
            for key, _ in oldest_first[:evicted]:
                del self._entries[key]

        if expired_keys or evicted:
            logger.debug(f"Cache cleanup removed {len(expired_keys)} expired "
                         f"and {evicted} oldest entries")


def iter_batches(items: Sequence[Any], batch_size: int) -> Iterator[List[Any]]:
    """Yield consecutive slices of ``items`` with at most ``batch_size`` elements."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    items = list(items)
    for start in range(0, len(items), batch_size):
        yield items[start:start + batch_size]


class BatchProcessor:
    """Processes items in fixed-size batches and tracks aggregate statistics."""

    def __init__(self, batch_size: int = 100):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size
        self.total_processed = 0
        self.batch_count = 0

    def process(self, items: Sequence[Any], worker: Callable[[List[Any]], Sequence[Any]],
                batch_size: Optional[int] = None) -> List[Any]:
        """
        Process items batch by batch.

        Batches are handed to ``worker`` in input order and the sequences it
        returns are concatenated in the same order.

        Args:
            items: Items to process
            worker: Callable receiving one batch and returning a sequence of results
            batch_size: Optional override for the default batch size

        Returns:
            Combined results from all batches
        """
        size = batch_size or self.batch_size
        results: List[Any] = []

        for batch in iter_batches(items, size):
            batch_result = worker(batch)
            results.extend(batch_result)
            self.batch_count += 1
            self.total_processed += len(batch)
            logger.debug(f"Processed batch {self.batch_count} ({len(batch)} items)")

        return results

    @property
    def average_batch_size(self) -> float:
        if self.batch_count == 0:
            return 0.0
        return self.total_processed / self.batch_count

    def stats(self) -> Dict[str, Any]:
        """Get batch processing statistics."""
        return {
            'batch_size': self.batch_size,
            'total_processed': self.total_processed,
            'batch_count': self.batch_count,
            'average_batch_size': self.average_batch_size,
        }


class ParallelHelper:
    """
    Fans work out across a thread pool when it is worth it.

    Whether parallel execution is available is detected once per process
    from the usable processor count. Results always come back in input
    order, whichever path runs.
    """

    DEFAULT_THRESHOLD = 10
    FALLBACK_PROCESSOR_COUNT = 2

    _available: Optional[bool] = None

    @classmethod
    def available(cls) -> bool:
        """Check if parallel processing is available in this process."""
        if cls._available is None:
            cls._available = cls.processor_count() > 1
            logger.debug(f"Parallel processing available: {cls._available}")
        return cls._available

    @classmethod
    def processor_count(cls) -> int:
        """Get number of usable processors, falling back to a conservative default."""
        if hasattr(os, 'sched_getaffinity'):
            count = len(os.sched_getaffinity(0))
        else:
            count = os.cpu_count()
        return count if count else cls.FALLBACK_PROCESSOR_COUNT

    @classmethod
    def process(cls, items: Sequence[Any], func: Callable[[Any], Any],
                threshold: int = DEFAULT_THRESHOLD, workers: Optional[int] = None) -> List[Any]:
        """
        Apply ``func`` to every item, in parallel when the batch is large enough.

        Args:
            items: Items to process
            func: Callable applied to each item; must not rely on side effects
                of other items in the same call
            threshold: Parallel execution is used only above this many items
            workers: Number of worker threads (defaults to processor count)

        Returns:
            Results in the same order as ``items``
        """
        items = list(items)
        if cls.available() and len(items) > threshold:
            max_workers = max(1, workers or cls.processor_count())
            logger.debug(f"Processing {len(items)} items with {max_workers} workers")
            # leaving the block waits for submitted work, so an interrupt
            # never abandons a running item half way
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                return list(executor.map(func, items))

        return [func(item) for item in items]


class Monitor:
    """Accumulates wall-clock timings per label."""

    def __init__(self):
        self._timings: Dict[str, float] = defaultdict(float)
        self._counts: Dict[str, int] = defaultdict(int)

    @contextmanager
    def measure(self, label: str):
        """Time the enclosed block under ``label``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self._timings[label] += time.perf_counter() - start
            self._counts[label] += 1

    def report(self) -> List[str]:
        """Get formatted timing lines, slowest label first."""
        lines = []
        for label, total in sorted(self._timings.items(), key=lambda item: -item[1]):
            count = self._counts[label]
            avg = total / count if count else 0.0
            lines.append(f"{label}: {round(total, 3)}s total, {count} calls, {round(avg, 3)}s avg")
        return lines

    def stats(self) -> Dict[str, Dict[str, float]]:
        return {
            label: {
                'count': self._counts[label],
                'total_time': total,
                'avg_time': total / self._counts[label] if self._counts[label] else 0.0,
            }
            for label, total in self._timings.items()
        }

    def reset(self) -> None:
        self._timings.clear()
        self._counts.clear()


class Benchmark:
    """Small benchmarking helpers for comparing implementations."""

    @staticmethod
    def run(label: str, func: Callable[[], Any], iterations: int = 1) -> Dict[str, Any]:
        """
        Time ``iterations`` calls of ``func`` after one warm-up call.

        Returns:
            Dictionary with label, iterations, total ``real`` time and ``avg``
        """
        func()

        start = time.perf_counter()
        for _ in range(iterations):
            func()
        real = time.perf_counter() - start

        return {
            'label': label,
            'iterations': iterations,
            'real': real,
            'avg': real / iterations if iterations else 0.0,
        }

    @classmethod
    def compare(cls, implementations: Dict[str, Callable[[], Any]], iterations: int = 100,
                verbose: bool = False) -> Dict[str, Dict[str, Any]]:
        """Benchmark each named callable and optionally print a ranking."""
        results = {name: cls.run(name, func, iterations) for name, func in implementations.items()}

        if verbose:
            print(f"Performance comparison ({iterations} iterations):")
            for name, result in sorted(results.items(), key=lambda item: item[1]['avg']):
                print(f"  {name}: {result['avg']:.6f}s avg (total: {result['real']:.3f}s)")

        return results
