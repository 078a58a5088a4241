"""
Crawl Monitor
=============
Counters for a node crawl: requests, retries, rounds, nodes stored and
skipped, queue peak.

Async-safe: every mutation goes through an asyncio.Lock, since fetch
workers report requests and retries concurrently.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class CrawlMetrics:
    """Snapshot of all crawl metrics at a point in time."""
    # Network
    requests: int = 0
    retries: int = 0
    batches: int = 0
    rounds: int = 0

    # Nodes
    nodes_stored: int = 0
    skipped_invisible: int = 0
    skipped_missing: int = 0
    total_enqueued: int = 0
    queue_peak: int = 0

    # Timing
    total_backoff_sec: float = 0.0
    elapsed_sec: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class CrawlMonitor:
    """
    Usage::

        monitor = CrawlMonitor()
        monitor.start()
        await monitor.record_request()
        ...
        monitor.stop()
        print(monitor.format_summary(await monitor.snapshot()))
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._start_time: float = 0.0
        self._end_time: float = 0.0
        self._m = CrawlMetrics()

    def start(self) -> None:
        self._start_time = time.monotonic()
        self._end_time = 0.0

    def stop(self) -> None:
        self._end_time = time.monotonic()

    async def record_request(self) -> None:
        async with self._lock:
            self._m.requests += 1

    async def record_retry(self, status: int, wait: float) -> None:
        async with self._lock:
            self._m.retries += 1
            self._m.total_backoff_sec += wait

    async def record_round(self, batch_count: int) -> None:
        async with self._lock:
            self._m.rounds += 1
            self._m.batches += batch_count

    async def record_stored(self, count: int = 1) -> None:
        async with self._lock:
            self._m.nodes_stored += count

    async def record_skipped(self, invisible: int = 0, missing: int = 0) -> None:
        async with self._lock:
            self._m.skipped_invisible += invisible
            self._m.skipped_missing += missing

    async def record_enqueue(self, count: int = 1, queue_size: int = 0) -> None:
        async with self._lock:
            self._m.total_enqueued += count
            if queue_size > self._m.queue_peak:
                self._m.queue_peak = queue_size

    async def snapshot(self) -> CrawlMetrics:
        """Take a consistent copy of the counters."""
        async with self._lock:
            end = self._end_time or time.monotonic()
            elapsed = end - self._start_time if self._start_time else 0.0
            snap = CrawlMetrics(**asdict(self._m))
            snap.total_backoff_sec = round(snap.total_backoff_sec, 2)
            snap.elapsed_sec = round(elapsed, 2)
            return snap

    @staticmethod
    def merge(metrics: List[CrawlMetrics]) -> CrawlMetrics:
        """Sum several crawls' metrics; queue_peak takes the max."""
        total = CrawlMetrics()
        for m in metrics:
            for name, value in asdict(m).items():
                if name == "queue_peak":
                    total.queue_peak = max(total.queue_peak, value)
                else:
                    setattr(total, name, getattr(total, name) + value)
        total.total_backoff_sec = round(total.total_backoff_sec, 2)
        total.elapsed_sec = round(total.elapsed_sec, 2)
        return total

    @staticmethod
    def format_summary(metrics: CrawlMetrics) -> str:
        """Human-readable summary block."""
        lines = [
            "=" * 65,
            "  CRAWL SUMMARY",
            "=" * 65,
            f"  Nodes stored:        {metrics.nodes_stored}",
            f"  Skipped (hidden):    {metrics.skipped_invisible}",
            f"  Skipped (missing):   {metrics.skipped_missing}",
            f"  Total enqueued:      {metrics.total_enqueued}",
            f"  Queue peak:          {metrics.queue_peak}",
            "-" * 65,
            f"  Dispatch rounds:     {metrics.rounds}",
            f"  Batches:             {metrics.batches}",
            f"  HTTP requests:       {metrics.requests}",
            f"  Retries:             {metrics.retries} ({metrics.total_backoff_sec:.1f}s backoff)",
            "-" * 65,
            f"  Elapsed time:        {metrics.elapsed_sec:.1f} s",
            "=" * 65,
        ]
        return "\n".join(lines)
