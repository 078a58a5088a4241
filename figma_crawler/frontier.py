"""
Frontier Crawler
================
Incremental, batched BFS over a remote Figma node tree.

Architecture:
- ``Frontier`` holds the seen set, the pending deque and the result map
- Each dispatch round pops up to ``concurrency`` batches of ``batch_size`` ids
- Batches are fetched through ``map_bounded`` (at most ``concurrency`` in flight)
- After the round settles, the coordinating coroutine applies the fetched
  documents; workers never touch frontier state (single writer)
- Hidden nodes are dropped and their children are never enqueued, so
  hidden subtrees are pruned before any descendant is requested
- Depth is always 1; deeper levels are discovered through ``children``

Failure: the first ``RemoteError`` of a round aborts the crawl after the
round's successful batches have been applied.  ``FrontierCrawler.node_map``
still shows the partial map, but the crawl has failed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Protocol, Sequence, Set, Tuple

from .errors import CrawlTimeoutError
from .monitor import CrawlMetrics, CrawlMonitor
from .normalizer import NormalizedNode, is_visible, normalize_node
from .worker_pool import map_bounded, raise_first_error

logger = logging.getLogger(__name__)

# Every request asks for exactly one level
FETCH_DEPTH = 1


class NodeSource(Protocol):
    """Anything that can fetch a batch of raw node documents."""

    def fetch_nodes(
        self, file_key: str, ids: Sequence[str], depth: int = FETCH_DEPTH, *,
        on_request: Optional[Callable[[], Awaitable[None]]] = None,
        on_retry: Optional[Callable[[int, float], Awaitable[None]]] = None,
    ) -> Awaitable[Dict[str, dict]]:
        ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class CrawlConfig:
    """Configuration for the frontier crawler."""
    batch_size: int = 50                      # node ids per API request
    concurrency: int = 3                      # simultaneous API requests
    max_crawl_seconds: Optional[float] = None # checked between rounds; None = no deadline

    def validate(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_crawl_seconds is not None and self.max_crawl_seconds <= 0:
            raise ValueError(f"max_crawl_seconds must be > 0, got {self.max_crawl_seconds}")


@dataclass
class CrawlResult:
    """Result of one successful subtree crawl."""
    root_id: str
    file_key: str
    nodes: Dict[str, NormalizedNode] = field(default_factory=dict)
    metrics: CrawlMetrics = field(default_factory=CrawlMetrics)

    @property
    def root(self) -> Optional[NormalizedNode]:
        return self.nodes.get(self.root_id)

    def to_dict(self) -> dict:
        return {
            'rootId': self.root_id,
            'fileKey': self.file_key,
            'nodeCount': len(self.nodes),
            'nodes': {nid: n.to_dict() for nid, n in self.nodes.items()},
            'metrics': self.metrics.to_dict(),
        }


# ---------------------------------------------------------------------------
# Frontier state (owned by one coordinating coroutine)
# ---------------------------------------------------------------------------

class Frontier:
    """
    Seen set + pending queue + result map for a single crawl.

    ``seen`` is a superset of ``nodes``: it also contains in-flight ids
    and ids whose documents turned out missing or hidden.
    """

    def __init__(self, root_id: str):
        self.seen: Set[str] = set()
        self.pending: Deque[str] = deque()
        self.nodes: Dict[str, NormalizedNode] = {}
        self.enqueue(root_id)

    def __bool__(self) -> bool:
        return bool(self.pending)

    def enqueue(self, node_id: Optional[str]) -> bool:
        """Mark ``node_id`` seen and queue it; False if already seen."""
        if not node_id or node_id in self.seen:
            return False
        self.seen.add(node_id)
        self.pending.append(node_id)
        return True

    def next_round(self, batch_size: int, max_batches: int) -> List[List[str]]:
        """Pop up to ``max_batches`` batches of at most ``batch_size`` ids."""
        batches: List[List[str]] = []
        while self.pending and len(batches) < max_batches:
            batch = []
            while self.pending and len(batch) < batch_size:
                batch.append(self.pending.popleft())
            batches.append(batch)
        return batches

    def apply_batch(
        self, ids: Sequence[str], docs: Mapping[str, Any],
    ) -> Tuple[int, int, int, int]:
        """
        Incorporate one fetched batch.

        Returns:
            (stored, skipped_invisible, skipped_missing, newly_enqueued)
        """
        stored = invisible = missing = enqueued = 0
        for node_id in ids:
            doc = docs.get(node_id) if docs else None
            if not isinstance(doc, dict):
                missing += 1
                continue
            if not is_visible(doc):
                invisible += 1
                continue

            node = normalize_node(doc)
            if not node.is_known_type:
                logger.debug(f"[FRONTIER] Unrecognized node type {node.type!r} for {node_id}")
            self.nodes[node_id] = node
            stored += 1

            for child_id in node.child_ids:
                if self.enqueue(child_id):
                    enqueued += 1
        return stored, invisible, missing, enqueued


# ---------------------------------------------------------------------------
# Crawler
# ---------------------------------------------------------------------------

class FrontierCrawler:
    """
    Crawl a node subtree with bounded concurrency.

    Usage::

        fetcher = NodeFetcher(token)
        crawler = FrontierCrawler(fetcher, CrawlConfig(batch_size=50, concurrency=3))
        result = await crawler.crawl("12:34", "FILEKEY")
        result.nodes["12:34"].child_ids
    """

    def __init__(self, fetcher: NodeSource, config: CrawlConfig = None):
        self.fetcher = fetcher
        self.config = config or CrawlConfig()
        self.config.validate()
        self._frontier: Optional[Frontier] = None

    @property
    def node_map(self) -> Dict[str, NormalizedNode]:
        """Nodes stored so far by the current (or last) crawl."""
        return self._frontier.nodes if self._frontier else {}

    def run(self, root_id: str, file_key: str, **kwargs) -> CrawlResult:
        """Sync wrapper: run the async crawl from synchronous code."""
        return asyncio.run(self.crawl(root_id, file_key, **kwargs))

    async def crawl(
        self,
        root_id: str,
        file_key: str,
        batch_size: int = None,
        concurrency: int = None,
    ) -> CrawlResult:
        """
        Crawl every visible node reachable from ``root_id``.

        Raises:
            RemoteError: a batch failed fatally (crawl aborted)
            CrawlTimeoutError: ``max_crawl_seconds`` elapsed between rounds
            ValueError: non-positive batch_size / concurrency
        """
        batch_size = batch_size if batch_size is not None else self.config.batch_size
        concurrency = concurrency if concurrency is not None else self.config.concurrency
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")

        frontier = Frontier(root_id)
        self._frontier = frontier
        monitor = CrawlMonitor()
        monitor.start()
        await monitor.record_enqueue(1, queue_size=len(frontier.pending))

        deadline = None
        if self.config.max_crawl_seconds:
            deadline = time.monotonic() + self.config.max_crawl_seconds

        logger.info(
            f"[FRONTIER] Crawl started root={root_id} file={file_key} "
            f"batch_size={batch_size} concurrency={concurrency}"
        )

        async def fetch(ids: List[str]) -> Dict[str, dict]:
            return await self.fetcher.fetch_nodes(
                file_key, ids, depth=FETCH_DEPTH,
                on_request=monitor.record_request,
                on_retry=monitor.record_retry,
            )

        try:
            while frontier:
                if deadline is not None and time.monotonic() > deadline:
                    raise CrawlTimeoutError(
                        f"Crawl of {root_id} exceeded {self.config.max_crawl_seconds}s "
                        f"({len(frontier.nodes)} nodes, {len(frontier.pending)} pending)"
                    )

                batches = frontier.next_round(batch_size, concurrency)
                await monitor.record_round(len(batches))
                logger.info(
                    f"[FRONTIER] Dispatching {len(batches)} batch(es), "
                    f"{sum(len(b) for b in batches)} ids, "
                    f"stored={len(frontier.nodes)} pending={len(frontier.pending)}"
                )

                outcomes = await map_bounded(batches, concurrency, fetch)

                for outcome in outcomes:
                    if not outcome.ok:
                        continue
                    stored, invisible, missing, enqueued = frontier.apply_batch(
                        outcome.item, outcome.value,
                    )
                    await monitor.record_stored(stored)
                    await monitor.record_skipped(invisible=invisible, missing=missing)
                    if enqueued:
                        await monitor.record_enqueue(enqueued, queue_size=len(frontier.pending))

                raise_first_error(outcomes)
        except Exception as e:
            logger.error(
                f"[FRONTIER] Crawl of {root_id} aborted after "
                f"{len(frontier.nodes)} nodes: {e}"
            )
            raise
        finally:
            monitor.stop()

        metrics = await monitor.snapshot()
        logger.info(
            f"[FRONTIER] Crawl complete root={root_id} nodes={len(frontier.nodes)} "
            f"requests={metrics.requests} retries={metrics.retries} "
            f"elapsed={metrics.elapsed_sec}s"
        )
        return CrawlResult(
            root_id=root_id,
            file_key=file_key,
            nodes=dict(frontier.nodes),
            metrics=metrics,
        )

