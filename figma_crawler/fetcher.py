"""
Remote Node Fetcher
===================
Fetches batches of Figma nodes via ``GET /v1/files/:key/nodes``.

- One request per batch: comma-joined ids, fixed depth
- ``requests.Session`` calls run in the event loop's default executor
- 429 / 5xx retried with exponential backoff + jitter (``BackoffPolicy``)
- Any other non-2xx status fails immediately with ``RemoteError``
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence
from urllib.parse import quote, urlencode

import requests

from .errors import RemoteError
from .utils import BackoffPolicy

logger = logging.getLogger(__name__)

FIGMA_API = "https://api.figma.com/v1"

# Per-call hooks: on_request() per HTTP attempt, on_retry(status, wait) per backoff
RequestHook = Callable[[], Awaitable[None]]
RetryHook = Callable[[int, float], Awaitable[None]]


class NodeFetcher:
    """
    Batched node fetcher with retry.

    Usage::

        fetcher = NodeFetcher(token)
        docs = await fetcher.fetch_nodes("FILEKEY", ["1:2", "1:3"])
        # {"1:2": {...document...}}  (unresolvable ids are simply absent)
    """

    def __init__(
        self,
        token: str,
        api_base: str = FIGMA_API,
        backoff: BackoffPolicy = None,
        timeout: float = 60.0,
        session: requests.Session = None,
        sleep: Callable[[float], Awaitable[Any]] = None,
    ):
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.backoff = backoff or BackoffPolicy()
        self.timeout = timeout
        self.session = session or self._create_session()
        self._sleep = sleep or asyncio.sleep

    def _create_session(self) -> requests.Session:
        """Session carrying the personal access token header."""
        session = requests.Session()
        session.headers.update({
            'X-Figma-Token': self.token,
            'Accept': 'application/json',
        })
        return session

    def close(self) -> None:
        self.session.close()

    def build_url(self, file_key: str) -> str:
        return f"{self.api_base}/files/{quote(file_key, safe='')}/nodes"

    async def fetch_nodes(
        self,
        file_key: str,
        ids: Sequence[str],
        depth: int = 1,
        *,
        on_request: Optional[RequestHook] = None,
        on_retry: Optional[RetryHook] = None,
    ) -> Dict[str, dict]:
        """
        Fetch documents for ``ids`` at ``depth``.

        ``on_request`` / ``on_retry`` are awaited for this call only, so
        concurrent callers sharing one fetcher keep separate counters.

        Returns:
            Mapping id → raw document.  Ids the API could not resolve
            (missing or null entry) are left out.

        Raises:
            RemoteError: non-retryable status, or retries exhausted
        """
        if not ids:
            raise ValueError("fetch_nodes requires at least one id")

        query = urlencode({'ids': ",".join(ids), 'depth': str(depth)})
        url = f"{self.build_url(file_key)}?{query}"
        data = await self._get_json(url, on_request, on_retry)

        nodes = data.get("nodes") if isinstance(data, dict) else None
        if not isinstance(nodes, dict):
            nodes = {}

        docs: Dict[str, dict] = {}
        for node_id in ids:
            entry = nodes.get(node_id)
            if not isinstance(entry, dict):
                continue
            doc = entry.get("document")
            if isinstance(doc, dict):
                docs[node_id] = doc
        return docs

    async def _get_json(
        self,
        url: str,
        on_request: Optional[RequestHook] = None,
        on_retry: Optional[RetryHook] = None,
    ) -> Any:
        """GET with retry; returns the decoded JSON body."""
        loop = asyncio.get_running_loop()
        attempt = 0

        while True:
            if on_request:
                await on_request()

            def _sync_get():
                return self.session.get(url, timeout=self.timeout)

            try:
                response = await loop.run_in_executor(None, _sync_get)
            except requests.RequestException as e:
                status, body = BackoffPolicy.TRANSPORT_ERROR_STATUS, str(e)
            else:
                status = response.status_code
                if 200 <= status < 300:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise RemoteError(status, f"Invalid JSON: {e}", url)
                body = response.text or ""

            if self.backoff.should_retry(status, attempt):
                wait = self.backoff.calculate_delay(attempt)
                logger.info(
                    f"[RETRY] status={status} attempt={attempt + 1}/"
                    f"{self.backoff.max_attempts}, waiting {wait:.2f}s: {url}"
                )
                if on_retry:
                    await on_retry(status, wait)
                attempt += 1
                await self._sleep(wait)
                continue

            if self.backoff.is_retryable(status):
                logger.error(
                    f"[FETCH] All {self.backoff.max_attempts} attempts failed "
                    f"(last status {status}): {url}"
                )
            else:
                logger.error(f"[FETCH] Non-retryable status {status}: {url}")
            raise RemoteError(status, body, url)
