"""
Shared fakes for the crawler tests.

``FakeSource`` stands in for ``NodeFetcher`` at the crawler boundary;
``FakeSession`` stands in for ``requests.Session`` at the HTTP boundary.
"""

import asyncio
from typing import Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import pytest
import requests


def doc(node_id, *children, visible=None, type="FRAME", name=None, **attrs):
    """
    Build a raw node document.

    ``children`` are ids (stub without a visibility flag) or ready-made
    stub dicts such as ``{"id": "9:9", "visible": False}``.
    """
    d = {"id": node_id, "name": name or f"node {node_id}", "type": type}
    if visible is not None:
        d["visible"] = visible
    if children:
        d["children"] = [
            c if isinstance(c, dict) else {"id": c, "type": "FRAME"}
            for c in children
        ]
    d.update(attrs)
    return d


class FakeSource:
    """Records every batch and tracks how many fetches overlap."""

    def __init__(self, docs: Dict[str, dict], delay: float = 0.0,
                 failures: Optional[Dict[str, Exception]] = None):
        self.docs = docs
        self.delay = delay
        self.failures = failures or {}
        self.calls: List[List[str]] = []
        self.depths: List[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @property
    def fetched_ids(self) -> List[str]:
        return [i for batch in self.calls for i in batch]

    async def fetch_nodes(self, file_key, ids, depth=1, *, on_request=None, on_retry=None):
        if on_request:
            await on_request()
        self.calls.append(list(ids))
        self.depths.append(depth)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            for node_id in ids:
                if node_id in self.failures:
                    raise self.failures[node_id]
            return {i: self.docs[i] for i in ids if i in self.docs}
        finally:
            self.in_flight -= 1

    def close(self):
        self.closed = True


class FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Returns queued responses in order; exceptions in the queue are raised."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.urls: List[str] = []
        self.headers = {}

    def get(self, url, timeout=None):
        self.urls.append(url)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        pass


class RoutingSession:
    """Answers each request from ``docs`` using the ids in its query string."""

    def __init__(self, docs: Dict[str, dict]):
        self.docs = docs
        self.urls: List[str] = []
        self.headers = {}

    def get(self, url, timeout=None):
        self.urls.append(url)
        ids = parse_qs(urlparse(url).query)["ids"][0].split(",")
        return FakeResponse(200, {"nodes": {
            i: {"document": self.docs[i]} for i in ids if i in self.docs
        }})

    def close(self):
        pass


class SleepRecorder:
    def __init__(self):
        self.waits: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def transport_error():
    return requests.ConnectionError("connection reset by peer")
