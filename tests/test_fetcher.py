"""
Tests for fetcher.py against a fake ``requests.Session``: request shape,
response unwrapping, retry/backoff and error classification.
"""

import asyncio

import pytest

from figma_crawler.errors import RemoteError
from figma_crawler.fetcher import NodeFetcher
from figma_crawler.utils import BackoffPolicy

from conftest import FakeResponse, FakeSession


def _ok(nodes):
    return FakeResponse(200, {"name": "File", "nodes": nodes})


def _fetcher(session, sleep, **backoff):
    return NodeFetcher("tok", session=session, sleep=sleep, backoff=BackoffPolicy(**backoff))


class TestRequestShape:

    def test_single_request_per_batch(self, sleep_recorder):
        session = FakeSession([_ok({})])
        fetcher = _fetcher(session, sleep_recorder)
        asyncio.run(fetcher.fetch_nodes("KEY", ["1:2", "1:3"]))

        assert len(session.urls) == 1
        url = session.urls[0]
        assert url.startswith("https://api.figma.com/v1/files/KEY/nodes?")
        assert "ids=1%3A2%2C1%3A3" in url
        assert "depth=1" in url

    def test_custom_api_base(self, sleep_recorder):
        session = FakeSession([_ok({})])
        fetcher = NodeFetcher("tok", api_base="http://localhost:9000/v1/", session=session,
                              sleep=sleep_recorder)
        asyncio.run(fetcher.fetch_nodes("K", ["1:2"]))
        assert session.urls[0].startswith("http://localhost:9000/v1/files/K/nodes?")

    def test_default_session_carries_token(self):
        fetcher = NodeFetcher("secret-token")
        try:
            assert fetcher.session.headers["X-Figma-Token"] == "secret-token"
        finally:
            fetcher.close()

    def test_empty_ids_rejected(self, sleep_recorder):
        fetcher = _fetcher(FakeSession([]), sleep_recorder)
        with pytest.raises(ValueError):
            asyncio.run(fetcher.fetch_nodes("KEY", []))


class TestResponseUnwrapping:

    def test_documents_returned_by_id(self, sleep_recorder):
        session = FakeSession([_ok({
            "1:2": {"document": {"id": "1:2", "type": "FRAME"}, "components": {}},
            "1:3": {"document": {"id": "1:3", "type": "TEXT"}},
        })])
        docs = asyncio.run(_fetcher(session, sleep_recorder).fetch_nodes("KEY", ["1:2", "1:3"]))
        assert docs == {
            "1:2": {"id": "1:2", "type": "FRAME"},
            "1:3": {"id": "1:3", "type": "TEXT"},
        }

    def test_missing_and_null_entries_omitted(self, sleep_recorder):
        session = FakeSession([_ok({
            "1:2": {"document": {"id": "1:2"}},
            "1:3": None,
            "1:4": {"document": None},
        })])
        docs = asyncio.run(
            _fetcher(session, sleep_recorder).fetch_nodes("KEY", ["1:2", "1:3", "1:4", "1:5"])
        )
        assert list(docs) == ["1:2"]
        assert sleep_recorder.waits == []

    def test_body_without_nodes(self, sleep_recorder):
        session = FakeSession([FakeResponse(200, {"err": None})])
        assert asyncio.run(_fetcher(session, sleep_recorder).fetch_nodes("K", ["1:2"])) == {}

    def test_invalid_json_is_remote_error(self, sleep_recorder):
        session = FakeSession([FakeResponse(200, None, text="<html>")])
        with pytest.raises(RemoteError, match="Invalid JSON"):
            asyncio.run(_fetcher(session, sleep_recorder).fetch_nodes("K", ["1:2"]))


class TestRetry:

    def test_rate_limit_backoff_grows(self, sleep_recorder):
        """Three 429s then success: three waits, each at least base * 2**i."""
        session = FakeSession([
            FakeResponse(429, text="rate limited"),
            FakeResponse(429, text="rate limited"),
            FakeResponse(429, text="rate limited"),
            _ok({"1:2": {"document": {"id": "1:2"}}}),
        ])
        docs = asyncio.run(_fetcher(session, sleep_recorder).fetch_nodes("K", ["1:2"]))

        assert list(docs) == ["1:2"]
        assert len(session.urls) == 4
        waits = sleep_recorder.waits
        assert len(waits) == 3
        for i, wait in enumerate(waits):
            assert 0.5 * 2 ** i <= wait <= 0.5 * 2 ** i + 0.25
        assert waits == sorted(waits)

    def test_not_found_fails_without_retry(self, sleep_recorder):
        session = FakeSession([FakeResponse(404, text="Not found")])
        with pytest.raises(RemoteError) as exc_info:
            asyncio.run(_fetcher(session, sleep_recorder).fetch_nodes("K", ["1:2"]))

        assert exc_info.value.status == 404
        assert exc_info.value.body == "Not found"
        assert "ids=1%3A2" in exc_info.value.url
        assert len(session.urls) == 1
        assert sleep_recorder.waits == []

    @pytest.mark.parametrize("status", [400, 401, 403])
    def test_client_errors_not_retried(self, status, sleep_recorder):
        session = FakeSession([FakeResponse(status)])
        with pytest.raises(RemoteError):
            asyncio.run(_fetcher(session, sleep_recorder).fetch_nodes("K", ["1:2"]))
        assert sleep_recorder.waits == []

    def test_server_error_exhausts_attempts(self, sleep_recorder):
        session = FakeSession([FakeResponse(503, text="unavailable")] * 3)
        with pytest.raises(RemoteError) as exc_info:
            asyncio.run(_fetcher(session, sleep_recorder, max_attempts=3).fetch_nodes("K", ["1:2"]))

        assert exc_info.value.status == 503
        assert len(session.urls) == 3
        assert len(sleep_recorder.waits) == 2

    def test_default_attempt_limit(self, sleep_recorder):
        session = FakeSession([FakeResponse(500)] * 6)
        with pytest.raises(RemoteError):
            asyncio.run(_fetcher(session, sleep_recorder).fetch_nodes("K", ["1:2"]))
        assert len(session.urls) == 6
        assert len(sleep_recorder.waits) == 5

    def test_transport_error_retried(self, sleep_recorder, transport_error):
        session = FakeSession([transport_error, _ok({"1:2": {"document": {"id": "1:2"}}})])
        docs = asyncio.run(_fetcher(session, sleep_recorder).fetch_nodes("K", ["1:2"]))
        assert list(docs) == ["1:2"]
        assert len(sleep_recorder.waits) == 1

    def test_transport_error_exhausted(self, sleep_recorder, transport_error):
        session = FakeSession([transport_error] * 2)
        with pytest.raises(RemoteError) as exc_info:
            asyncio.run(_fetcher(session, sleep_recorder, max_attempts=2).fetch_nodes("K", ["1:2"]))
        assert exc_info.value.status == 0
        assert "connection reset" in exc_info.value.body

    def test_hooks_called(self, sleep_recorder):
        session = FakeSession([FakeResponse(429), _ok({})])
        fetcher = _fetcher(session, sleep_recorder)
        requests_seen, retries_seen = [], []

        async def on_request():
            requests_seen.append(1)

        async def on_retry(status, wait):
            retries_seen.append((status, wait))

        asyncio.run(fetcher.fetch_nodes("K", ["1:2"], on_request=on_request, on_retry=on_retry))

        assert len(requests_seen) == 2
        assert [s for s, _ in retries_seen] == [429]
        assert retries_seen[0][1] == sleep_recorder.waits[0]

    def test_hooks_are_per_call(self, sleep_recorder):
        """Hooks passed to one call are not seen by the next."""
        session = FakeSession([_ok({}), _ok({})])
        fetcher = _fetcher(session, sleep_recorder)
        seen = []

        async def on_request():
            seen.append(1)

        asyncio.run(fetcher.fetch_nodes("K", ["1:2"], on_request=on_request))
        asyncio.run(fetcher.fetch_nodes("K", ["1:3"]))

        assert seen == [1]
        assert len(session.urls) == 2


class TestRemoteError:

    def test_body_truncated(self):
        err = RemoteError(500, "x" * 5000, "https://api")
        assert len(err.body) == RemoteError.BODY_LIMIT
        assert "Figma API error 500" in str(err)
