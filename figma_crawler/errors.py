"""
Crawler Errors
==============
Exception hierarchy shared by the fetcher, the frontier crawler and the CLI.

Missing documents and invisible nodes are *not* errors; the crawler skips
them silently.  Everything here is fatal to the operation that raised it.
"""

from __future__ import annotations


class FigmaCrawlerError(Exception):
    """Base class for every error raised by this package."""


class RemoteError(FigmaCrawlerError):
    """
    Non-retryable or retry-exhausted API failure.

    Attributes:
        status: HTTP status code (0 when the transport itself failed)
        body:   Response body, truncated
        url:    Request URL
    """

    BODY_LIMIT = 2000

    def __init__(self, status: int, body: str = "", url: str = ""):
        self.status = status
        self.body = (body or "")[: self.BODY_LIMIT]
        self.url = url
        super().__init__(f"Figma API error {status}\nURL: {url}\nBody: {self.body}")


class CrawlTimeoutError(FigmaCrawlerError):
    """Raised between dispatch rounds once the crawl deadline has passed."""


class NodeUrlError(FigmaCrawlerError, ValueError):
    """Raised when a Figma node URL cannot be parsed."""


class RootNodeError(FigmaCrawlerError):
    """Raised when the report root is missing or hidden."""
