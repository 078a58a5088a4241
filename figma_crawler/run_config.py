"""
Unified Run Configuration
=========================
Single source of truth for ALL report defaults and runtime limits.

The CLI populates it; the crawl engine, fetcher and backoff policy are
built *from* it via factory methods.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .fetcher import FIGMA_API, NodeFetcher
from .frontier import CrawlConfig
from .utils import BackoffPolicy

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "FIGMA_TOKEN"


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "out_dir": "figma-report",
    "section_dir": "sections",
    "index_file": "figma-node-report.md",
    "batch_size": 50,                # node ids per API request
    "concurrency": 3,                # simultaneous API requests
    "max_attempts": 6,               # per request, including the first
    "base_delay": 0.5,               # seconds; doubled per retry
    "jitter": 0.25,                  # seconds of random extra wait
    "request_timeout": 60.0,         # seconds per HTTP request
    "max_crawl_seconds": None,       # per section; None = unbounded
    "api_base": FIGMA_API,
    "output_json": None,
    "output_docx": None,
    "verbose": False,
}


@dataclass
class ReportRunConfig:
    """
    Unified configuration consumed by every subsystem.

    Populate via:
      - ``ReportRunConfig()``                 → all defaults
      - ``ReportRunConfig(batch_size=20)``    → override one value
      - ``ReportRunConfig.from_cli_args(ns)`` → from argparse Namespace
    """

    # ---- Output ----
    out_dir: str = _DEFAULTS["out_dir"]
    section_dir: str = _DEFAULTS["section_dir"]
    index_file: str = _DEFAULTS["index_file"]
    output_json: Optional[str] = _DEFAULTS["output_json"]
    output_docx: Optional[str] = _DEFAULTS["output_docx"]

    # ---- Crawl ----
    batch_size: int = _DEFAULTS["batch_size"]
    concurrency: int = _DEFAULTS["concurrency"]
    max_crawl_seconds: Optional[float] = _DEFAULTS["max_crawl_seconds"]

    # ---- Network ----
    api_base: str = _DEFAULTS["api_base"]
    max_attempts: int = _DEFAULTS["max_attempts"]
    base_delay: float = _DEFAULTS["base_delay"]
    jitter: float = _DEFAULTS["jitter"]
    request_timeout: float = _DEFAULTS["request_timeout"]

    # ---- Logging ----
    verbose: bool = _DEFAULTS["verbose"]

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_cli_args(cls, args) -> "ReportRunConfig":
        """Build config from an argparse Namespace (``__main__.py``)."""
        return cls(
            out_dir=getattr(args, "out_dir", _DEFAULTS["out_dir"]),
            section_dir=getattr(args, "section_dir", _DEFAULTS["section_dir"]),
            output_json=getattr(args, "output_json", None),
            output_docx=getattr(args, "output_docx", None),
            batch_size=getattr(args, "batch_size", _DEFAULTS["batch_size"]),
            concurrency=getattr(args, "concurrency", _DEFAULTS["concurrency"]),
            max_crawl_seconds=getattr(args, "max_crawl_seconds", None),
            max_attempts=getattr(args, "max_attempts", _DEFAULTS["max_attempts"]),
            request_timeout=getattr(args, "timeout", _DEFAULTS["request_timeout"]),
            api_base=getattr(args, "api_base", None) or _DEFAULTS["api_base"],
            verbose=getattr(args, "verbose", False),
        )

    @staticmethod
    def resolve_token(explicit: str = None) -> Optional[str]:
        """Explicit value first, then the ``FIGMA_TOKEN`` environment variable."""
        token = explicit or os.environ.get(TOKEN_ENV_VAR, "")
        token = token.strip()
        return token or None

    # -----------------------------------------------------------------------
    # Converters to component config objects
    # -----------------------------------------------------------------------
    def to_crawl_config(self) -> CrawlConfig:
        cfg = CrawlConfig(
            batch_size=self.batch_size,
            concurrency=self.concurrency,
            max_crawl_seconds=self.max_crawl_seconds,
        )
        cfg.validate()
        return cfg

    def to_backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            jitter=self.jitter,
        )

    def build_fetcher(self, token: str, session=None) -> NodeFetcher:
        return NodeFetcher(
            token,
            api_base=self.api_base,
            backoff=self.to_backoff_policy(),
            timeout=self.request_timeout,
            session=session,
        )

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self, url: str) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("FIGMA REPORT RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  URL:              {url}")
        logger.info(f"  Output Dir:       {self.out_dir}")
        logger.info(f"  Section Dir:      {self.section_dir}")
        logger.info(f"  Batch Size:       {self.batch_size} ids/request")
        logger.info(f"  Concurrency:      {self.concurrency} requests")
        logger.info(f"  Max Attempts:     {self.max_attempts} per request")
        logger.info(f"  Request Timeout:  {self.request_timeout}s")
        if self.max_crawl_seconds:
            logger.info(f"  Section Deadline: {self.max_crawl_seconds}s")
        if self.output_json:
            logger.info(f"  JSON Export:      {self.output_json}")
        if self.output_docx:
            logger.info(f"  DOCX Export:      {self.output_docx}")
        logger.info("=" * 60)
