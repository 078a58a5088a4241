"""
Figma Node Crawler Package
Incremental, batched crawler for Figma node trees with a Markdown report.

CLI Usage:
    FIGMA_TOKEN=... python -m figma_crawler <figma-node-url> [options]

    Options:
        --out-dir            Output directory (default: figma-report)
        --section-dir        Section directory under out-dir (default: sections)
        --batch-size         Node ids per API request (default: 50)
        --concurrency        Concurrent API requests (default: 3)
        --max-attempts       Attempts per request on 429/5xx (default: 6)
        --max-crawl-seconds  Per-section crawl deadline
        --output-json        Export node maps to JSON
        --output-docx        Export the report to DOCX
        --verbose            Log progress
"""

from .errors import (
    FigmaCrawlerError, RemoteError, CrawlTimeoutError, NodeUrlError, RootNodeError,
)
from .fetcher import NodeFetcher
from .frontier import FrontierCrawler, CrawlConfig, CrawlResult, Frontier
from .worker_pool import map_bounded, TaskOutcome, raise_first_error
from .normalizer import NormalizedNode, normalize_node, infer_tw
from .monitor import CrawlMonitor, CrawlMetrics
from .inventory import Inventories
from .run_config import ReportRunConfig
from .pipeline import ReportPipeline, ReportOutput, export_json
from .utils import BackoffPolicy, parse_figma_node_url, sanitize_file_name

__all__ = [
    # Errors
    'FigmaCrawlerError',
    'RemoteError',
    'CrawlTimeoutError',
    'NodeUrlError',
    'RootNodeError',
    # Crawl core
    'NodeFetcher',
    'FrontierCrawler',
    'CrawlConfig',
    'CrawlResult',
    'Frontier',
    'map_bounded',
    'TaskOutcome',
    'raise_first_error',
    'NormalizedNode',
    'normalize_node',
    'infer_tw',
    'CrawlMonitor',
    'CrawlMetrics',
    'BackoffPolicy',
    # Report
    'Inventories',
    'ReportRunConfig',
    'ReportPipeline',
    'ReportOutput',
    'export_json',
    'parse_figma_node_url',
    'sanitize_file_name',
]

__version__ = '1.0.0'
