#!/usr/bin/env python3
"""
Figma Node Report CLI
=====================
Crawls the visible subtree of a Figma node and writes a Markdown report:
one index file plus one section file per top-level child.

The personal access token is read from ``FIGMA_TOKEN`` (a ``.env`` file in
the project root or the working directory is loaded first).

Run with: python -m figma_crawler <figma-node-url> [options]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .errors import FigmaCrawlerError, NodeUrlError
from .monitor import CrawlMonitor
from .pipeline import ReportPipeline, export_json
from .run_config import TOKEN_ENV_VAR, ReportRunConfig, _DEFAULTS
from .utils import parse_figma_node_url

logger = logging.getLogger(__name__)


def _load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()  # tries CWD


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return n


def _positive_float(value: str) -> float:
    try:
        n = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value!r}")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value!r}")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='python -m figma_crawler',
        description='Figma node analyzer -> Markdown report (visible nodes only, no vector geometry)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  {TOKEN_ENV_VAR}=... python -m figma_crawler "https://www.figma.com/file/ABC123/Design?node-id=123%3A456"
  {TOKEN_ENV_VAR}=... python -m figma_crawler "..." --out-dir out --concurrency 2 --batch-size 40
        """
    )

    parser.add_argument('url', help='Figma node URL containing /file/<KEY>/ or /design/<KEY>/ and ?node-id=...')
    parser.add_argument('--out-dir', default=_DEFAULTS["out_dir"],
                        help=f'Output directory (default: {_DEFAULTS["out_dir"]})')
    parser.add_argument('--section-dir', default=_DEFAULTS["section_dir"],
                        help=f'Section directory under out-dir (default: {_DEFAULTS["section_dir"]})')
    parser.add_argument('--batch-size', type=_positive_int, default=_DEFAULTS["batch_size"],
                        help=f'Node ids per API request (default: {_DEFAULTS["batch_size"]})')
    parser.add_argument('--concurrency', type=_positive_int, default=_DEFAULTS["concurrency"],
                        help=f'Concurrent API requests (default: {_DEFAULTS["concurrency"]})')
    parser.add_argument('--max-attempts', type=_positive_int, default=_DEFAULTS["max_attempts"],
                        help=f'Attempts per request on 429/5xx (default: {_DEFAULTS["max_attempts"]})')
    parser.add_argument('--timeout', type=_positive_float, default=_DEFAULTS["request_timeout"],
                        help=f'HTTP timeout per request in seconds (default: {_DEFAULTS["request_timeout"]})')
    parser.add_argument('--max-crawl-seconds', type=_positive_float, default=None,
                        help='Abort a section crawl after this many seconds (checked between rounds)')
    parser.add_argument('--api-base', type=str, default=None, help=argparse.SUPPRESS)
    parser.add_argument('--output-json', type=str, help='Also export all node maps to this JSON file')
    parser.add_argument('--output-docx', type=str, help='Also export the report to this DOCX file')
    parser.add_argument('--verbose', action='store_true', help='Log progress')
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )

    _load_env()
    token = ReportRunConfig.resolve_token()
    if not token:
        print(f"Missing {TOKEN_ENV_VAR} env var", file=sys.stderr)
        return 1

    try:
        file_key, node_id = parse_figma_node_url(args.url)
    except NodeUrlError as e:
        print(str(e), file=sys.stderr)
        return 1

    cfg = ReportRunConfig.from_cli_args(args)
    cfg.log_summary(args.url)

    fetcher = cfg.build_fetcher(token)
    try:
        output = asyncio.run(ReportPipeline(fetcher, cfg).run(file_key, node_id))
    except FigmaCrawlerError as e:
        logger.error(f"Report failed: {e}")
        print(str(e), file=sys.stderr)
        return 1
    finally:
        fetcher.close()

    try:
        if cfg.output_json:
            export_json(output, cfg.output_json)
        if cfg.output_docx:
            from .word_exporter import export_docx
            export_docx(output, cfg.output_docx)
    except OSError as e:
        logger.error(f"Export failed: {e}")
        print(f"Export failed: {e}", file=sys.stderr)
        return 1

    print(f"Wrote report: {Path(cfg.out_dir) / cfg.index_file}")
    print(f"Wrote sections: {Path(cfg.out_dir) / cfg.section_dir}")
    for path in (cfg.output_json, cfg.output_docx):
        if path:
            print(f"  Exported: {path}")
    if args.verbose:
        print(CrawlMonitor.format_summary(output.metrics))
    return 0


if __name__ == '__main__':
    sys.exit(main())
