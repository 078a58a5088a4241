"""
Report Pipeline
===============
End-to-end flow from a Figma node to a Markdown report on disk.

Pipeline stages:
1. **Root**: fetch the target node at depth 1; fail if missing or hidden
2. **Split**: each visible top-level child becomes one section
   (a childless root becomes its own single section)
3. **Crawl**: one independent ``FrontierCrawler`` run per section
4. **Render**: section file per crawl, inventories accumulated across sections
5. **Index**: ``figma-node-report.md`` linking every section
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .errors import RootNodeError
from .frontier import FETCH_DEPTH, CrawlResult, FrontierCrawler, NodeSource
from .inventory import Inventories
from .monitor import CrawlMetrics, CrawlMonitor
from .normalizer import NormalizedNode, is_visible, normalize_node
from .report import SectionLink, index_markdown, section_markdown
from .run_config import ReportRunConfig
from .utils import sanitize_file_name

logger = logging.getLogger(__name__)


@dataclass
class ReportOutput:
    """Everything produced by one pipeline run."""
    file_key: str
    root: NormalizedNode
    index_path: Path
    sections: List[SectionLink] = field(default_factory=list)
    crawls: List[CrawlResult] = field(default_factory=list)
    inventories: Inventories = field(default_factory=Inventories)

    @property
    def metrics(self) -> CrawlMetrics:
        return CrawlMonitor.merge([c.metrics for c in self.crawls])

    @property
    def node_count(self) -> int:
        return sum(len(c.nodes) for c in self.crawls)


class ReportPipeline:
    """
    Usage::

        cfg = ReportRunConfig(out_dir="out")
        pipeline = ReportPipeline(cfg.build_fetcher(token), cfg)
        output = asyncio.run(pipeline.run("FILEKEY", "1:2"))
    """

    def __init__(self, fetcher: NodeSource, config: ReportRunConfig = None):
        self.fetcher = fetcher
        self.config = config or ReportRunConfig()

    async def _fetch_one(self, file_key: str, node_id: str) -> Optional[dict]:
        docs = await self.fetcher.fetch_nodes(file_key, [node_id], depth=FETCH_DEPTH)
        return docs.get(node_id)

    async def run(self, file_key: str, node_id: str) -> ReportOutput:
        out_dir = Path(self.config.out_dir).resolve()
        section_dir = out_dir / self.config.section_dir
        section_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"[REPORT] Output dir: {out_dir}")
        logger.info(f"[REPORT] File key: {file_key}  Root node: {node_id}")

        # Stage 1: root
        root_doc = await self._fetch_one(file_key, node_id)
        if root_doc is None:
            raise RootNodeError(f"Root node not found: {node_id}")
        if not is_visible(root_doc):
            raise RootNodeError("Root node is not visible; nothing to analyze.")
        root = normalize_node(root_doc)

        # Stage 2: split
        top_level = list(root.child_ids) or [node_id]
        shallow: Dict[str, dict] = {
            c["id"]: c for c in root_doc.get("children") or []
            if isinstance(c, dict) and c.get("id")
        }

        output = ReportOutput(
            file_key=file_key,
            root=root,
            index_path=out_dir / self.config.index_file,
        )
        crawl_config = self.config.to_crawl_config()

        for i, section_id in enumerate(top_level, start=1):
            section_doc = shallow.get(section_id)
            if section_doc is None or not is_visible(section_doc):
                section_doc = await self._fetch_one(file_key, section_id)
                if section_doc is None or not is_visible(section_doc):
                    logger.warning(f"[SECTION] {section_id} missing or hidden, skipped")
                    continue

            section_name = section_doc.get("name") or f"section-{i}"
            file_name = (
                f"{i:02d}-{sanitize_file_name(section_name)}-"
                f"{sanitize_file_name(section_id.replace(':', '-'))}.md"
            )

            logger.info(f"[SECTION] Crawling {i}/{len(top_level)}: {section_name} ({section_id})")

            # Stage 3: crawl (fresh crawler per section, no shared state)
            crawler = FrontierCrawler(self.fetcher, crawl_config)
            result = await crawler.crawl(section_id, file_key)
            output.crawls.append(result)

            # Stage 4: render
            output.inventories.collect_all(result.nodes.values())
            section_path = section_dir / file_name
            section_path.write_text(
                section_markdown(result.nodes, section_id, file_key, section_name),
                encoding="utf-8",
            )
            output.sections.append(SectionLink(
                idx=i,
                name=section_name,
                id=section_id,
                file=f"{Path(self.config.section_dir).as_posix()}/{file_name}",
                node_count=len(result.nodes),
            ))
            logger.info(f"[SECTION] Wrote {section_path} ({len(result.nodes)} nodes)")

        # Stage 5: index
        output.index_path.write_text(
            index_markdown(root, file_key, output.sections, output.inventories),
            encoding="utf-8",
        )
        logger.info(f"[REPORT] Wrote index {output.index_path}")
        return output


def export_json(output: ReportOutput, filepath: str) -> str:
    """
    Export every section's node map to one JSON file.

    Returns:
        Absolute path to the created file
    """
    output_path = Path(filepath)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        'metadata': {
            'file_key': output.file_key,
            'root_id': output.root.id,
            'root_name': output.root.name,
            'total_nodes': output.node_count,
            'crawl_stats': output.metrics.to_dict(),
        },
        'root': output.root.to_dict(),
        'sections': [
            {
                'idx': link.idx,
                'name': link.name,
                'file': link.file,
                **crawl.to_dict(),
            }
            for link, crawl in zip(output.sections, output.crawls)
        ],
        'inventories': output.inventories.to_dict(),
    }

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)

    logger.info(f"Exported JSON to {output_path.absolute()}")
    return str(output_path.absolute())
