"""
Utility Functions
URL parsing, filename sanitizing, backoff calculation and formatting helpers.
"""

import json
import logging
import math
import random
import re
from typing import Any, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from .errors import NodeUrlError

logger = logging.getLogger(__name__)


_FILE_KEY_RE = re.compile(r"/(?:file|design)/([^/]+)")
_DASHED_NODE_ID_RE = re.compile(r"^\d+-\d+$")


def parse_figma_node_url(url: str) -> Tuple[str, str]:
    """
    Extract ``(file_key, node_id)`` from a Figma node URL.

    Accepts ``/file/<KEY>/`` and ``/design/<KEY>/`` paths and a ``node-id``
    (or ``node_id``) query parameter.  Dash-separated ids such as
    ``123-456`` are converted to the API form ``123:456``.

    Raises:
        NodeUrlError: if the URL, the file key or the node id is missing
    """
    if not url:
        raise NodeUrlError(f"Invalid URL: {url!r}")

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        raise NodeUrlError(f"Invalid URL: {url}")

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise NodeUrlError(f"Invalid URL: {url}")

    m = _FILE_KEY_RE.search(parsed.path)
    if not m:
        raise NodeUrlError(f"Could not find file key in URL path: {parsed.path}")
    file_key = m.group(1)

    params = parse_qs(parsed.query)
    values = params.get("node-id") or params.get("node_id")
    if not values or not values[0]:
        raise NodeUrlError("URL missing required query param: node-id")

    node_id = unquote(values[0])
    if ":" not in node_id and _DASHED_NODE_ID_RE.match(node_id):
        node_id = node_id.replace("-", ":", 1)

    return file_key, node_id


def sanitize_file_name(name: Any, max_length: int = 80) -> str:
    """Turn a node name into a lowercase, filesystem-safe slug."""
    s = str(name or "unnamed").strip().lower()
    s = re.sub(r"\s+", "-", s)
    s = re.sub(r"[^a-z0-9._-]+", "", s)
    s = re.sub(r"-+", "-", s)
    s = re.sub(r"^[-.]+|[-.]+$", "", s)
    return s[:max_length] if s else "unnamed"


class BackoffPolicy:
    """
    Exponential backoff with bounded additive jitter.

    ``delay(attempt) = base_delay * 2**attempt + uniform(0, jitter)``
    """

    # HTTP status codes that should trigger a retry (5xx handled separately)
    RETRYABLE_STATUS_CODES = {429}
    # Stand-in status for connection resets and timeouts
    TRANSPORT_ERROR_STATUS = 0

    def __init__(
        self,
        max_attempts: int = 6,
        base_delay: float = 0.5,
        jitter: float = 0.25,
        exponential_base: float = 2.0,
    ):
        """
        Args:
            max_attempts: Total attempts per request, including the first
            base_delay: Delay before the first retry, in seconds
            jitter: Upper bound of the random component, in seconds
            exponential_base: Growth factor per attempt
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.jitter = jitter
        self.exponential_base = exponential_base

    def calculate_delay(self, attempt: int) -> float:
        """Delay in seconds before retrying after failed ``attempt`` (0-indexed)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay

    def is_retryable(self, status_code: int) -> bool:
        """429, the whole 5xx class and transport failures are transient."""
        if status_code == self.TRANSPORT_ERROR_STATUS:
            return True
        return status_code in self.RETRYABLE_STATUS_CODES or 500 <= status_code <= 599

    def should_retry(self, status_code: int, attempt: int) -> bool:
        """True if another attempt is allowed after failed ``attempt``."""
        if attempt >= self.max_attempts - 1:
            return False
        return self.is_retryable(status_code)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def stable_json(value: Any) -> str:
    """JSON with sorted keys and 2-space indent, for deterministic output."""
    return json.dumps(value, sort_keys=True, indent=2, ensure_ascii=False, default=str)


def is_number(value: Any) -> bool:
    """Finite int/float (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def format_px(value: float) -> Optional[str]:
    """``12.34567`` → ``'12.346px'``; integers lose the trailing ``.0``."""
    if not is_number(value):
        return None
    rounded = round(value * 1000) / 1000
    if rounded == int(rounded):
        rounded = int(rounded)
    return f"{rounded}px"


def hex_from_color(color: Any) -> Optional[str]:
    """
    Convert a Figma ``{r, g, b, a}`` colour (0–1 floats) to ``#rrggbb``.

    Translucent colours get an ``' @ 0.500'`` alpha suffix.
    """
    if not isinstance(color, dict):
        return None

    def channel(key: str) -> int:
        v = color.get(key, 0)
        if not is_number(v):
            v = 0
        return max(0, min(255, int(round(v * 255))))

    hex_str = "#" + "".join(f"{channel(k):02x}" for k in ("r", "g", "b"))
    alpha = color.get("a")
    if is_number(alpha) and 0 <= alpha < 1:
        return f"{hex_str} @ {alpha:.3f}"
    return hex_str


def fence_for_text(text: Any) -> str:
    """Pick a Markdown code fence long enough not to collide with ``text``."""
    s = str(text)
    if "```" not in s:
        return "```"
    if "````" not in s:
        return "````"
    return "`````"
