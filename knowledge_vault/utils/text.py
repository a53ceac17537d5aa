"""Text helpers for captured selections.

Captured text arrives exactly as the user selected it: line breaks from
the page layout, runs of spaces, mixed case.  These helpers produce the
normalized form used as a duplicate-filter key, short previews for queue
summaries, and the display domain of a source URL.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_capture_text(text: str) -> str:
    """Collapse whitespace, strip, and case-fold *text*.

    ``"The  quick\\nBrown"`` and ``"the quick brown"`` normalize to the same
    string, so a re-selection of the same passage compares equal.
    """
    return _WHITESPACE_RE.sub(" ", text).strip().casefold()


def capture_prefix(text: str, length: int) -> str:
    """Return the first *length* characters of the normalized *text*."""
    return normalize_capture_text(text)[:length]


def preview(text: str, limit: int = 100) -> str:
    """Return at most *limit* characters of *text* for summaries."""
    return text[:limit]


def extract_domain(url: str) -> str:
    """Return the host of *url* without a leading ``www.``.

    Falls back to the raw string when it has no parseable host, which is
    what capture surfaces send for ``file:`` pages and PDFs.
    """
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return url
    if not host:
        return url
    return host[4:] if host.startswith("www.") else host
