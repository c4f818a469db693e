"""ID generation, hashing and text-escaping utilities."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse, urlunparse
import uuid


def generate_run_id() -> str:
    """Generate a unique scheduler run ID.

    Format: YYYYMMDD_HHMMSS_<short_uuid>
    """
    now = datetime.now(timezone.utc)
    short_uuid = uuid.uuid4().hex[:8]
    return f"{now.strftime('%Y%m%d_%H%M%S')}_{short_uuid}"


def new_document_id() -> str:
    """Identity for a new document-store entry."""
    return uuid.uuid4().hex


def content_hash(content: str | bytes) -> str:
    """Generate SHA-256 hash of content.

    Returns first 16 characters for brevity while maintaining uniqueness.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()[:16]


# Job-board tracking parameters dropped before comparing posting URLs
TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "gclid",
    "fbclid",
    "ref",
    "refid",
    "trk",
}


def normalize_url(url: str) -> str:
    """Normalize a job posting URL for deduplication.

    - Lowercases scheme and host
    - Removes tracking parameters
    - Removes trailing slashes (except root)
    - Sorts remaining query parameters
    """
    parsed = urlparse(url.strip())

    query_params = parse_qs(parsed.query, keep_blank_values=True)
    kept = {k: v for k, v in query_params.items() if k.lower() not in TRACKING_PARAMS}
    sorted_query = "&".join(f"{k}={v[0]}" for k, v in sorted(kept.items()) if v)

    path = parsed.path
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/")

    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), path, "", sorted_query, "")
    )


LIKE_ESCAPE = "\\"


def escape_like(text: str, escape: str = LIKE_ESCAPE) -> str:
    """Escape LIKE wildcards so user text is matched literally."""
    return (
        text.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


def contains_pattern(text: str) -> str:
    """LIKE pattern for a literal substring search.

    Case is left alone; ``ilike`` folds both sides the same way.
    """
    return f"%{escape_like(text)}%"
