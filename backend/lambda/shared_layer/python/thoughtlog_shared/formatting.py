"""formatting.py — Date keys, label merging and Markdown rendering for log entries.

All wall-clock values are rendered in JST (UTC+9) regardless of the
region the Lambda runs in.
"""
from __future__ import annotations

import datetime as dt
import re
from typing import Any, Dict, List, Optional, Tuple

from thoughtlog_shared.errors import ValidationError

__all__ = [
    "JST",
    "format_entry",
    "get_date_key_jst",
    "is_date_key",
    "parse_captured_at",
    "parse_labels",
    "parse_timestamp_header",
]

JST = dt.timezone(dt.timedelta(hours=9), name="JST")

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HEADER_RE = re.compile(r"(## \d{2}:\d{2}\n)(.*)\Z", re.DOTALL)


def parse_captured_at(payload: Dict[str, Any], now: Optional[dt.datetime] = None) -> dt.datetime:
    """Return the payload's ``captured_at`` as an aware datetime (now when absent).

    Naive timestamps are taken as UTC.
    """
    raw = payload.get("captured_at") if payload else None
    if not raw:
        return now or dt.datetime.now(dt.timezone.utc)
    if not isinstance(raw, str):
        raise ValidationError("captured_at must be an ISO-8601 string")
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"captured_at is not a valid ISO-8601 timestamp: {raw}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def get_date_key_jst(payload: Dict[str, Any], now: Optional[dt.datetime] = None) -> str:
    """YYYY-MM-DD in JST for the payload's capture time."""
    return parse_captured_at(payload, now).astimezone(JST).strftime("%Y-%m-%d")


def is_date_key(value: str) -> bool:
    if not value or not _DATE_KEY_RE.match(value):
        return False
    try:
        dt.date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_labels(default_labels_csv: str, payload_labels: Any) -> List[str]:
    """Merge CSV defaults with payload labels: trimmed, blanks dropped, order-preserving dedupe."""
    labels: List[str] = []
    seen: set[str] = set()

    candidates = [part for part in (default_labels_csv or "").split(",")]
    if isinstance(payload_labels, (list, tuple)):
        candidates.extend(str(item) for item in payload_labels)

    for raw in candidates:
        label = raw.strip()
        if not label or label in seen:
            continue
        seen.add(label)
        labels.append(label)
    return labels


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def format_entry(payload: Dict[str, Any], now: Optional[dt.datetime] = None) -> str:
    """Render an entry as ``## HH:MM`` (JST) + optional ``**[kind]**`` prefix + raw text."""
    captured = parse_captured_at(payload, now).astimezone(JST)
    raw = _text(payload.get("raw"))
    kind = _text(payload.get("kind"))
    prefix = f"**[{kind}]** " if kind else ""
    return f"## {captured:%H:%M}\n{prefix}{raw}\n"


def parse_timestamp_header(body: Optional[str]) -> Tuple[str, str]:
    """Split a comment body into (``## HH:MM\\n`` header, content without trailing whitespace).

    The header is returned verbatim, or "" when the body does not start with one.
    """
    body = body or ""
    match = _HEADER_RE.match(body)
    if match:
        return match.group(1), match.group(2).rstrip()
    return "", body.rstrip()
