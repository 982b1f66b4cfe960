"""
Normalize raw analytics export rows into ``VideoRecord`` snapshots.

Accepts YouTube Studio CSV column names as well as already snake_cased rows.
Percent columns exported on a 0-100 scale are converted to fractions.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import VideoRecord

logger = logging.getLogger(__name__)

SHORT_FORM_MAX_SECONDS = 60
_VIDEO_ID_PATTERNS = [
    re.compile(r"(?:v=|/shorts/|youtu\.be/|/embed/)([A-Za-z0-9_-]{11})"),
    re.compile(r"^([A-Za-z0-9_-]{11})$"),
]


def _first(row: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None


def _num(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    if not value:
        return 0.0
    cleaned = re.sub(r"[^0-9.\-]", "", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def _rate(row: Dict[str, Any], percent_column: str, fraction_key: str) -> float:
    # Studio "(%)" columns are always 0-100; snake_case keys are already fractions.
    percent = _first(row, percent_column)
    if percent is not None:
        number = _num(percent) / 100.0
    else:
        number = _num(_first(row, fraction_key))
    if not 0.0 <= number <= 1.0:
        logger.warning("Rate %s=%r outside [0, 1]; clamping", fraction_key, number)
    return max(0.0, min(number, 1.0))


def _duration(value: Any) -> float:
    """Seconds from a number, ``M:SS`` or ``H:MM:SS``."""
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value or "").strip()
    if ":" in text:
        try:
            parts = [float(part) for part in text.split(":")]
        except ValueError:
            parts = []
        if len(parts) == 3:
            return parts[0] * 3600 + parts[1] * 60 + parts[2]
        if len(parts) == 2:
            return parts[0] * 60 + parts[1]
    return _num(text)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    for candidate in (text, text.replace(" ", "T", 1)):
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            continue
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)
    for fmt in ("%b %d, %Y", "%d %b %Y", "%m/%d/%Y"):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    logger.warning("Unparseable publish date %r; keeping row without a date", value)
    return None


def extract_video_id(value: Any) -> Optional[str]:
    text = str(value or "").strip()
    if not text:
        return None
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _infer_format(row: Dict[str, Any], raw_id: str, duration: float) -> str:
    explicit = str(_first(row, "format", "type", "Type", "TYPE", "Content Type", "content type") or "").strip().lower()
    if explicit in {"short", "shorts", "short_form"}:
        return "short"
    if explicit in {"long", "long_form", "video"}:
        return "long"
    url = raw_id.lower()
    if "/shorts/" in url:
        return "short"
    if "/watch?v=" in url:
        return "long"
    if 0 < duration <= SHORT_FORM_MAX_SECONDS:
        return "short"
    return "long"


def normalize_video_rows(raw_rows: Iterable[Dict[str, Any]]) -> Tuple[List[VideoRecord], int]:
    """
    Convert export rows into VideoRecords.

    Returns ``(records, channel_total_subscribers)``. The ``Total`` summary row
    only contributes the subscriber total and is not returned as a record.
    Rows without a title are dropped.
    """
    if raw_rows is None:
        return [], 0

    records: List[VideoRecord] = []
    channel_total_subscribers = 0

    for row in raw_rows:
        if not isinstance(row, dict):
            continue
        title = str(_first(row, "Video title", "title") or "").strip()
        if not title:
            continue

        subscribers = _num(_first(row, "Subscribers gained", "Subscribers", "subscribers"))
        if title.lower() == "total":
            channel_total_subscribers = int(subscribers)
            continue

        raw_id = str(_first(row, "Content", "video_id", "videoId", "Video ID", "YouTube URL", "URL") or "")
        duration = max(_duration(_first(row, "Duration", "duration")), 0.0)

        records.append(
            VideoRecord(
                video_id=extract_video_id(raw_id) or (raw_id or None),
                title=title,
                publish_date=_parse_datetime(_first(row, "Video publish time", "publish_date", "publishDate")),
                views=max(int(round(_num(_first(row, "Views", "views")))), 0),
                ctr=_rate(row, "Impressions click-through rate (%)", "ctr"),
                retention=_rate(row, "Average percentage viewed (%)", "retention"),
                impressions=max(int(round(_num(_first(row, "Impressions", "impressions")))), 0),
                subscribers=int(subscribers),
                duration=duration,
                format=_infer_format(row, raw_id, duration),
                channel=_first(row, "Channel", "Channel name", "channel") or "Main Channel",
            )
        )

    logger.debug("Normalized %s video rows (channel subscribers=%s)", len(records), channel_total_subscribers)
    return records, channel_total_subscribers
