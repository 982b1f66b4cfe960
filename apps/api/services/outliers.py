"""Competitor outlier scoring and insight pairing."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from analysis.models import CompetitorInsight, CompetitorOutlier, CompetitorVideoRecord

logger = logging.getLogger(__name__)

DEFAULT_MIN_MULTIPLIER = 2.5
DEFAULT_OUTLIER_LIMIT = 20


def _channel_key(video: CompetitorVideoRecord) -> str:
    return video.channel or "unknown"


def channel_average_views(videos: Sequence[CompetitorVideoRecord]) -> Dict[str, float]:
    totals: Dict[str, List[int]] = {}
    for video in videos:
        totals.setdefault(_channel_key(video), []).append(video.views)
    return {channel: sum(views) / len(views) for channel, views in totals.items() if views}


def detect_outlier_videos(
    videos: Sequence[CompetitorVideoRecord],
    min_multiplier: float = DEFAULT_MIN_MULTIPLIER,
    limit: int = DEFAULT_OUTLIER_LIMIT,
) -> List[CompetitorOutlier]:
    """
    Flag competitor videos whose views are at least ``min_multiplier`` times
    their own channel's mean. Results keep descending view order.
    """
    if not videos:
        return []

    averages = channel_average_views(videos)
    outliers: List[CompetitorOutlier] = []
    for video in sorted(videos, key=lambda v: v.views, reverse=True):
        avg = averages.get(_channel_key(video), 0.0)
        score = round(video.views / avg, 1) if avg > 0 else 0.0
        if score < min_multiplier:
            continue
        outliers.append(
            CompetitorOutlier(
                id=video.video_id or f"{_channel_key(video)}:{video.title}",
                title=video.title,
                view_count=video.views,
                channel=video.channel,
                outlier_score=score,
                channel_avg_views=int(round(avg)),
                video_type=video.format,
            )
        )
        if len(outliers) >= limit:
            break

    logger.debug("Outlier scan: %s of %s competitor videos at >= %sx", len(outliers), len(videos), min_multiplier)
    return outliers


def pair_outliers_with_insights(
    outliers: Sequence[CompetitorOutlier],
    insights_by_id: Optional[Mapping[str, CompetitorInsight]],
) -> List[CompetitorOutlier]:
    """
    Attach cached insights by video id. An insight already on the outlier is
    kept when the cache has none; otherwise ``insight`` stays ``None``.
    """
    insights_by_id = insights_by_id or {}
    return [
        outlier.model_copy(update={"insight": insights_by_id.get(outlier.id, outlier.insight)})
        for outlier in outliers
    ]
