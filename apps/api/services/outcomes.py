"""Brief outcome matching, scoring and aggregate feedback services."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Set

from analysis.models import (
    AccuracySummary,
    ActualMetrics,
    AggregateFeedback,
    BaselineMetrics,
    Brief,
    BriefOutcome,
    ChannelWindow,
    MetricDelta,
    SourceTypeBreakdown,
    VideoMatch,
    VideoRecord,
    as_utc,
)
from analysis.policy import DEFAULT_POLICY, FeedbackPolicy

logger = logging.getLogger(__name__)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) or datetime.now(timezone.utc)


def _round_pct(part: int, whole: int) -> int:
    return int(math.floor(part / whole * 100 + 0.5))


def _relative_delta(actual: float, baseline: float) -> Optional[float]:
    if baseline <= 0:
        return None
    return (actual - baseline) / baseline


def _published_in(videos: Sequence[VideoRecord], start: datetime, end: Optional[datetime] = None) -> List[VideoRecord]:
    return [
        v
        for v in videos
        if v.publish_date is not None and v.publish_date >= start and (end is None or v.publish_date < end)
    ]


# ─── Title similarity ───────────────────────────────────────────────────────


def tokenize(text: Optional[str], min_token_length: int = 3) -> Set[str]:
    if not text:
        return set()
    cleaned = _PUNCTUATION_RE.sub("", text.lower())
    return {token for token in cleaned.split() if len(token) >= min_token_length}


def jaccard_similarity(a: Optional[str], b: Optional[str], min_token_length: int = 3) -> float:
    tokens_a = tokenize(a, min_token_length)
    tokens_b = tokenize(b, min_token_length)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


# ─── Matching ───────────────────────────────────────────────────────────────


def _brief_format(brief: Brief) -> Optional[str]:
    return brief.brief_data.content_type or brief.brief_data.format


def suggest_video_matches(
    brief: Optional[Brief],
    videos: Optional[Sequence[VideoRecord]],
    policy: Optional[FeedbackPolicy] = None,
    now: Optional[datetime] = None,
) -> List[VideoMatch]:
    """
    Rank published videos that could fulfil ``brief``.

    Candidates must fall inside the match window around the brief's creation
    date. Confidence blends title overlap, a format bonus and date proximity.
    """
    if brief is None or not videos:
        return []
    policy = policy or DEFAULT_POLICY.feedback

    created = brief.created_at or _now(now)
    brief_format = _brief_format(brief)
    window_start = created - timedelta(days=policy.match_days_before)
    window_end = created + timedelta(days=policy.match_days_after)

    matches: List[VideoMatch] = []
    for video in videos:
        if video.publish_date is None or not window_start <= video.publish_date <= window_end:
            continue
        title_score = jaccard_similarity(brief.title, video.title, policy.min_token_length)
        type_bonus = policy.type_match_bonus if brief_format and video.format == brief_format else 0.0
        days = abs((video.publish_date - created).total_seconds()) / 86400.0
        date_score = max(0.0, policy.date_weight * (1 - days / policy.date_decay_days))
        confidence = min(1.0, title_score * policy.title_weight + type_bonus + date_score)
        if confidence <= policy.min_match_score:
            continue
        matches.append(
            VideoMatch(
                video_id=video.video_id,
                title=video.title,
                views=video.views,
                ctr=video.ctr,
                retention=video.retention,
                format=video.format,
                publish_date=video.publish_date,
                confidence=confidence,
                title_score=title_score,
            )
        )

    matches.sort(key=lambda match: match.confidence, reverse=True)
    logger.debug("Brief %s: %s candidate matches", brief.id, len(matches))
    return matches[: policy.match_limit]


# ─── Outcome ────────────────────────────────────────────────────────────────


def compute_brief_outcome(
    brief: Optional[Brief],
    linked_video: Optional[VideoRecord],
    videos: Optional[Sequence[VideoRecord]],
    policy: Optional[FeedbackPolicy] = None,
    now: Optional[datetime] = None,
) -> Optional[BriefOutcome]:
    """Compare the linked video against the same-format baseline before the brief."""
    if brief is None or linked_video is None:
        return None
    policy = policy or DEFAULT_POLICY.feedback
    videos = list(videos or [])

    baseline = BaselineMetrics()
    if brief.created_at is not None:
        start = brief.created_at - timedelta(days=policy.baseline_days)
        cohort = [
            v for v in _published_in(videos, start, brief.created_at) if v.format == linked_video.format
        ]
        if cohort:
            baseline = BaselineMetrics(
                views=sum(v.views for v in cohort) / len(cohort),
                ctr=sum(v.ctr for v in cohort) / len(cohort),
                retention=sum(v.retention for v in cohort) / len(cohort),
                count=len(cohort),
            )

    actual = ActualMetrics(
        views=linked_video.views,
        ctr=linked_video.ctr,
        retention=linked_video.retention,
        title=linked_video.title,
    )
    predicted = brief.brief_data.impact

    exceeded_prediction = None
    if predicted is not None and predicted.views_per_month and baseline.views > 0:
        exceeded_prediction = (actual.views - baseline.views) >= predicted.views_per_month

    outcome = BriefOutcome(
        baseline=baseline,
        actual=actual,
        predicted=predicted,
        delta=MetricDelta(
            views=_relative_delta(actual.views, baseline.views),
            ctr=_relative_delta(actual.ctr, baseline.ctr),
            retention=_relative_delta(actual.retention, baseline.retention),
        ),
        outperformed=baseline.views > 0 and actual.views > baseline.views,
        exceeded_prediction=exceeded_prediction,
        computed_at=_now(now),
    )
    logger.debug(
        "Brief %s outcome: baseline=%s (n=%s) actual=%s outperformed=%s",
        brief.id, baseline.views, baseline.count, actual.views, outcome.outperformed,
    )
    return outcome


# ─── Aggregate feedback ─────────────────────────────────────────────────────


def _short_date(value: datetime) -> str:
    return f"{value:%b} {value.day}"


def _channel_window(period: str, videos: Sequence[VideoRecord]) -> Optional[ChannelWindow]:
    if not videos:
        return None
    count = len(videos)
    return ChannelWindow(
        period=period,
        video_count=count,
        avg_views=sum(v.views for v in videos) / count,
        avg_ctr=sum(v.ctr for v in videos) / count,
        avg_retention=sum(v.retention for v in videos) / count,
        avg_subscribers=sum(v.subscribers for v in videos) / count,
    )


def compute_aggregate_feedback(
    briefs: Optional[Sequence[Brief]],
    videos: Optional[Sequence[VideoRecord]],
    policy: Optional[FeedbackPolicy] = None,
    now: Optional[datetime] = None,
) -> AggregateFeedback:
    """
    Channel before/after windows plus recommendation accuracy.

    The "before" window is the baseline period preceding the earliest
    non-draft brief; the "after" window trails ``now``.
    """
    if not videos:
        return AggregateFeedback()
    policy = policy or DEFAULT_POLICY.feedback
    briefs = list(briefs or [])
    now = _now(now)

    active = [b for b in briefs if b.status != "draft" and b.created_at is not None]
    channel_before = None
    if active:
        earliest = min(b.created_at for b in active)
        before_start = earliest - timedelta(days=policy.baseline_days)
        channel_before = _channel_window(
            f"{_short_date(before_start)} - {_short_date(earliest)}",
            _published_in(videos, before_start, earliest),
        )

    after_start = now - timedelta(days=policy.after_window_days)
    channel_after = _channel_window(f"{_short_date(after_start)} - Now", _published_in(videos, after_start))

    linked = [b for b in briefs if b.linked_video_id and b.outcome_data is not None]
    accuracy = None
    by_source_type: Dict[str, SourceTypeBreakdown] = {}
    if linked:
        outperformed = sum(1 for b in linked if b.outcome_data.outperformed)
        exceeded = sum(1 for b in linked if b.outcome_data.exceeded_prediction is True)
        with_prediction = sum(1 for b in linked if b.outcome_data.exceeded_prediction is not None)
        accuracy = AccuracySummary(
            total=len(linked),
            outperformed=outperformed,
            outperformed_pct=_round_pct(outperformed, len(linked)),
            exceeded_prediction=exceeded,
            exceeded_prediction_pct=_round_pct(exceeded, with_prediction) if with_prediction else None,
        )
        for brief in linked:
            bucket = by_source_type.setdefault(brief.source_type or "manual", SourceTypeBreakdown())
            bucket.total += 1
            if brief.outcome_data.outperformed:
                bucket.outperformed += 1

    logger.info(
        "Aggregate feedback: %s briefs (%s linked), %s videos",
        len(briefs), len(linked), len(videos),
    )
    return AggregateFeedback(
        channel_before=channel_before,
        channel_after=channel_after,
        accuracy=accuracy,
        by_source_type=by_source_type,
    )
