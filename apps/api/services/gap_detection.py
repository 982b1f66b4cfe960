"""
Competitor gap detection.

Compares a client's videos against a competitor corpus across six
independent dimensions (format, title pattern, content type, frequency,
series, topic) and returns evidence-backed gap records. Purely algorithmic.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Set

from analysis.classifiers import (
    FORMAT_LABELS,
    PATTERN_LABELS,
    TitleClassifier,
    default_classifier,
)
from analysis.models import (
    CompetitorSeries,
    CompetitorVideoRecord,
    Gap,
    GapEvidence,
    GapExample,
    GapReport,
    GapSummary,
    VideoRecord,
    as_utc,
)
from analysis.policy import DEFAULT_POLICY, GapPolicy, PipelinePolicy
from services.scoring import compute_score

logger = logging.getLogger(__name__)

STOPWORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "it", "as", "be", "was", "are",
    "this", "that", "these", "those", "i", "me", "my", "we", "our", "you",
    "your", "he", "she", "his", "her", "they", "them", "their", "its",
    "not", "no", "do", "does", "did", "will", "can", "could", "would",
    "should", "have", "has", "had", "been", "being", "so", "if", "then",
    "than", "when", "what", "how", "why", "who", "which", "where",
    "about", "up", "out", "all", "just", "more", "most", "very",
    "also", "into", "over", "after", "before", "between", "each",
    "every", "both", "few", "some", "any", "other", "new", "old",
    "one", "two", "three", "first", "last", "get", "got", "make",
    "made", "like", "know", "think", "see", "look", "come", "go",
    "here", "there", "now", "still", "even", "back", "only", "way",
    "part", "ep", "episode", "video", "full", "official",
}


# ─── Helpers ────────────────────────────────────────────────────────────────


def _pct(share: float) -> int:
    return int(math.floor(share * 100 + 0.5))


def _fmt_int(value: float) -> str:
    if not value or math.isnan(value):
        return "0"
    return f"{int(round(value)):,}"


def _by_views(videos: Iterable[VideoRecord], limit: int) -> List[VideoRecord]:
    return sorted(videos, key=lambda v: v.views, reverse=True)[:limit]


def _mean_views(videos: Sequence[VideoRecord]) -> float:
    if not videos:
        return 0.0
    return sum(v.views for v in videos) / len(videos)


def _examples(videos: Iterable[VideoRecord]) -> List[GapExample]:
    return [GapExample(title=v.title, views=v.views, channel=v.channel or "-") for v in videos]


def _impact(avg_views: float, policy: GapPolicy) -> str:
    if avg_views > policy.impact_high_views:
        return "high"
    if avg_views > policy.impact_medium_views:
        return "medium"
    return "low"


def _confidence(gap_type: str, sample_size: int, policy: GapPolicy) -> str:
    high_at, medium_at = policy.confidence_cutoffs.get(gap_type, (10, 5))
    if sample_size >= high_at:
        return "high"
    if sample_size >= medium_at:
        return "medium"
    return "low"


def _effort(gap_type: str, policy: GapPolicy) -> str:
    return policy.effort_by_type.get(gap_type, "medium")


def _bounded(value: float) -> float:
    return max(0.0, min(1.0, value))


def _competitor_format(video: CompetitorVideoRecord, classifier: TitleClassifier) -> Optional[str]:
    return video.detected_format or classifier.content_format(video.title)


def _competitor_patterns(video: CompetitorVideoRecord, classifier: TitleClassifier) -> List[str]:
    if video.title_patterns is not None:
        return list(video.title_patterns)
    return classifier.title_patterns(video.title)


# ─── 1. Format gaps ─────────────────────────────────────────────────────────


def detect_format_gaps(
    client_videos: Sequence[VideoRecord],
    competitor_videos: Sequence[CompetitorVideoRecord],
    classifier: TitleClassifier = default_classifier,
    policy: GapPolicy = DEFAULT_POLICY.gaps,
) -> List[Gap]:
    client_counts: Counter = Counter()
    for video in client_videos:
        fmt = classifier.content_format(video.title)
        if fmt:
            client_counts[fmt] += 1

    comp_videos: Dict[str, List[CompetitorVideoRecord]] = {}
    for video in competitor_videos:
        fmt = _competitor_format(video, classifier)
        if fmt:
            comp_videos.setdefault(fmt, []).append(video)

    client_total = len(client_videos) or 1
    comp_total = len(competitor_videos) or 1
    gaps: List[Gap] = []

    for fmt, videos in comp_videos.items():
        comp_share = len(videos) / comp_total
        client_count = client_counts.get(fmt, 0)
        client_share = client_count / client_total
        if not (comp_share > policy.format_competitor_share and client_share < policy.format_client_share):
            continue

        label = FORMAT_LABELS.get(fmt, fmt)
        ratio = int(round(comp_share / max(client_share, 0.01)))
        top = _by_views(videos, policy.top_examples)
        avg_views = _mean_views(top)
        gaps.append(
            Gap(
                id=f"format_{fmt}",
                type="format",
                type_label="Format Gap",
                title=f"Competitors use {label} {ratio}x more",
                description=(
                    f"{_pct(comp_share)}% of competitor videos use the {label} format, "
                    f"but only {_pct(client_share)}% of yours do ({client_count} videos)."
                ),
                action=f"Create {label} content. Competitors average {_fmt_int(avg_views)} views with this format.",
                evidence=GapEvidence(
                    competitor_stat=f"{len(videos)} videos ({_pct(comp_share)}%)",
                    client_stat=f"{client_count} videos ({_pct(client_share)}%)",
                    top_examples=_examples(top),
                ),
                gap_size=_bounded((comp_share - client_share) * policy.format_gap_multiplier),
                impact=_impact(avg_views, policy),
                confidence=_confidence("format", len(videos), policy),
                effort=_effort("format", policy),
            )
        )
    return gaps


# ─── 2. Title pattern gaps ──────────────────────────────────────────────────


def detect_title_pattern_gaps(
    client_videos: Sequence[VideoRecord],
    competitor_videos: Sequence[CompetitorVideoRecord],
    classifier: TitleClassifier = default_classifier,
    policy: GapPolicy = DEFAULT_POLICY.gaps,
) -> List[Gap]:
    client_counts: Counter = Counter()
    for video in client_videos:
        for pattern in set(classifier.title_patterns(video.title)):
            client_counts[pattern] += 1

    comp_videos: Dict[str, List[CompetitorVideoRecord]] = {}
    for video in competitor_videos:
        for pattern in dict.fromkeys(_competitor_patterns(video, classifier)):
            comp_videos.setdefault(pattern, []).append(video)

    client_total = len(client_videos) or 1
    comp_total = len(competitor_videos) or 1
    gaps: List[Gap] = []

    for pattern, videos in comp_videos.items():
        comp_share = len(videos) / comp_total
        client_count = client_counts.get(pattern, 0)
        client_share = client_count / client_total
        if not (comp_share > policy.pattern_competitor_share and client_share < policy.pattern_client_share):
            continue

        label = PATTERN_LABELS.get(pattern, pattern)
        avg_views = _mean_views(videos)
        gaps.append(
            Gap(
                id=f"pattern_{pattern}",
                type="pattern",
                type_label="Title Pattern Gap",
                title=f'Underusing "{label}" in titles',
                description=(
                    f"{_pct(comp_share)}% of competitor titles use {label}, "
                    f"but only {_pct(client_share)}% of yours do."
                ),
                action=f"Incorporate {label} into your titles. Competitors average {_fmt_int(avg_views)} views with this pattern.",
                evidence=GapEvidence(
                    competitor_stat=f"{len(videos)} videos ({_pct(comp_share)}%)",
                    client_stat=f"{client_count} videos ({_pct(client_share)}%)",
                    top_examples=_examples(_by_views(videos, policy.top_examples)),
                ),
                gap_size=_bounded((comp_share - client_share) * policy.pattern_gap_multiplier),
                impact=_impact(avg_views, policy),
                confidence=_confidence("pattern", len(videos), policy),
                effort=_effort("pattern", policy),
            )
        )
    return gaps


# ─── 3. Content type gaps (Shorts vs long-form) ─────────────────────────────


def detect_content_type_gaps(
    client_videos: Sequence[VideoRecord],
    competitor_videos: Sequence[CompetitorVideoRecord],
    policy: GapPolicy = DEFAULT_POLICY.gaps,
) -> List[Gap]:
    client_total = len(client_videos) or 1
    comp_total = len(competitor_videos) or 1
    rules = [
        ("short", "shorts_missing", policy.shorts_competitor_share, policy.shorts_client_share),
        ("long", "longform_missing", policy.longform_competitor_share, policy.longform_client_share),
    ]
    gaps: List[Gap] = []

    for fmt, slug, comp_threshold, client_threshold in rules:
        client_count = sum(1 for v in client_videos if v.format == fmt)
        comp_matching = [v for v in competitor_videos if v.format == fmt]
        client_share = client_count / client_total
        comp_share = len(comp_matching) / comp_total
        if not (comp_share > comp_threshold and client_share < client_threshold):
            continue

        top = _by_views(comp_matching, policy.top_examples)
        avg_views = _mean_views(top)
        if fmt == "short":
            title = "Competitors invest in Shorts and you don't"
            noun = "Shorts"
            action = f"Start publishing Shorts. Competitors average {_fmt_int(avg_views)} views on their Shorts."
        else:
            title = "Competitors focus on long-form and you're underinvested"
            noun = "long-form"
            action = f"Invest in long-form content. Competitors average {_fmt_int(avg_views)} views on long-form videos."

        gaps.append(
            Gap(
                id=f"type_{slug}",
                type="content_type",
                type_label="Content Type Gap",
                title=title,
                description=(
                    f"{_pct(comp_share)}% of competitor content is {noun}, but only {_pct(client_share)}% of yours is. "
                    f"That's {len(comp_matching)} competitor videos vs {client_count} of yours."
                ),
                action=action,
                evidence=GapEvidence(
                    competitor_stat=f"{len(comp_matching)} {noun} ({_pct(comp_share)}%)",
                    client_stat=f"{client_count} {noun} ({_pct(client_share)}%)",
                    top_examples=_examples(top),
                ),
                gap_size=_bounded((comp_share - client_share) * policy.content_type_gap_multiplier),
                impact=_impact(avg_views, policy),
                confidence=_confidence("content_type", len(comp_matching), policy),
                effort=_effort("content_type", policy),
            )
        )
    return gaps


# ─── 4. Frequency gaps ──────────────────────────────────────────────────────


def detect_frequency_gaps(
    client_videos: Sequence[VideoRecord],
    competitor_videos: Sequence[CompetitorVideoRecord],
    competitor_channel_count: Optional[int] = None,
    policy: GapPolicy = DEFAULT_POLICY.gaps,
    now: Optional[datetime] = None,
) -> List[Gap]:
    now = as_utc(now) or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=policy.frequency_window_days)

    def _recent(videos: Iterable[VideoRecord]) -> int:
        return sum(1 for v in videos if v.publish_date is not None and cutoff <= v.publish_date <= now)

    if competitor_channel_count is None:
        competitor_channel_count = len({v.channel for v in competitor_videos if v.channel})
    channel_count = max(competitor_channel_count, 1)

    client_recent = _recent(client_videos)
    comp_avg = _recent(competitor_videos) / channel_count
    if not (comp_avg > policy.frequency_min_competitor_uploads
            and client_recent < comp_avg * policy.frequency_client_ratio):
        return []

    ratio = comp_avg / max(client_recent, 0.5)
    missing_uploads = int(round(comp_avg - client_recent))
    estimated_views = missing_uploads * _mean_views(client_videos)
    return [
        Gap(
            id="frequency_low_cadence",
            type="frequency",
            type_label="Frequency Gap",
            title=f"Publishing {ratio:.1f}x less than competitors",
            description=(
                f"You published {client_recent} videos in the last {policy.frequency_window_days} days. "
                f"Competitors average {comp_avg:.1f} uploads/month per channel."
            ),
            action=(
                f"Increase to {math.ceil(comp_avg)} uploads/month, about {missing_uploads} more videos, "
                f"potentially adding {_fmt_int(estimated_views)} views."
            ),
            evidence=GapEvidence(
                competitor_stat=f"{comp_avg:.1f} uploads/month (avg per channel)",
                client_stat=f"{client_recent} uploads in last {policy.frequency_window_days} days",
            ),
            gap_size=_bounded((1 - client_recent / comp_avg) * policy.frequency_gap_multiplier),
            impact=_impact(estimated_views, policy),
            confidence=_confidence("frequency", channel_count, policy),
            effort=_effort("frequency", policy),
        )
    ]


# ─── 5. Series gaps ─────────────────────────────────────────────────────────


def _series_prefix(title: str, policy: GapPolicy) -> str:
    tokens = [t for t in re.split(r"[\s\-|:]+", title or "") if t]
    return " ".join(tokens[: policy.series_prefix_tokens]).lower().strip()


def count_client_series(client_videos: Sequence[VideoRecord], policy: GapPolicy = DEFAULT_POLICY.gaps) -> int:
    """Count recurring title prefixes that look like a series of the client's own."""
    prefixes: Counter = Counter()
    for video in client_videos:
        prefix = _series_prefix(video.title, policy)
        if len(prefix) >= policy.series_min_prefix_length:
            prefixes[prefix] += 1
    return sum(1 for count in prefixes.values() if count >= policy.series_min_occurrences)


def detect_series_gaps(
    client_videos: Sequence[VideoRecord],
    competitor_series: Optional[Sequence[CompetitorSeries]],
    policy: GapPolicy = DEFAULT_POLICY.gaps,
) -> List[Gap]:
    if not competitor_series:
        return []

    eligible = [s for s in competitor_series if s.video_count >= policy.series_min_competitor_videos]
    successful = sorted(
        (
            s for s in eligible
            if s.performance_trend == "growing" or s.avg_views > policy.series_high_performing_views
        ),
        key=lambda s: s.avg_views,
        reverse=True,
    )
    client_series = count_client_series(client_videos, policy)
    if not successful or client_series >= policy.series_client_floor:
        return []

    top = successful[: policy.top_examples]
    avg_views = sum(s.avg_views for s in top) / len(top)
    names = ", ".join(f'"{s.name}"' for s in top)
    return [
        Gap(
            id="series_missing",
            type="series",
            type_label="Series Gap",
            title=f"Competitors have {len(successful)} successful series and you have {client_series}",
            description=(
                "Competitors run recurring content series that build audience expectation and loyalty. "
                f"Their top series average {_fmt_int(avg_views)} views per episode."
            ),
            action=f"Start a recurring series on a topic you can produce consistently. Competitor series include: {names}.",
            evidence=GapEvidence(
                competitor_stat=f"{len(successful)} growing/high-performing series",
                client_stat=f"{client_series} detected series",
                top_examples=[
                    GapExample(title=f"{s.name} ({s.video_count} episodes)", views=s.avg_views, channel=s.channel or "-")
                    for s in top
                ],
            ),
            gap_size=_bounded((len(successful) - client_series) / policy.series_gap_divisor),
            impact=_impact(avg_views, policy),
            confidence=_confidence("series", len(successful), policy),
            effort=_effort("series", policy),
        )
    ]


# ─── 6. Topic gaps (n-grams) ────────────────────────────────────────────────


def extract_ngrams(title: str, n: int, min_token_length: int = 3) -> List[str]:
    if not title:
        return []
    words = [
        w for w in re.sub(r"[^\w\s]", "", title.lower()).split()
        if len(w) >= min_token_length and w not in STOPWORDS
    ]
    return [" ".join(words[i:i + n]) for i in range(len(words) - n + 1)]


def _title_topics(title: str, policy: GapPolicy) -> List[str]:
    grams = extract_ngrams(title, 2, policy.topic_min_token_length)
    grams += extract_ngrams(title, 3, policy.topic_min_token_length)
    return list(dict.fromkeys(grams))


def detect_topic_gaps(
    client_videos: Sequence[VideoRecord],
    competitor_videos: Sequence[CompetitorVideoRecord],
    policy: GapPolicy = DEFAULT_POLICY.gaps,
) -> List[Gap]:
    comp_topics: Dict[str, List[CompetitorVideoRecord]] = {}
    for video in competitor_videos:
        for topic in _title_topics(video.title, policy):
            comp_topics.setdefault(topic, []).append(video)

    client_topics: Set[str] = set()
    for video in client_videos:
        client_topics.update(_title_topics(video.title, policy))

    candidates = [
        (topic, videos, _mean_views(videos))
        for topic, videos in comp_topics.items()
        if len(videos) >= policy.topic_min_competitor_videos and topic not in client_topics
    ]
    candidates.sort(key=lambda item: item[2], reverse=True)

    gaps: List[Gap] = []
    for idx, (topic, videos, avg_views) in enumerate(candidates[: policy.topic_limit]):
        count = len(videos)
        gaps.append(
            Gap(
                id=f"topic_{idx}_{topic.replace(' ', '_')}",
                type="topic",
                type_label="Topic Gap",
                title=f'Competitors cover "{topic}" and you don\'t',
                description=(
                    f'{count} competitor videos mention "{topic}" with an average of {_fmt_int(avg_views)} views. '
                    "You have no videos covering this topic."
                ),
                action=f'Create content around "{topic}". Proven demand from {count} competitor videos.',
                evidence=GapEvidence(
                    competitor_stat=f"{count} videos, avg {_fmt_int(avg_views)} views",
                    client_stat="0 videos",
                    top_examples=_examples(_by_views(videos, policy.topic_top_examples)),
                ),
                gap_size=_bounded(count / policy.topic_gap_divisor),
                impact=_impact(avg_views, policy),
                confidence=_confidence("topic", count, policy),
                effort=_effort("topic", policy),
            )
        )
    return gaps


# ─── Orchestrator ───────────────────────────────────────────────────────────


def _summarize(gaps: List[Gap], competitor_count: int, video_count: int) -> GapSummary:
    by_type: Dict[str, int] = {}
    for gap in gaps:
        by_type[gap.type] = by_type.get(gap.type, 0) + 1
    top_gap_type = None
    if by_type:
        top_gap_type = sorted(by_type.items(), key=lambda item: item[1], reverse=True)[0][0]
    return GapSummary(
        total=len(gaps),
        by_type=by_type,
        top_gap_type=top_gap_type,
        competitor_count=competitor_count,
        video_count=video_count,
    )


def detect_all_gaps(
    client_videos: Optional[Sequence[VideoRecord]],
    competitor_videos: Optional[Sequence[CompetitorVideoRecord]],
    competitor_channel_count: Optional[int] = None,
    competitor_series: Optional[Sequence[CompetitorSeries]] = None,
    classifier: Optional[TitleClassifier] = None,
    policy: Optional[PipelinePolicy] = None,
    now: Optional[datetime] = None,
) -> GapReport:
    """
    Run all six gap detectors and return the scored, ranked gap list.

    ``competitor_series`` carries series detected upstream; their
    ``performance_trend`` label is used as-is. Missing inputs never raise:
    an empty competitor corpus yields an empty report flagged ``no_videos``.
    """
    policy = policy or DEFAULT_POLICY
    classifier = classifier or default_classifier
    client_videos = list(client_videos or [])
    competitor_videos = list(competitor_videos or [])

    if competitor_channel_count is None:
        channel_count = len({v.channel for v in competitor_videos if v.channel})
    else:
        channel_count = competitor_channel_count

    if not competitor_videos or not client_videos:
        return GapReport(
            summary=_summarize([], channel_count, len(competitor_videos)),
            no_videos=not competitor_videos,
            no_competitors=competitor_channel_count == 0,
        )

    gp = policy.gaps
    gaps = (
        detect_format_gaps(client_videos, competitor_videos, classifier, gp)
        + detect_title_pattern_gaps(client_videos, competitor_videos, classifier, gp)
        + detect_content_type_gaps(client_videos, competitor_videos, gp)
        + detect_frequency_gaps(client_videos, competitor_videos, channel_count, gp, now)
        + detect_series_gaps(client_videos, competitor_series, gp)
        + detect_topic_gaps(client_videos, competitor_videos, gp)
    )
    scored = [
        gap.model_copy(update={"score": compute_score(gap.impact, gap.confidence, gap.effort, policy.scoring)})
        for gap in gaps
    ]
    scored.sort(key=lambda gap: gap.score, reverse=True)

    logger.info(
        "Gap detection: %s gaps from %s client videos vs %s competitor videos (%s channels)",
        len(scored), len(client_videos), len(competitor_videos), channel_count,
    )
    return GapReport(gaps=scored, summary=_summarize(scored, channel_count, len(competitor_videos)))
