"""
Diagnostic action-item generation.

Detects performance patterns in a single creator's video history. No
competitor data and no external services are involved.
"""

import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

import numpy as np

from .models import ActionItem, ImpactEstimate, VideoExample, VideoRecord, as_utc
from .policy import DEFAULT_POLICY, DiagnosticPolicy

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 1, "medium": 2, "low": 3}
FORMAT_NAMES = {"short": "Shorts", "long": "long-form"}
FORMAT_TITLES = {"short": "Shorts", "long": "Long-Form"}


def _fmt_int(value: float) -> str:
    if not value or math.isnan(value):
        return "0"
    return f"{int(round(value)):,}"


def _fmt_pct(value: float) -> str:
    if not value or math.isnan(value):
        return "0%"
    return f"{value * 100:.1f}%"


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.mean(values))


def _example(video: VideoRecord, label: str) -> VideoExample:
    return VideoExample(
        label=label,
        title=video.title,
        views=video.views,
        ctr=video.ctr,
        retention=video.retention,
        publish_date=video.publish_date,
    )


def _sort_key(item: ActionItem):
    if item.impact is not None:
        return (0, -item.impact.views_per_month, 0)
    return (1, 0.0, PRIORITY_ORDER.get(item.priority, 3))


class DiagnosticEngine:
    """Runs every diagnostic detector over one creator's videos."""

    def __init__(
        self,
        videos: Sequence[VideoRecord],
        policy: Optional[DiagnosticPolicy] = None,
        now: Optional[datetime] = None,
    ):
        self.videos = list(videos or [])
        self.policy = policy or DEFAULT_POLICY.diagnostics
        self.now = as_utc(now) or datetime.now(timezone.utc)
        self.by_format = {
            "short": [v for v in self.videos if v.format == "short"],
            "long": [v for v in self.videos if v.format == "long"],
        }
        window = timedelta(days=self.policy.window_days)
        self.recent = self._published_between(self.now - window, self.now)
        self.prior = self._published_between(self.now - 2 * window, self.now - window)

    def generate(self) -> List[ActionItem]:
        """Return at most ``max_items`` action items, highest impact first."""
        if not self.videos:
            return []

        detectors: List[Callable[[], List[ActionItem]]] = [
            self._detect_cadence_drop,
            self._detect_ctr_gaps,
            self._detect_replication,
            self._detect_retention_gaps,
            self._detect_bottom_performers,
            self._detect_format_balance,
            self._detect_packaging_mismatch,
            self._detect_refresh_candidates,
        ]
        actions: List[ActionItem] = []
        for detector in detectors:
            fired = detector()
            if fired:
                logger.debug("Diagnostic detector %s fired %s item(s)", detector.__name__, len(fired))
            actions.extend(fired)

        actions.sort(key=_sort_key)
        return actions[: self.policy.max_items]

    def _published_between(self, start: datetime, end: datetime) -> List[VideoRecord]:
        return [
            v for v in self.videos
            if v.publish_date is not None and start <= v.publish_date < end
        ]

    def _cohort_size(self, count: int) -> int:
        return int(math.ceil(count * self.policy.cohort_fraction))

    def _tail_start(self, count: int) -> int:
        return int(math.floor(count * (1 - self.policy.cohort_fraction)))

    # 1. Upload cadence

    def _detect_cadence_drop(self) -> List[ActionItem]:
        recent, prior = self.recent, self.prior
        if not recent or not prior:
            return []
        if len(recent) >= len(prior) * self.policy.cadence_drop_ratio:
            return []

        drop_pct = int(round((1 - len(recent) / len(prior)) * 100))
        missing_uploads = len(prior) - len(recent)
        current_views = float(sum(v.views for v in recent))
        estimated_views = missing_uploads * (current_views / len(recent))
        percent = int(round(estimated_views / current_views * 100)) if current_views > 0 else None

        return [
            ActionItem(
                key="upload_cadence_drop",
                priority="high",
                title="Upload Frequency Declining",
                description=(
                    f"{len(recent)} uploads in last {self.policy.window_days} days vs "
                    f"{len(prior)} in previous {self.policy.window_days} days ({drop_pct}% decrease)"
                ),
                action=f"Return to {len(prior)} uploads/month pace",
                reason="Algorithm favors consistent publishers; upload frequency directly correlates with higher recommended reach.",
                impact=ImpactEstimate(views_per_month=estimated_views, percent_increase=percent),
            )
        ]

    # 2. CTR packaging, per format

    def _detect_ctr_gaps(self) -> List[ActionItem]:
        actions = []
        for fmt, rows in self.by_format.items():
            if len(rows) < self.policy.min_format_samples:
                continue
            avg_ctr = _mean([v.ctr for v in rows])
            ranked = sorted(rows, key=lambda v: v.ctr, reverse=True)
            top = ranked[: self._cohort_size(len(rows))]
            bottom = ranked[self._tail_start(len(rows)):]
            top_avg_ctr = _mean([v.ctr for v in top])
            if not avg_ctr < top_avg_ctr * self.policy.ctr_gap_ratio:
                continue

            name = FORMAT_NAMES[fmt]
            actions.append(
                ActionItem(
                    key=f"ctr_packaging_{fmt}",
                    priority="high",
                    content_type=fmt,
                    title=f"Improve {FORMAT_TITLES[fmt]} Thumbnail & Title Packaging",
                    description=f"{FORMAT_TITLES[fmt]} CTR {_fmt_pct(avg_ctr)} vs top performers {_fmt_pct(top_avg_ctr)}",
                    action=f"A/B test 3 thumbnail styles on next 5 {name} uploads matching top performers",
                    reason=f"Better packaging on {name} could unlock significant views from existing impressions.",
                    examples=[
                        _example(top[0], "WORKING"),
                        _example(bottom[-1], "NEEDS WORK"),
                    ],
                )
            )
        return actions

    # 3. Top-performer replication, per format

    def _formula_label(self, fmt: str, top: List[VideoRecord]) -> str:
        titles = " ".join(v.title for v in top).lower()
        if titles.count("?") > len(top) * 0.5:
            return "question-based hooks"
        if fmt == "long" and titles.count("how to") > len(top) * 0.3:
            return "how-to tutorials"
        if len(re.findall(r"\d+", titles)) > len(top) * 0.5:
            return "numbered list formats"
        return "successful formula"

    def _detect_replication(self) -> List[ActionItem]:
        actions = []
        for fmt, rows in self.by_format.items():
            if len(rows) < self.policy.min_replication_samples:
                continue
            ranked = sorted(rows, key=lambda v: v.views, reverse=True)
            top = ranked[: self._cohort_size(len(rows))]
            bottom = ranked[self._tail_start(len(rows)):]
            avg_views = _mean([v.views for v in rows])
            top_avg_views = _mean([v.views for v in top])
            if not top_avg_views > avg_views * self.policy.replication_lift:
                continue

            formula = self._formula_label(fmt, top)
            batch = self.policy.replication_batch
            total_impact = (top_avg_views - avg_views) * batch
            monthly_uploads = len([v for v in self.recent if v.format == fmt]) or max(1.0, len(rows) / 3)
            baseline_views = avg_views * monthly_uploads
            percent = int(round(total_impact / baseline_views * 100)) if baseline_views > 0 else None

            examples = [_example(v, f"TOP PERFORMER ({formula})") for v in top[:2]]
            examples.append(_example(bottom[0], "UNDERPERFORMING"))
            actions.append(
                ActionItem(
                    key=f"replicate_top_{fmt}",
                    priority="high",
                    content_type=fmt,
                    title=f"Replicate Top-Performing {FORMAT_TITLES[fmt]} Formula",
                    description=(
                        f"Top 20% of {FORMAT_NAMES[fmt]} average {_fmt_int(top_avg_views)} views "
                        f"vs overall avg {_fmt_int(avg_views)}"
                    ),
                    action=f"Study top {len(top)} {FORMAT_NAMES[fmt]} - identify {formula} and apply to next {batch} uploads",
                    reason="Replicating proven winners is the fastest path to consistent results.",
                    impact=ImpactEstimate(views_per_month=total_impact, percent_increase=percent),
                    examples=examples,
                )
            )
        return actions

    # 4. Retention, per format

    def _detect_retention_gaps(self) -> List[ActionItem]:
        actions = []
        for fmt, rows in self.by_format.items():
            measured = [v for v in rows if v.retention > 0]
            if len(measured) < self.policy.min_format_samples:
                continue
            avg_retention = _mean([v.retention for v in measured])
            ranked = sorted(measured, key=lambda v: v.retention, reverse=True)
            top = ranked[: self._cohort_size(len(measured))]
            top_avg_retention = _mean([v.retention for v in top])
            if not avg_retention < top_avg_retention * self.policy.retention_gap_ratio:
                continue

            actions.append(
                ActionItem(
                    key=f"retention_{fmt}",
                    priority="medium",
                    content_type=fmt,
                    title=f"Improve {FORMAT_TITLES[fmt]} Viewer Retention",
                    description=(
                        f"{FORMAT_TITLES[fmt]} retention {_fmt_pct(avg_retention)} "
                        f"vs top performers {_fmt_pct(top_avg_retention)}"
                    ),
                    action=f"Analyze hooks in top 20% {FORMAT_NAMES[fmt]} - the opening seconds are critical",
                    reason="Better retention drives more algorithmic recommendations.",
                    examples=[
                        _example(ranked[0], "STRONG HOOK"),
                        _example(ranked[-1], "WEAK HOOK"),
                    ],
                )
            )
        return actions

    # 5. Bottom-performer anti-pattern

    def _detect_bottom_performers(self) -> List[ActionItem]:
        avg_views = _mean([v.views for v in self.videos])
        ranked = sorted(self.videos, key=lambda v: v.views)
        bottom = ranked[: self._cohort_size(len(ranked))]
        top = ranked[self._tail_start(len(ranked)):]
        if len(bottom) < self.policy.min_bottom_cohort:
            return []
        bottom_avg_views = _mean([v.views for v in bottom])
        if not bottom_avg_views < avg_views * self.policy.bottom_views_ratio:
            return []

        bottom_ctr = _mean([v.ctr for v in bottom])
        bottom_retention = _mean([v.retention for v in bottom])
        anti_pattern = "unclear hooks and weak packaging"
        if bottom_ctr < self.policy.bottom_low_ctr:
            anti_pattern = "poor thumbnails and titles (very low CTR)"
        elif bottom_retention < self.policy.bottom_low_retention:
            anti_pattern = "weak hooks and poor pacing (low retention)"

        below_pct = int(round((1 - bottom_avg_views / avg_views) * 100))
        return [
            ActionItem(
                key="bottom_performers",
                priority="medium",
                title="Avoid Bottom-Performer Patterns",
                description=f"Bottom 20% average only {_fmt_int(bottom_avg_views)} views ({below_pct}% below avg)",
                action=f"Review bottom {len(bottom)} videos - identify {anti_pattern} and avoid in future content",
                reason="Learning what not to do is as valuable as replicating winners.",
                examples=[
                    _example(top[-1], "HIGH PERFORMER"),
                    _example(bottom[0], f"AVOID ({anti_pattern})"),
                    _example(bottom[1], f"AVOID ({anti_pattern})"),
                ],
            )
        ]

    # 6. Shorts / long-form balance

    def _detect_format_balance(self) -> List[ActionItem]:
        shorts, longs = self.by_format["short"], self.by_format["long"]
        if not shorts or not longs:
            return []
        shorts_avg = _mean([v.views for v in shorts])
        longs_avg = _mean([v.views for v in longs])
        shorts_share = len(shorts) / (len(shorts) + len(longs))

        if shorts_avg > longs_avg * self.policy.balance_lift and shorts_share < self.policy.balance_low_share:
            favored, other, favored_avg, other_avg, share = "short", "long", shorts_avg, longs_avg, shorts_share
        elif longs_avg > shorts_avg * self.policy.balance_lift and shorts_share > self.policy.balance_high_share:
            favored, other, favored_avg, other_avg, share = "long", "short", longs_avg, shorts_avg, 1 - shorts_share
        else:
            return []

        lift = f" ({int(round((favored_avg / other_avg - 1) * 100))}% better)" if other_avg > 0 else ""
        best = max(self.by_format[favored], key=lambda v: v.views)
        return [
            ActionItem(
                key=f"format_balance_{favored}",
                priority="medium",
                content_type=favored,
                title=f"Increase {FORMAT_TITLES[favored]} Production",
                description=(
                    f"{FORMAT_TITLES[favored]} averaging {_fmt_int(favored_avg)} views vs "
                    f"{FORMAT_NAMES[other]} {_fmt_int(other_avg)}{lift}"
                ),
                action=f"Shift ratio from {int(round(share * 100))}% to 50% {FORMAT_NAMES[favored]}",
                reason=f"{FORMAT_TITLES[favored]} is outperforming; increase frequency to maximize reach.",
                examples=[_example(best, f"TOP {FORMAT_TITLES[favored].upper()}")],
            )
        ]

    # 7. Strong content, weak packaging

    def _detect_packaging_mismatch(self) -> List[ActionItem]:
        p = self.policy
        flagged = [
            v for v in self.videos
            if v.retention > p.mismatch_min_retention
            and v.ctr < p.mismatch_max_ctr
            and v.impressions > p.mismatch_min_impressions
        ]
        if not flagged:
            return []

        worst_packaging = max(flagged, key=lambda v: v.retention)
        by_ctr = sorted(self.videos, key=lambda v: v.ctr, reverse=True)
        good_packaging = next((v for v in by_ctr if v.retention > 0.4), by_ctr[0])
        return [
            ActionItem(
                key="packaging_mismatch",
                priority="high",
                title="Fix Packaging on High-Quality Videos",
                description=(
                    f"{len(flagged)} videos have great retention ({_fmt_pct(worst_packaging.retention)}) "
                    f"but low CTR ({_fmt_pct(worst_packaging.ctr)})"
                ),
                action=f"Replace thumbnails/titles on these {len(flagged)} videos - the content is already working",
                reason="These videos prove the content quality is there. Better packaging could multiply their views.",
                examples=[
                    _example(good_packaging, "GOOD PACKAGING"),
                    _example(worst_packaging, "GREAT CONTENT, BAD PACKAGING"),
                ],
            )
        ]

    # 8. High impressions, low CTR

    def _detect_refresh_candidates(self) -> List[ActionItem]:
        p = self.policy
        flagged = [
            v for v in self.videos
            if v.impressions > p.refresh_min_impressions and v.ctr < p.refresh_max_ctr
        ]
        if not flagged:
            return []

        def missed_views(video: VideoRecord) -> float:
            return video.impressions * (p.refresh_ctr_benchmark - video.ctr)

        total_missed = sum(missed_views(v) for v in flagged)
        top_impressions = sorted(flagged, key=lambda v: v.impressions, reverse=True)[: p.refresh_top_videos]
        potential = sum(missed_views(v) for v in top_impressions)
        monthly_views = sum(v.views for v in self.videos) / max(1.0, len(self.videos) / 10)
        percent = int(round(potential / monthly_views * 100)) if monthly_views > 0 else None

        best_ctr = max(self.videos, key=lambda v: v.ctr)
        worst = min(flagged, key=lambda v: v.ctr)
        return [
            ActionItem(
                key="refresh_high_impression",
                priority="high",
                title="Refresh Thumbnails on High-Impression Videos",
                description=f"{len(flagged)} videos with {_fmt_int(total_missed)} potential missed views",
                action=f"Update thumbnails on top {len(top_impressions)} underperforming videos with high impressions",
                reason="The algorithm already surfaces these videos; better CTR converts existing impressions.",
                impact=ImpactEstimate(views_per_month=potential, percent_increase=percent),
                examples=[
                    _example(best_ctr, "HIGH CTR EXAMPLE"),
                    _example(worst, "NEEDS NEW THUMBNAIL"),
                ],
            )
        ]


def generate_action_items(
    videos: Sequence[VideoRecord],
    policy: Optional[DiagnosticPolicy] = None,
    now: Optional[datetime] = None,
) -> List[ActionItem]:
    return DiagnosticEngine(videos, policy=policy, now=now).generate()
