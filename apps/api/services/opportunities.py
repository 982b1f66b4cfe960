"""
Opportunity synthesis.

Merges diagnostic action items, competitor outliers (with insights), competitor
gaps and audit findings into one ranked ``Opportunity`` list. Each source shape
is wrapped in its own tagged variant and mapped by exactly one normalizer.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from analysis.metrics import generate_action_items
from analysis.models import (
    ActionItem,
    AuditGapItem,
    AuditLeverItem,
    AuditOpportunities,
    CompetitorItem,
    CompetitorOutlier,
    DiagnosticItem,
    Gap,
    GapItem,
    Opportunity,
    OpportunityReport,
    OpportunitySources,
    SourceAvailability,
    SourceItem,
    VideoRecord,
)
from analysis.policy import DEFAULT_POLICY, PipelinePolicy, ScoringPolicy
from services.scoring import coerce_level, compute_score

logger = logging.getLogger(__name__)

SOURCE_LABELS = {
    "diagnostic": "Diagnostic Engine",
    "competitor_outlier": "Competitor Analysis",
    "competitor_gap": "Competitor Gap Analysis",
    "audit": "Channel Audit",
}

_AUDIT_FORMATS = {"long_form": "long", "short_form": "short", "both": "both"}
_GAP_FORMATS = {"type_shorts_missing": "short", "type_longform_missing": "long"}


def _audit_format(value: Optional[str]) -> Optional[str]:
    return _AUDIT_FORMATS.get(str(value or "").strip().lower())


def _outlier_impact(outlier_score: Optional[float]) -> str:
    score = outlier_score or 0.0
    if score >= 5:
        return "high"
    if score >= 3:
        return "medium"
    return "low"


# ─── Per-variant normalizers ────────────────────────────────────────────────


def normalize_diagnostic(item: DiagnosticItem) -> Opportunity:
    action_item = item.action_item
    return Opportunity(
        id=f"diag-{item.position}",
        title=action_item.title,
        source="diagnostics",
        source_label=SOURCE_LABELS["diagnostic"],
        action=action_item.action,
        evidence=action_item.description,
        format=action_item.content_type,
        impact=action_item.priority,
        confidence="high" if action_item.impact is not None else "medium",
        effort="low" if action_item.priority == "high" else "medium",
        raw_data=action_item.model_dump(mode="json"),
    )


def normalize_competitor_outlier(item: CompetitorItem) -> Opportunity:
    outlier, insight = item.outlier, item.insight
    replicability = coerce_level(insight.replicability, default="low")

    tactics = [tactic for tactic in insight.applicable_tactics if tactic]
    action = "; ".join(tactics) or insight.content_angle or "Study and replicate this format"

    score_text = f"{outlier.outlier_score:g}" if outlier.outlier_score is not None else "?"
    evidence = (
        f"{outlier.channel or 'Unknown channel'}: {outlier.view_count:,} views "
        f"({score_text}x channel avg). {insight.why_it_worked or ''}"
    ).strip()

    return Opportunity(
        id=f"comp-{outlier.id}",
        title=f'Replicate: "{outlier.title}"',
        source="competitor",
        source_label=SOURCE_LABELS["competitor_outlier"],
        action=action,
        evidence=evidence,
        format="short" if outlier.video_type == "short" else "long",
        impact=_outlier_impact(outlier.outlier_score),
        confidence=replicability,
        effort="low" if replicability == "high" else "medium",
        raw_data={
            "outlier": outlier.model_dump(mode="json", exclude={"insight"}),
            "insight": insight.model_dump(mode="json"),
        },
    )


def normalize_gap(item: GapItem) -> Opportunity:
    gap = item.gap
    evidence = f"Competitors: {gap.evidence.competitor_stat}. You: {gap.evidence.client_stat}."
    return Opportunity(
        id=f"gap-{gap.id}",
        title=gap.title,
        source="competitor",
        source_label=SOURCE_LABELS["competitor_gap"],
        action=gap.action,
        evidence=evidence,
        format=_GAP_FORMATS.get(gap.id),
        impact=gap.impact,
        confidence=gap.confidence,
        effort=gap.effort,
        raw_data=gap.model_dump(mode="json"),
    )


def normalize_audit_gap(item: AuditGapItem) -> Opportunity:
    gap = item.content_gap
    return Opportunity(
        id=f"audit-gap-{item.position}",
        title=gap.gap,
        source="audit",
        source_label=SOURCE_LABELS["audit"],
        action=gap.suggested_action,
        evidence=gap.evidence,
        format=_audit_format(gap.format),
        impact=coerce_level(gap.potential_impact),
        confidence="medium",
        effort="medium",
        raw_data=gap.model_dump(mode="json"),
    )


def normalize_audit_lever(item: AuditLeverItem) -> Opportunity:
    lever = item.growth_lever
    return Opportunity(
        id=f"audit-lever-{item.position}",
        title=lever.lever,
        source="audit",
        source_label=SOURCE_LABELS["audit"],
        action=f'Move from: "{lever.current_state}" to: "{lever.target_state}"',
        evidence=lever.evidence,
        format=_audit_format(lever.format),
        impact=coerce_level(lever.priority),
        confidence="medium",
        effort="medium",
        raw_data=lever.model_dump(mode="json"),
    )


_NORMALIZERS: Dict[str, Callable[..., Opportunity]] = {
    "diagnostic": normalize_diagnostic,
    "competitor_outlier": normalize_competitor_outlier,
    "competitor_gap": normalize_gap,
    "audit_gap": normalize_audit_gap,
    "audit_lever": normalize_audit_lever,
}


def normalize_item(item: SourceItem) -> Opportunity:
    return _NORMALIZERS[item.kind](item)


# ─── Source wrapping ────────────────────────────────────────────────────────


def diagnostic_items(action_items: Sequence[ActionItem]) -> List[DiagnosticItem]:
    return [DiagnosticItem(position=i, action_item=item) for i, item in enumerate(action_items)]


def competitor_items(outliers: Optional[Sequence[CompetitorOutlier]]) -> List[CompetitorItem]:
    """Outliers without an insight cannot be normalized and are dropped."""
    items: List[CompetitorItem] = []
    for outlier in outliers or []:
        if outlier.insight is None:
            logger.warning("Dropping competitor outlier %s without insight", outlier.id)
            continue
        items.append(CompetitorItem(outlier=outlier, insight=outlier.insight))
    return items


def gap_items(gaps: Optional[Sequence[Gap]]) -> List[GapItem]:
    return [GapItem(gap=gap) for gap in gaps or []]


def audit_items(audit: Optional[AuditOpportunities]) -> List[SourceItem]:
    if audit is None:
        return []
    items: List[SourceItem] = [
        AuditGapItem(position=i, content_gap=gap) for i, gap in enumerate(audit.content_gaps)
    ]
    items.extend(
        AuditLeverItem(position=i, growth_lever=lever) for i, lever in enumerate(audit.growth_levers)
    )
    return items


# ─── Scoring ────────────────────────────────────────────────────────────────


def score_and_rank(
    opportunities: Sequence[Opportunity],
    policy: Optional[ScoringPolicy] = None,
) -> List[Opportunity]:
    """Score every opportunity and sort descending; ties keep insertion order."""
    scored = [
        opp.model_copy(update={"score": compute_score(opp.impact, opp.confidence, opp.effort, policy)})
        for opp in opportunities
    ]
    return sorted(scored, key=lambda opp: -opp.score)


def synthesize_opportunities(
    videos: Optional[Sequence[VideoRecord]],
    outliers: Optional[Sequence[CompetitorOutlier]] = None,
    audit: Optional[AuditOpportunities] = None,
    gaps: Optional[Sequence[Gap]] = None,
    policy: Optional[PipelinePolicy] = None,
    now: Optional[datetime] = None,
) -> OpportunityReport:
    """
    Build the ranked opportunity list from every available source.

    ``None`` or empty inputs mark a source as unavailable; the remaining
    sources are still scored.
    """
    policy = policy or DEFAULT_POLICY
    videos = list(videos or [])

    action_items = generate_action_items(videos, policy=policy.diagnostics, now=now)
    diagnostic = [normalize_item(item) for item in diagnostic_items(action_items)]
    competitor = [normalize_item(item) for item in competitor_items(outliers)]
    competitor.extend(normalize_item(item) for item in gap_items(gaps))
    audit_ops = [normalize_item(item) for item in audit_items(audit)]

    ranked = score_and_rank(diagnostic + competitor + audit_ops, policy.scoring)
    logger.info(
        "Synthesized %s opportunities (diagnostics=%s competitor=%s audit=%s)",
        len(ranked),
        len(diagnostic),
        len(competitor),
        len(audit_ops),
    )

    return OpportunityReport(
        opportunities=ranked,
        sources=OpportunitySources(
            diagnostics=SourceAvailability(count=len(diagnostic), available=bool(videos)),
            competitor=SourceAvailability(count=len(competitor), available=len(competitor) > 0),
            audit=SourceAvailability(count=len(audit_ops), available=len(audit_ops) > 0),
        ),
    )
