from datetime import datetime, timezone

import pytest

from analysis.models import (
    ActionItem,
    AuditContentGap,
    AuditGrowthLever,
    AuditOpportunities,
    CompetitorInsight,
    CompetitorOutlier,
    CompetitorVideoRecord,
    DiagnosticItem,
    Gap,
    GapEvidence,
    ImpactEstimate,
    VideoRecord,
)
from analysis.policy import ScoringPolicy
from services.opportunities import (
    competitor_items,
    normalize_diagnostic,
    normalize_item,
    score_and_rank,
    synthesize_opportunities,
)
from services.outliers import detect_outlier_videos, pair_outliers_with_insights
from services.scoring import coerce_level, compute_score

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)
WEIGHTS = {"high": 1.0, "medium": 0.6, "low": 0.3}
EFFORT_INVERSE = {"low": 1.0, "medium": 0.6, "high": 0.3}


def _outlier(video_id="abc", score=6.0, insight=None, **overrides):
    data = {
        "id": video_id,
        "title": "I grew 100 tomatoes",
        "view_count": 250000,
        "channel": {"name": "Rival Gardens"},
        "outlier_score": score,
        "video_type": "long",
        "insight": insight,
    }
    data.update(overrides)
    return CompetitorOutlier(**data)


def _audit():
    return AuditOpportunities(
        content_gaps=[
            AuditContentGap(gap="No beginner series", suggested_action="Start one", evidence="0 beginner videos",
                            format="long_form", potential_impact="HUGE"),
            AuditContentGap(gap="No Shorts", suggested_action="Clip highlights", evidence="0 Shorts",
                            format="short_form", potential_impact="medium"),
        ],
        growth_levers=[
            AuditGrowthLever(lever="Thumbnails", current_state="text heavy", target_state="one focal face",
                             evidence="CTR 2%", format="both", priority="high"),
        ],
    )


def _gap():
    return Gap(
        id="type_shorts_missing",
        type="content_type",
        type_label="Content Type Gap",
        title="Competitors invest in Shorts and you don't",
        description="40% of competitor content is Shorts",
        action="Start publishing Shorts.",
        evidence=GapEvidence(competitor_stat="4 Shorts (40%)", client_stat="0 Shorts (0%)"),
        gap_size=0.8,
        impact="low",
        confidence="low",
        effort="high",
    )


@pytest.mark.parametrize("impact", ["high", "medium", "low"])
@pytest.mark.parametrize("confidence", ["high", "medium", "low"])
@pytest.mark.parametrize("effort", ["high", "medium", "low"])
def test_score_is_exact_weighted_sum(impact, confidence, effort):
    expected = WEIGHTS[impact] * 0.4 + WEIGHTS[confidence] * 0.3 + EFFORT_INVERSE[effort] * 0.3
    score = compute_score(impact, confidence, effort)
    assert score == pytest.approx(expected, abs=1e-4)
    assert 0.0 <= score <= 1.0


def test_unknown_labels_use_fallback_weight():
    assert compute_score("huge", "?", "none") == pytest.approx(0.5)


def test_scoring_weights_are_injectable():
    policy = ScoringPolicy(impact_weight=1.0, confidence_weight=0.0, effort_weight=0.0)
    assert compute_score("low", "high", "low", policy) == pytest.approx(0.3)


def test_custom_weights_round_to_four_places():
    third = 1 / 3
    policy = ScoringPolicy(impact_weight=third, confidence_weight=third, effort_weight=third)
    score = compute_score("high", "medium", "low", policy)
    assert score == round((1.0 + 0.6 + 1.0) * third, 4)
    assert score == pytest.approx(0.8667)


def test_coerce_level():
    assert coerce_level(" HIGH ") == "high"
    assert coerce_level("huge") == "medium"
    assert coerce_level(None, default="low") == "low"


def test_diagnostic_normalization():
    item = ActionItem(
        key="refresh_high_impression",
        priority="high",
        title="Refresh Thumbnails",
        description="4 videos with 1,200 potential missed views",
        action="Update thumbnails",
        reason="...",
        impact=ImpactEstimate(views_per_month=1200, percent_increase=10),
        content_type="short",
    )
    opp = normalize_diagnostic(DiagnosticItem(position=3, action_item=item))

    assert opp.id == "diag-3"
    assert opp.source == "diagnostics"
    assert opp.source_label == "Diagnostic Engine"
    assert opp.evidence == item.description
    assert (opp.impact, opp.confidence, opp.effort) == ("high", "high", "low")
    assert opp.format == "short"
    assert opp.raw_data["key"] == "refresh_high_impression"


def test_outliers_without_insight_are_dropped():
    outliers = [_outlier("a"), _outlier("b", insight=CompetitorInsight(replicability="high"))]
    items = competitor_items(outliers)
    assert [item.outlier.id for item in items] == ["b"]


def test_competitor_normalization():
    insight = CompetitorInsight(
        applicable_tactics=["Number in title", "Time-lapse payoff"],
        why_it_worked="Clear promise.",
        replicability="high",
    )
    opp = normalize_item(competitor_items([_outlier(insight=insight)])[0])

    assert opp.id == "comp-abc"
    assert opp.title == 'Replicate: "I grew 100 tomatoes"'
    assert opp.action == "Number in title; Time-lapse payoff"
    assert opp.evidence == "Rival Gardens: 250,000 views (6x channel avg). Clear promise."
    assert (opp.impact, opp.confidence, opp.effort) == ("high", "high", "low")
    assert opp.raw_data["insight"]["replicability"] == "high"


def test_camel_case_insight_is_read():
    outlier = CompetitorOutlier.model_validate(
        {
            "id": "abc",
            "title": "I grew 100 tomatoes",
            "viewCount": 250000,
            "channel": "Rival Gardens",
            "outlierScore": 6.0,
            "insight": {
                "applicableTactics": ["Hook early"],
                "contentAngle": "Underdog",
                "whyItWorked": "Big promise.",
                "replicability": "high",
            },
        }
    )

    opp = normalize_item(competitor_items([outlier])[0])

    assert opp.action == "Hook early"
    assert opp.evidence == "Rival Gardens: 250,000 views (6x channel avg). Big promise."
    assert opp.confidence == "high"


def test_competitor_action_falls_back():
    angle = normalize_item(competitor_items([_outlier(score=3.2, insight=CompetitorInsight(content_angle="Underdog"))])[0])
    assert angle.action == "Underdog"
    assert (angle.impact, angle.confidence, angle.effort) == ("medium", "low", "medium")

    bare = normalize_item(competitor_items([_outlier(score=1.0, insight=CompetitorInsight())])[0])
    assert bare.action == "Study and replicate this format"
    assert bare.impact == "low"


def test_audit_items_normalize_with_coerced_levels():
    report = synthesize_opportunities([], audit=_audit(), now=NOW)
    by_id = {opp.id: opp for opp in report.opportunities}

    assert set(by_id) == {"audit-gap-0", "audit-gap-1", "audit-lever-0"}
    assert by_id["audit-gap-0"].impact == "medium"
    assert by_id["audit-gap-0"].format == "long"
    assert by_id["audit-gap-1"].format == "short"
    assert by_id["audit-lever-0"].format == "both"
    assert by_id["audit-lever-0"].action == 'Move from: "text heavy" to: "one focal face"'
    assert by_id["audit-lever-0"].source_label == "Channel Audit"


def test_gap_becomes_competitor_opportunity():
    report = synthesize_opportunities([], gaps=[_gap()], now=NOW)
    opp = report.opportunities[0]

    assert opp.id == "gap-type_shorts_missing"
    assert opp.source == "competitor"
    assert opp.format == "short"
    assert opp.score == pytest.approx(0.3 * 0.4 + 0.3 * 0.3 + 0.3 * 0.3)
    assert report.sources.competitor.count == 1
    assert report.sources.competitor.available is True


def test_ties_keep_insertion_order():
    report = synthesize_opportunities([], audit=_audit(), now=NOW)
    ids = [opp.id for opp in report.opportunities]
    # lever has high impact; both content gaps tie at medium/medium/medium
    assert ids == ["audit-lever-0", "audit-gap-0", "audit-gap-1"]


def test_score_and_rank_sorts_descending():
    low = normalize_item(competitor_items([_outlier("x", score=1.0, insight=CompetitorInsight())])[0])
    high = normalize_item(competitor_items([_outlier("y", score=9.0, insight=CompetitorInsight(replicability="high"))])[0])
    ranked = score_and_rank([low, high])
    assert [opp.id for opp in ranked] == ["comp-y", "comp-x"]


def test_missing_sources_are_reported_unavailable():
    report = synthesize_opportunities(None, outliers=None, audit=None, now=NOW)

    assert report.opportunities == []
    assert report.sources.diagnostics.available is False
    assert report.sources.competitor.available is False
    assert report.sources.audit.available is False


def test_diagnostics_available_even_without_items():
    videos = [VideoRecord(title="One video", views=100)]
    report = synthesize_opportunities(videos, now=NOW)
    assert report.sources.diagnostics.available is True
    assert report.sources.diagnostics.count == 0


def test_synthesis_is_idempotent():
    insight = CompetitorInsight(applicable_tactics=["Hook"], replicability="medium")
    kwargs = dict(outliers=[_outlier(insight=insight)], audit=_audit(), gaps=[_gap()], now=NOW)
    first = synthesize_opportunities([], **kwargs).model_dump_json()
    second = synthesize_opportunities([], **kwargs).model_dump_json()
    assert first == second


def test_detect_outliers_against_channel_mean():
    videos = [CompetitorVideoRecord(video_id="big", title="Viral", views=10000, channel="A")]
    videos += [CompetitorVideoRecord(video_id=f"s{i}", title=f"Normal {i}", views=1000, channel="A") for i in range(4)]
    videos.append(CompetitorVideoRecord(video_id="solo", title="Only one", views=50000, channel="B"))

    outliers = detect_outlier_videos(videos)

    assert [o.id for o in outliers] == ["big"]
    assert outliers[0].outlier_score == pytest.approx(3.6)
    assert outliers[0].channel_avg_views == 2800


def test_pair_outliers_with_insights():
    insight = CompetitorInsight(replicability="high")
    paired = pair_outliers_with_insights([_outlier("a"), _outlier("b")], {"b": insight})
    assert paired[0].insight is None
    assert paired[1].insight == insight
