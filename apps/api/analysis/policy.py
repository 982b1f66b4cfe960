"""
Injectable thresholds and weights for the opportunity pipeline.

Every pure pipeline function accepts one of these structs and falls back to
the defaults below, so scoring policy can be swapped without code edits.
"""

from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field


def _level_map(high: float, medium: float, low: float) -> Dict[str, float]:
    return {"high": high, "medium": medium, "low": low}


class ScoringPolicy(BaseModel):
    """
    score = round(impact*w_i + confidence*w_c + effort_inverse*w_e, 4)

    Rounding to four places keeps the default weights exact under float error;
    with custom weights the score is the weighted sum to that precision.
    """

    model_config = ConfigDict(frozen=True)

    impact_weights: Dict[str, float] = Field(default_factory=lambda: _level_map(1.0, 0.6, 0.3))
    confidence_weights: Dict[str, float] = Field(default_factory=lambda: _level_map(1.0, 0.6, 0.3))
    effort_inverse: Dict[str, float] = Field(default_factory=lambda: _level_map(0.3, 0.6, 1.0))
    impact_weight: float = 0.4
    confidence_weight: float = 0.3
    effort_weight: float = 0.3
    unknown_level_weight: float = 0.5


class DiagnosticPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    window_days: int = 30
    cadence_drop_ratio: float = 0.7
    min_format_samples: int = 5
    min_replication_samples: int = 10
    min_bottom_cohort: int = 5
    cohort_fraction: float = 0.2
    ctr_gap_ratio: float = 0.8
    replication_lift: float = 1.5
    replication_batch: int = 5
    retention_gap_ratio: float = 0.85
    bottom_views_ratio: float = 0.4
    bottom_low_ctr: float = 0.02
    bottom_low_retention: float = 0.3
    balance_lift: float = 1.5
    balance_low_share: float = 0.4
    balance_high_share: float = 0.6
    mismatch_min_retention: float = 0.5
    mismatch_max_ctr: float = 0.04
    mismatch_min_impressions: int = 1000
    refresh_min_impressions: int = 5000
    refresh_max_ctr: float = 0.03
    refresh_ctr_benchmark: float = 0.05
    refresh_top_videos: int = 3
    max_items: int = 10


class GapPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    format_competitor_share: float = 0.10
    format_client_share: float = 0.05
    format_gap_multiplier: float = 3.0
    pattern_competitor_share: float = 0.20
    pattern_client_share: float = 0.10
    pattern_gap_multiplier: float = 2.5
    shorts_competitor_share: float = 0.25
    shorts_client_share: float = 0.10
    longform_competitor_share: float = 0.50
    longform_client_share: float = 0.20
    content_type_gap_multiplier: float = 2.0
    frequency_window_days: int = 30
    frequency_min_competitor_uploads: float = 2.0
    frequency_client_ratio: float = 0.6
    frequency_gap_multiplier: float = 1.5
    series_prefix_tokens: int = 3
    series_min_prefix_length: int = 6
    series_min_occurrences: int = 3
    series_client_floor: int = 2
    series_min_competitor_videos: int = 3
    series_high_performing_views: float = 10000
    series_gap_divisor: float = 5.0
    topic_min_competitor_videos: int = 3
    topic_min_token_length: int = 3
    topic_gap_divisor: float = 10.0
    topic_limit: int = 8
    impact_high_views: float = 50000
    impact_medium_views: float = 10000
    top_examples: int = 5
    topic_top_examples: int = 3
    # (sample size for "high", sample size for "medium"); below both is "low"
    confidence_cutoffs: Dict[str, Tuple[int, int]] = Field(
        default_factory=lambda: {
            "format": (10, 5),
            "pattern": (15, 8),
            "content_type": (10, 0),
            "frequency": (0, 0),
            "series": (3, 0),
            "topic": (5, 0),
        }
    )
    effort_by_type: Dict[str, str] = Field(
        default_factory=lambda: {
            "format": "medium",
            "pattern": "low",
            "content_type": "high",
            "frequency": "high",
            "series": "high",
            "topic": "medium",
        }
    )


class FeedbackPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    match_days_before: int = 7
    match_days_after: int = 60
    title_weight: float = 0.5
    type_match_bonus: float = 0.2
    date_weight: float = 0.3
    date_decay_days: float = 60.0
    min_match_score: float = 0.05
    match_limit: int = 5
    min_token_length: int = 3
    baseline_days: int = 30
    after_window_days: int = 30


class PipelinePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    scoring: ScoringPolicy = Field(default_factory=ScoringPolicy)
    diagnostics: DiagnosticPolicy = Field(default_factory=DiagnosticPolicy)
    gaps: GapPolicy = Field(default_factory=GapPolicy)
    feedback: FeedbackPolicy = Field(default_factory=FeedbackPolicy)


DEFAULT_POLICY = PipelinePolicy()
