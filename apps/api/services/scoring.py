"""Impact / confidence / effort scoring shared by gaps and opportunities."""

from typing import Optional

from analysis.policy import DEFAULT_POLICY, ScoringPolicy

LEVELS = ("high", "medium", "low")


def coerce_level(value: Optional[str], default: str = "medium") -> str:
    text = str(value or "").strip().lower()
    return text if text in LEVELS else default


def compute_score(
    impact: str,
    confidence: str,
    effort: str,
    policy: Optional[ScoringPolicy] = None,
) -> float:
    policy = policy or DEFAULT_POLICY.scoring
    fallback = policy.unknown_level_weight
    impact_w = policy.impact_weights.get(impact, fallback)
    confidence_w = policy.confidence_weights.get(confidence, fallback)
    effort_inv = policy.effort_inverse.get(effort, fallback)
    score = (
        impact_w * policy.impact_weight
        + confidence_w * policy.confidence_weight
        + effort_inv * policy.effort_weight
    )
    return round(score, 4)
