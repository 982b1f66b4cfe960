"""
Application configuration using Pydantic Settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

from analysis.policy import (
    DiagnosticPolicy,
    FeedbackPolicy,
    GapPolicy,
    PipelinePolicy,
    ScoringPolicy,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"

    # Scoring (impact / confidence / effort blend, must sum to 1.0)
    SCORING_IMPACT_WEIGHT: float = 0.4
    SCORING_CONFIDENCE_WEIGHT: float = 0.3
    SCORING_EFFORT_WEIGHT: float = 0.3

    # Pipeline limits
    DIAGNOSTIC_MAX_ACTIONS: int = 10
    TOPIC_GAP_LIMIT: int = 8
    MATCH_LIMIT: int = 5

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()


def validate_scoring_settings() -> None:
    """Fail fast when the scoring blend would push scores outside [0, 1]."""
    weights = {
        "SCORING_IMPACT_WEIGHT": settings.SCORING_IMPACT_WEIGHT,
        "SCORING_CONFIDENCE_WEIGHT": settings.SCORING_CONFIDENCE_WEIGHT,
        "SCORING_EFFORT_WEIGHT": settings.SCORING_EFFORT_WEIGHT,
    }
    negative = [name for name, value in weights.items() if value < 0]
    if negative:
        raise ValueError(f"Scoring weights must be non-negative: {', '.join(negative)}")
    total = sum(weights.values())
    if abs(total - 1.0) > 1e-6:
        raise ValueError(f"Scoring weights must sum to 1.0 (got {total:.4f}).")


def build_pipeline_policy() -> PipelinePolicy:
    """Pipeline policy with the environment-tunable knobs applied over the defaults."""
    return PipelinePolicy(
        scoring=ScoringPolicy(
            impact_weight=settings.SCORING_IMPACT_WEIGHT,
            confidence_weight=settings.SCORING_CONFIDENCE_WEIGHT,
            effort_weight=settings.SCORING_EFFORT_WEIGHT,
        ),
        diagnostics=DiagnosticPolicy(max_items=settings.DIAGNOSTIC_MAX_ACTIONS),
        gaps=GapPolicy(topic_limit=settings.TOPIC_GAP_LIMIT),
        feedback=FeedbackPolicy(match_limit=settings.MATCH_LIMIT),
    )
