"""
Analysis models and schemas.

Every record that crosses the pipeline boundary is a pydantic model. Rate
fields (CTR, retention) are fractions in [0, 1]; raw exports that use the
0-100 scale must go through ``analysis.normalize`` first.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AfterValidator, AliasGenerator, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

Level = Literal["high", "medium", "low"]
VideoFormat = Literal["short", "long"]
GapType = Literal["format", "pattern", "content_type", "frequency", "series", "topic"]
OpportunitySource = Literal["diagnostics", "competitor", "audit"]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _channel_name(value: Any) -> Any:
    # Collaborators send either a plain name or a joined channel row.
    if isinstance(value, dict):
        return value.get("name")
    return value


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
ChannelName = Annotated[Optional[str], BeforeValidator(_channel_name)]

# Collaborator payloads may arrive camelCased; output stays snake_case.
ACCEPT_CAMEL = ConfigDict(alias_generator=AliasGenerator(validation_alias=to_camel), populate_by_name=True)


# ─── Video history ──────────────────────────────────────────────────────────


class VideoRecord(BaseModel):
    """Immutable performance snapshot of one published video."""

    model_config = ConfigDict(frozen=True)

    video_id: Optional[str] = None
    title: str = ""
    publish_date: Optional[UtcDatetime] = None
    views: int = Field(default=0, ge=0)
    ctr: float = Field(default=0.0, ge=0.0, le=1.0)
    retention: float = Field(default=0.0, ge=0.0, le=1.0)
    impressions: int = Field(default=0, ge=0)
    subscribers: int = 0  # subscriber gain attributed to the video
    duration: float = Field(default=0.0, ge=0.0)
    format: VideoFormat = "long"
    channel: ChannelName = None


class CompetitorVideoRecord(VideoRecord):
    """Competitor video with the classification collaborators may have stored."""

    detected_format: Optional[str] = None
    title_patterns: Optional[List[str]] = None


# ─── Diagnostic action items ────────────────────────────────────────────────


class VideoExample(BaseModel):
    """A video cited as evidence for an action item."""
    label: str
    title: str
    views: int
    ctr: float
    retention: float
    publish_date: Optional[datetime] = None


class ImpactEstimate(BaseModel):
    model_config = ACCEPT_CAMEL

    views_per_month: float = 0.0
    percent_increase: Optional[int] = None


class ActionItem(BaseModel):
    """Specific recommendation produced by a diagnostic detector."""
    key: str
    priority: Level
    title: str
    description: str
    action: str
    reason: str
    impact: Optional[ImpactEstimate] = None
    content_type: Optional[VideoFormat] = None
    examples: List[VideoExample] = Field(default_factory=list)


# ─── Competitor gaps ────────────────────────────────────────────────────────


class GapExample(BaseModel):
    title: str
    views: float
    channel: str = "-"


class GapEvidence(BaseModel):
    competitor_stat: str
    client_stat: str
    top_examples: List[GapExample] = Field(default_factory=list)


class Gap(BaseModel):
    """One evidence-backed difference between the client and competitors."""
    id: str
    type: GapType
    type_label: str
    title: str
    description: str
    action: str
    evidence: GapEvidence
    gap_size: float = Field(ge=0.0, le=1.0)
    impact: Level
    confidence: Level
    effort: Level
    score: float = 0.0


class GapSummary(BaseModel):
    total: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    top_gap_type: Optional[str] = None
    competitor_count: int = 0
    video_count: int = 0


class GapReport(BaseModel):
    gaps: List[Gap] = Field(default_factory=list)
    summary: GapSummary = Field(default_factory=GapSummary)
    no_videos: bool = False
    no_competitors: bool = False


class CompetitorSeries(BaseModel):
    """A recurring competitor series; ``performance_trend`` is classified upstream."""
    name: str
    video_count: int = 0
    avg_views: float = 0.0
    performance_trend: Optional[str] = None
    channel: ChannelName = None


# ─── External intelligence sources ──────────────────────────────────────────


class CompetitorInsight(BaseModel):
    model_config = ACCEPT_CAMEL

    applicable_tactics: List[str] = Field(default_factory=list)
    content_angle: Optional[str] = None
    why_it_worked: Optional[str] = None
    replicability: Optional[str] = None


class CompetitorOutlier(BaseModel):
    """Competitor video that beat its channel average, optionally with an insight."""

    model_config = ACCEPT_CAMEL

    id: str
    title: str
    view_count: int = 0
    channel: ChannelName = None
    outlier_score: Optional[float] = None
    channel_avg_views: Optional[int] = None
    video_type: Optional[VideoFormat] = None
    insight: Optional[CompetitorInsight] = None


class AuditContentGap(BaseModel):
    gap: str
    suggested_action: str = ""
    evidence: str = ""
    format: Optional[str] = None
    potential_impact: Optional[str] = None


class AuditGrowthLever(BaseModel):
    lever: str
    current_state: str = ""
    target_state: str = ""
    evidence: str = ""
    format: Optional[str] = None
    priority: Optional[str] = None


class AuditOpportunities(BaseModel):
    content_gaps: List[AuditContentGap] = Field(default_factory=list)
    growth_levers: List[AuditGrowthLever] = Field(default_factory=list)


# Source-native shapes, one variant per shape, each with its own normalizer.


class DiagnosticItem(BaseModel):
    kind: Literal["diagnostic"] = "diagnostic"
    position: int
    action_item: ActionItem


class CompetitorItem(BaseModel):
    kind: Literal["competitor_outlier"] = "competitor_outlier"
    outlier: CompetitorOutlier
    insight: CompetitorInsight


class GapItem(BaseModel):
    kind: Literal["competitor_gap"] = "competitor_gap"
    gap: Gap


class AuditGapItem(BaseModel):
    kind: Literal["audit_gap"] = "audit_gap"
    position: int
    content_gap: AuditContentGap


class AuditLeverItem(BaseModel):
    kind: Literal["audit_lever"] = "audit_lever"
    position: int
    growth_lever: AuditGrowthLever


SourceItem = Annotated[
    Union[DiagnosticItem, CompetitorItem, GapItem, AuditGapItem, AuditLeverItem],
    Field(discriminator="kind"),
]


# ─── Normalized opportunities ───────────────────────────────────────────────


class Opportunity(BaseModel):
    id: str
    title: str
    source: OpportunitySource
    source_label: str
    action: str
    evidence: str
    format: Optional[Literal["short", "long", "both"]] = None
    impact: Level
    confidence: Level
    effort: Level
    score: float = 0.0
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class SourceAvailability(BaseModel):
    count: int = 0
    available: bool = False


class OpportunitySources(BaseModel):
    diagnostics: SourceAvailability = Field(default_factory=SourceAvailability)
    competitor: SourceAvailability = Field(default_factory=SourceAvailability)
    audit: SourceAvailability = Field(default_factory=SourceAvailability)


class OpportunityReport(BaseModel):
    opportunities: List[Opportunity] = Field(default_factory=list)
    sources: OpportunitySources = Field(default_factory=OpportunitySources)


# ─── Briefs and feedback ────────────────────────────────────────────────────


class BaselineMetrics(BaseModel):
    views: float = 0.0
    ctr: float = 0.0
    retention: float = 0.0
    count: int = 0


class ActualMetrics(BaseModel):
    views: float = 0.0
    ctr: float = 0.0
    retention: float = 0.0
    title: str = ""


class MetricDelta(BaseModel):
    views: Optional[float] = None
    ctr: Optional[float] = None
    retention: Optional[float] = None


class BriefOutcome(BaseModel):
    baseline: BaselineMetrics
    actual: ActualMetrics
    predicted: Optional[ImpactEstimate] = None
    delta: MetricDelta
    outperformed: bool
    exceeded_prediction: Optional[bool] = None
    computed_at: datetime


class BriefData(BaseModel):
    model_config = ACCEPT_CAMEL

    content_type: Optional[str] = None
    format: Optional[str] = None
    impact: Optional[ImpactEstimate] = None


class Brief(BaseModel):
    """Externally persisted recommendation; only the fields the core reads."""

    model_config = ACCEPT_CAMEL

    id: Optional[str] = None
    title: str = ""
    status: Optional[str] = None
    source_type: Optional[str] = None
    created_at: Optional[UtcDatetime] = None
    linked_video_id: Optional[str] = None
    brief_data: BriefData = Field(default_factory=BriefData)
    outcome_data: Optional[BriefOutcome] = None


class VideoMatch(BaseModel):
    video_id: Optional[str] = None
    title: str
    views: int
    ctr: float
    retention: float
    format: VideoFormat
    publish_date: Optional[datetime] = None
    confidence: float
    title_score: float


class ChannelWindow(BaseModel):
    period: str
    video_count: int
    avg_views: float
    avg_ctr: float
    avg_retention: float
    avg_subscribers: float


class AccuracySummary(BaseModel):
    total: int
    outperformed: int
    outperformed_pct: int
    exceeded_prediction: int
    exceeded_prediction_pct: Optional[int] = None


class SourceTypeBreakdown(BaseModel):
    total: int = 0
    outperformed: int = 0


class AggregateFeedback(BaseModel):
    channel_before: Optional[ChannelWindow] = None
    channel_after: Optional[ChannelWindow] = None
    accuracy: Optional[AccuracySummary] = None
    by_source_type: Dict[str, SourceTypeBreakdown] = Field(default_factory=dict)
