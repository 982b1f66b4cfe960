"""
Intelligence router.

Thin HTTP wrappers over the pure pipeline: callers post already-fetched
client/competitor rows and get back action items, gaps or ranked
opportunities.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from analysis.metrics import generate_action_items
from analysis.models import (
    ActionItem,
    AuditOpportunities,
    CompetitorInsight,
    CompetitorOutlier,
    CompetitorSeries,
    CompetitorVideoRecord,
    Gap,
    GapReport,
    OpportunityReport,
    VideoRecord,
)
from analysis.normalize import normalize_video_rows
from analysis.policy import PipelinePolicy
from config import build_pipeline_policy
from services.gap_detection import detect_all_gaps
from services.opportunities import synthesize_opportunities
from services.outliers import detect_outlier_videos, pair_outliers_with_insights

router = APIRouter()
logger = logging.getLogger(__name__)


class GapsRequest(BaseModel):
    client_videos: List[VideoRecord] = Field(default_factory=list)
    competitor_videos: List[CompetitorVideoRecord] = Field(default_factory=list)
    competitor_channel_count: Optional[int] = Field(default=None, ge=0)
    competitor_series: List[CompetitorSeries] = Field(default_factory=list)
    now: Optional[datetime] = None


class ActionItemsRequest(BaseModel):
    videos: List[VideoRecord] = Field(default_factory=list)
    # Raw analytics export rows; normalized and appended to ``videos``.
    rows: Optional[List[Dict[str, Any]]] = None
    now: Optional[datetime] = None


class ActionItemsResponse(BaseModel):
    action_items: List[ActionItem]
    count: int
    video_count: int
    channel_total_subscribers: int = 0


class OpportunitiesRequest(BaseModel):
    videos: List[VideoRecord] = Field(default_factory=list)
    outliers: Optional[List[CompetitorOutlier]] = None
    competitor_videos: Optional[List[CompetitorVideoRecord]] = None
    competitor_series: List[CompetitorSeries] = Field(default_factory=list)
    insights: Dict[str, CompetitorInsight] = Field(default_factory=dict)
    audit: Optional[AuditOpportunities] = None
    gaps: Optional[List[Gap]] = None
    min_outlier_multiplier: float = Field(default=2.5, gt=0)
    now: Optional[datetime] = None


@router.post("/gaps", response_model=GapReport)
async def detect_gaps(
    request: GapsRequest,
    policy: PipelinePolicy = Depends(build_pipeline_policy),
):
    return detect_all_gaps(
        request.client_videos,
        request.competitor_videos,
        competitor_channel_count=request.competitor_channel_count,
        competitor_series=request.competitor_series,
        policy=policy,
        now=request.now,
    )


@router.post("/action-items", response_model=ActionItemsResponse)
async def action_items(
    request: ActionItemsRequest,
    policy: PipelinePolicy = Depends(build_pipeline_policy),
):
    videos = list(request.videos)
    subscribers = 0
    if request.rows:
        normalized, subscribers = normalize_video_rows(request.rows)
        videos.extend(normalized)

    items = generate_action_items(videos, policy=policy.diagnostics, now=request.now)
    return ActionItemsResponse(
        action_items=items,
        count=len(items),
        video_count=len(videos),
        channel_total_subscribers=subscribers,
    )


@router.post("/opportunities", response_model=OpportunityReport)
async def opportunities(
    request: OpportunitiesRequest,
    policy: PipelinePolicy = Depends(build_pipeline_policy),
):
    """
    Rank opportunities across every supplied source.

    When ``competitor_videos`` are posted without precomputed ``outliers`` or
    ``gaps``, both are derived from them before ranking.
    """
    outliers = request.outliers
    gaps = request.gaps
    if request.competitor_videos:
        if outliers is None:
            outliers = detect_outlier_videos(
                request.competitor_videos,
                min_multiplier=request.min_outlier_multiplier,
            )
            logger.info("Derived %s outliers from %s competitor videos", len(outliers), len(request.competitor_videos))
        if gaps is None:
            report = detect_all_gaps(
                request.videos,
                request.competitor_videos,
                competitor_series=request.competitor_series,
                policy=policy,
                now=request.now,
            )
            gaps = report.gaps
            logger.info("Derived %s gaps from competitor videos", len(gaps))

    if outliers and request.insights:
        outliers = pair_outliers_with_insights(outliers, request.insights)

    return synthesize_opportunities(
        request.videos,
        outliers=outliers,
        audit=request.audit,
        gaps=gaps,
        policy=policy,
        now=request.now,
    )
