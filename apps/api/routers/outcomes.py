"""Brief outcome router for match suggestions and recommendation feedback."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from analysis.models import AggregateFeedback, Brief, BriefOutcome, VideoMatch, VideoRecord
from analysis.policy import PipelinePolicy
from config import build_pipeline_policy
from services.outcomes import (
    compute_aggregate_feedback,
    compute_brief_outcome,
    suggest_video_matches,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class MatchRequest(BaseModel):
    brief: Brief
    videos: List[VideoRecord] = Field(default_factory=list)
    now: Optional[datetime] = None


class MatchResponse(BaseModel):
    matches: List[VideoMatch]


class BriefOutcomeRequest(BaseModel):
    brief: Brief
    videos: List[VideoRecord] = Field(default_factory=list)
    linked_video_id: Optional[str] = None
    now: Optional[datetime] = None


class AggregateRequest(BaseModel):
    briefs: List[Brief] = Field(default_factory=list)
    videos: List[VideoRecord] = Field(default_factory=list)
    now: Optional[datetime] = None


@router.post("/matches", response_model=MatchResponse)
async def brief_matches(
    request: MatchRequest,
    policy: PipelinePolicy = Depends(build_pipeline_policy),
):
    matches = suggest_video_matches(request.brief, request.videos, policy=policy.feedback, now=request.now)
    return MatchResponse(matches=matches)


@router.post("/brief", response_model=BriefOutcome)
async def brief_outcome(
    request: BriefOutcomeRequest,
    policy: PipelinePolicy = Depends(build_pipeline_policy),
):
    video_id = request.linked_video_id or request.brief.linked_video_id
    linked = next((v for v in request.videos if video_id and v.video_id == video_id), None)
    if linked is None:
        logger.info("Brief %s: linked video %r not in supplied history", request.brief.id, video_id)
        raise HTTPException(status_code=404, detail="Linked video not found in supplied history.")

    return compute_brief_outcome(
        request.brief,
        linked,
        request.videos,
        policy=policy.feedback,
        now=request.now,
    )


@router.post("/aggregate", response_model=AggregateFeedback)
async def aggregate_feedback(
    request: AggregateRequest,
    policy: PipelinePolicy = Depends(build_pipeline_policy),
):
    return compute_aggregate_feedback(request.briefs, request.videos, policy=policy.feedback, now=request.now)
