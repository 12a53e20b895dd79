# backend/leadintel/routers/lead_pipeline_routes.py
"""
Lead pipeline API.

Ingestion, scoring, status, journey, follow-ups, CRM sync and analytics.
Pipeline errors are mapped to HTTP responses by the app's exception handlers.
"""

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from uuid import UUID

from leadintel.dependencies import get_pipeline
from leadintel.schemas import (
    CRMSyncRequest,
    ExternalCRMSync,
    FollowUpTask,
    JourneyResponse,
    Lead,
    LeadAnalytics,
    LeadCandidate,
    LeadSearchFilters,
    LeadSource,
    LeadStatus,
    LeadStatusUpdate,
    ManualFollowUpCreate,
    ManualFollowUpResponse,
    MatchResult,
    PipelineResult,
    ScoreUpdateRequest,
    ScoreUpdateResponse,
    Task,
    TaskStatus,
    TaskStatusUpdate,
)
from leadintel.services.lead_pipeline import LeadPipeline

router = APIRouter()


# ==================== INGESTION ====================

@router.post("/aggregate", response_model=List[Lead])
async def aggregate_leads(pipeline: LeadPipeline = Depends(get_pipeline)):
    """Pull every configured channel; returns only newly created leads."""
    return await pipeline.aggregate_leads_from_sources()


@router.post("/leads/process", response_model=PipelineResult, status_code=status.HTTP_201_CREATED)
async def process_lead(candidate: LeadCandidate, pipeline: LeadPipeline = Depends(get_pipeline)):
    """Create or merge one candidate and run the task rules."""
    return await pipeline.process_lead_through_pipeline(candidate)


@router.post("/leads/match", response_model=MatchResult)
async def match_lead(candidate: LeadCandidate, pipeline: LeadPipeline = Depends(get_pipeline)):
    """Merge into an existing lead if the identity matches; never creates."""
    return await pipeline.match_and_deduplicate_leads(candidate)


@router.post("/leads/search", response_model=List[LeadCandidate])
async def search_leads(filters: LeadSearchFilters, pipeline: LeadPipeline = Depends(get_pipeline)):
    """Read-only lead intelligence search."""
    return await pipeline.gather_lead_intelligence(filters)


# ==================== LEADS ====================

@router.get("/leads", response_model=List[Lead])
async def list_leads(
    lead_status: Optional[LeadStatus] = Query(None, alias="status"),
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    return await pipeline.list_leads(lead_status)


@router.get("/leads/{lead_id}", response_model=Lead)
async def get_lead(lead_id: UUID, pipeline: LeadPipeline = Depends(get_pipeline)):
    return await pipeline.get_lead(lead_id)


@router.get("/leads/{lead_id}/sources", response_model=List[LeadSource])
async def get_lead_sources(lead_id: UUID, pipeline: LeadPipeline = Depends(get_pipeline)):
    return await pipeline.get_lead_sources(lead_id)


@router.get("/leads/{lead_id}/journey", response_model=JourneyResponse)
async def get_lead_journey(lead_id: UUID, pipeline: LeadPipeline = Depends(get_pipeline)):
    """Ordered journey stages with completion percentage."""
    return await pipeline.get_lead_journey(lead_id)


@router.post("/leads/{lead_id}/score", response_model=ScoreUpdateResponse)
async def update_lead_score(
    lead_id: UUID,
    request: ScoreUpdateRequest,
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    """Apply one activity event to the lead's intent score."""
    update = await pipeline.apply_activity(lead_id, request.activity_type, request.activity_details)
    return ScoreUpdateResponse(
        lead_id=lead_id,
        old_score=update.old_score,
        new_score=update.new_score,
        crossed_high_intent=update.alert_task is not None,
    )


@router.patch("/leads/{lead_id}/status", response_model=Lead)
async def update_lead_status(
    lead_id: UUID,
    request: LeadStatusUpdate,
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    return await pipeline.update_lead_status(lead_id, request.status.value, request.note)


# ==================== FOLLOW-UPS & TASKS ====================

@router.get("/leads/{lead_id}/follow-ups", response_model=List[FollowUpTask])
async def get_follow_ups(lead_id: UUID, pipeline: LeadPipeline = Depends(get_pipeline)):
    return await pipeline.get_lead_follow_up_tasks(lead_id)


@router.post(
    "/leads/{lead_id}/follow-ups",
    response_model=ManualFollowUpResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_follow_up(
    lead_id: UUID,
    request: ManualFollowUpCreate,
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    task, follow_up = await pipeline.create_manual_follow_up_task(lead_id, request)
    return ManualFollowUpResponse(task=task, follow_up=follow_up)


@router.post("/follow-ups/time-based", response_model=List[Task])
async def run_time_based_follow_ups(pipeline: LeadPipeline = Depends(get_pipeline)):
    """Run the stale lead scan now."""
    return await pipeline.generate_time_based_follow_ups()


@router.get("/tasks", response_model=List[Task])
async def list_tasks(
    task_status: Optional[TaskStatus] = Query(None, alias="status"),
    category: Optional[str] = None,
    lead_id: Optional[UUID] = None,
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    return await pipeline.list_tasks(status=task_status, category=category, lead_id=lead_id)


@router.patch("/tasks/{task_id}/status", response_model=Task)
async def update_task_status(
    task_id: UUID,
    request: TaskStatusUpdate,
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    return await pipeline.update_task_status(task_id, request.status)


# ==================== CRM SYNC ====================

@router.post(
    "/leads/{lead_id}/crm-sync",
    response_model=ExternalCRMSync,
    status_code=status.HTTP_202_ACCEPTED
)
async def sync_lead(
    lead_id: UUID,
    request: CRMSyncRequest,
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    """Start a CRM sync; the returned row is pending until the background sync lands."""
    return await pipeline.sync_lead_to_external_crm(lead_id, request.system)


@router.get("/leads/{lead_id}/crm-sync", response_model=List[ExternalCRMSync])
async def get_sync_status(lead_id: UUID, pipeline: LeadPipeline = Depends(get_pipeline)):
    return await pipeline.get_lead_crm_sync_status(lead_id)


# ==================== ANALYTICS ====================

@router.get("/analytics", response_model=LeadAnalytics)
async def get_analytics(pipeline: LeadPipeline = Depends(get_pipeline)):
    return await pipeline.get_lead_analytics()
