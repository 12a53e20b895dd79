# backend/leadintel/routers/competitor_routes.py
"""Competitor monitoring API: changes, alerts, playbooks and the monitoring loop."""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from uuid import UUID

from leadintel.dependencies import get_monitor, get_pipeline
from leadintel.scheduler import CompetitorMonitor
from leadintel.schemas import (
    Alert,
    AlertSeverity,
    CompetitorChangeRequest,
    CompetitorMonitorConfig,
    CompetitorResponse,
    MonitoringStatus,
    Playbook,
    PlaybookActionAssign,
    PlaybookStatusUpdate,
)
from leadintel.services.lead_pipeline import LeadPipeline

router = APIRouter()


def _monitoring_status(monitor: CompetitorMonitor) -> MonitoringStatus:
    return MonitoringStatus(
        running=monitor.is_running,
        interval_seconds=monitor.interval_seconds,
        competitors=[c.competitor_name for c in monitor.configs],
    )


# ==================== CHANGES ====================

@router.post("/changes", response_model=CompetitorResponse)
async def report_change(request: CompetitorChangeRequest, pipeline: LeadPipeline = Depends(get_pipeline)):
    """Handle one detected change: alert, delivery, and gated task/playbook."""
    return await pipeline.handle_competitor_change(request.change, request.config)


# ==================== ALERTS ====================

@router.get("/alerts", response_model=List[Alert])
async def list_alerts(
    unread_only: bool = False,
    severity: Optional[AlertSeverity] = None,
    alert_type: Optional[str] = Query(None, alias="type"),
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    return await pipeline.list_alerts(unread_only=unread_only, severity=severity, alert_type=alert_type)


@router.patch("/alerts/{alert_id}/read", response_model=Alert)
async def mark_alert_read(alert_id: UUID, pipeline: LeadPipeline = Depends(get_pipeline)):
    return await pipeline.mark_alert_read(alert_id)


# ==================== PLAYBOOKS ====================

@router.get("/playbooks", response_model=List[Playbook])
async def list_playbooks(active_only: bool = False, pipeline: LeadPipeline = Depends(get_pipeline)):
    return await pipeline.list_playbooks(active_only)


@router.get("/playbooks/{playbook_id}", response_model=Playbook)
async def get_playbook(playbook_id: UUID, pipeline: LeadPipeline = Depends(get_pipeline)):
    return await pipeline.get_playbook(playbook_id)


@router.patch("/playbooks/{playbook_id}/status", response_model=Playbook)
async def update_playbook_status(
    playbook_id: UUID,
    request: PlaybookStatusUpdate,
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    """Advance a playbook one step (draft -> approved -> in_progress -> completed)."""
    return await pipeline.update_playbook_status(playbook_id, request.status)


@router.patch("/playbooks/{playbook_id}/actions/{action_id}/assign", response_model=Playbook)
async def assign_playbook_action(
    playbook_id: UUID,
    action_id: UUID,
    request: PlaybookActionAssign,
    pipeline: LeadPipeline = Depends(get_pipeline)
):
    return await pipeline.assign_playbook_action(playbook_id, action_id, request.assigned_to)


# ==================== MONITORING ====================

@router.post("/monitoring/start", response_model=MonitoringStatus)
async def start_monitoring(
    configs: List[CompetitorMonitorConfig],
    monitor: CompetitorMonitor = Depends(get_monitor)
):
    monitor.start(configs)
    return _monitoring_status(monitor)


@router.post("/monitoring/stop", response_model=MonitoringStatus)
async def stop_monitoring(monitor: CompetitorMonitor = Depends(get_monitor)):
    monitor.stop()
    return _monitoring_status(monitor)


@router.get("/monitoring/status", response_model=MonitoringStatus)
async def monitoring_status(monitor: CompetitorMonitor = Depends(get_monitor)):
    return _monitoring_status(monitor)


@router.post("/monitoring/tick", response_model=List[CompetitorResponse])
async def run_monitoring_tick(monitor: CompetitorMonitor = Depends(get_monitor)):
    """Run one detection pass immediately."""
    return await monitor.run_tick()
