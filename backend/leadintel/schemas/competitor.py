"""Competitor monitoring, alert and playbook records."""

from pydantic import BaseModel, Field, ConfigDict, computed_field
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID, uuid4

from leadintel.schemas.enums import (
    AlertSeverity,
    PlaybookActionType,
    PlaybookPriority,
    PlaybookStatus,
)
from leadintel.schemas.task import Task


class CompetitorMonitorConfig(BaseModel):
    """What to watch for one competitor and how to react."""
    competitor_id: str
    competitor_name: str
    website_url: Optional[str] = None
    gmb_profile_id: Optional[str] = None
    monitoring_types: List[str] = Field(default_factory=lambda: ["website", "ads", "business_profile"])
    alert_thresholds: Dict[str, float] = Field(default_factory=dict)
    delivery_channels: List[str] = Field(default_factory=list)
    auto_create_tasks: bool = True
    auto_generate_playbooks: bool = True


class CompetitorChange(BaseModel):
    """Transient detection event."""
    competitor_id: str
    change_type: str
    impact_score: float = Field(..., ge=0, le=10)
    change_data: Dict[str, Any] = Field(default_factory=dict)
    detected_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def description(self) -> Optional[str]:
        return self.change_data.get("description")


class Alert(BaseModel):
    """
    Notification of a detected change.

    Besides the read flag, delivery_status is the one other field written
    after creation: the dispatcher records each channel's outcome
    ("delivered" / "failed") there once fan-out settles.
    """
    id: UUID = Field(default_factory=uuid4)
    type: str
    title: str
    message: str
    severity: AlertSeverity
    read: bool = False
    channels: List[str] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)
    delivery_status: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(from_attributes=True)


class PlaybookAction(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    type: PlaybookActionType
    title: str
    description: str
    priority: int = 1
    estimated_hours: float = 0
    resources_needed: List[str] = Field(default_factory=list)
    success_metrics: List[str] = Field(default_factory=list)
    assigned_to: Optional[str] = None
    deadline: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Playbook(BaseModel):
    """Multi-action competitor-response plan."""
    id: UUID = Field(default_factory=uuid4)
    title: str
    competitor_id: Optional[str] = None
    competitor_name: str
    activity_type: str
    priority: PlaybookPriority = PlaybookPriority.MEDIUM
    status: PlaybookStatus = PlaybookStatus.DRAFT
    estimated_time: Optional[str] = None
    estimated_impact: Optional[str] = None
    actions: List[PlaybookAction] = Field(default_factory=list)
    alert_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def progress(self) -> float:
        """Fraction of actions with an assignee."""
        if not self.actions:
            return 0.0
        assigned = sum(1 for action in self.actions if action.assigned_to)
        return assigned / len(self.actions)


class DeliveryResult(BaseModel):
    channel: str
    delivered: bool
    error: Optional[str] = None


class CompetitorResponse(BaseModel):
    """Everything one competitor change produced."""
    alert: Alert
    task: Optional[Task] = None
    playbook: Optional[Playbook] = None
    deliveries: List[DeliveryResult] = Field(default_factory=list)


class PlaybookStatusUpdate(BaseModel):
    status: PlaybookStatus


class PlaybookActionAssign(BaseModel):
    assigned_to: str = Field(..., min_length=1, max_length=255)


class CompetitorChangeRequest(BaseModel):
    change: CompetitorChange
    config: CompetitorMonitorConfig


class MonitoringStatus(BaseModel):
    running: bool
    interval_seconds: int
    competitors: List[str] = Field(default_factory=list)
