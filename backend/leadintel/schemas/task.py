"""Task and follow-up link records."""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID, uuid4

from leadintel.schemas.enums import TaskStatus, TriggerType
from leadintel.schemas.lead import Lead


class Task(BaseModel):
    """A unit of follow-up work with a canned checklist."""
    id: UUID = Field(default_factory=uuid4)
    title: str
    description: Optional[str] = None
    priority: int = 3
    category: str
    status: TaskStatus = TaskStatus.PENDING
    estimated_impact: Optional[str] = None
    execution_steps: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    assigned_to: Optional[str] = None
    related_entities: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(from_attributes=True)


class FollowUpTask(BaseModel):
    """Link between a lead and a task, with the trigger that produced it."""
    id: UUID = Field(default_factory=uuid4)
    lead_id: UUID
    task_id: UUID
    trigger_type: TriggerType
    trigger_condition: Dict[str, Any] = Field(default_factory=dict)
    auto_generated: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Populated by list-by-lead reads
    task: Optional[Task] = None

    model_config = ConfigDict(from_attributes=True)


class ManualFollowUpCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    priority: int = Field(default=3, ge=1, le=5)
    due_date: Optional[datetime] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class ManualFollowUpResponse(BaseModel):
    task: Task
    follow_up: FollowUpTask


class PipelineResult(BaseModel):
    """Outcome of running one candidate through the pipeline."""
    lead: Lead
    tasks: List[Task] = Field(default_factory=list)
    is_new: bool = True
