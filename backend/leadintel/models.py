# backend/leadintel/models.py
"""
SQLAlchemy ORM models for the lead intelligence pipeline.

Tables mirror the record set the pipeline persists: leads, lead_sources,
lead_journey, tasks, follow_up_tasks, playbooks, playbook_actions,
alerts, external_crm_sync. JSON columns use JSONB on PostgreSQL.
"""

from sqlalchemy import (
    Column, String, Boolean, Integer, Float, Text, DateTime, JSON, Uuid,
    ForeignKey, CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from leadintel.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# LEADS
# ============================================================================

class Lead(Base):
    """Lead keyed by identity (email and/or phone)."""
    __tablename__ = "leads"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Identity (dedup key)
    email = Column(String(255), unique=True, index=True)
    phone = Column(String(50), unique=True, index=True)

    # Profile
    name = Column(String(255))
    company = Column(String(255))
    title = Column(String(255))
    location_city = Column(String(100))
    location_state = Column(String(100))
    location_zip = Column(String(20))

    # Pipeline state
    intent_score = Column(Integer, nullable=False, default=0)
    status = Column(String(50), nullable=False, default="new")
    source = Column(String(100))
    source_data = Column(JSONType, default=dict)
    tags = Column(JSONType, default=list)
    enrichment_data = Column(JSONType, default=dict)
    notes = Column(Text)

    # Optimistic lock
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("intent_score >= 0 AND intent_score <= 100", name="chk_lead_intent_score"),
        CheckConstraint("email IS NOT NULL OR phone IS NOT NULL", name="chk_lead_identity"),
        CheckConstraint(
            "status IN ('new', 'contacted', 'qualified', 'proposal', 'negotiation', 'closed_won', 'closed_lost')",
            name="chk_lead_status"
        ),
    )

    def __repr__(self):
        return f"<Lead(id={self.id}, email='{self.email}', score={self.intent_score})>"


class LeadSource(Base):
    """One origin-channel sighting of a lead (append-only)."""
    __tablename__ = "lead_sources"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    source_type = Column(String(100), nullable=False)
    source_id = Column(String(255), nullable=False)
    source_data = Column(JSONType, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class LeadJourneyStage(Base):
    """Ordered journey record (append-only)."""
    __tablename__ = "lead_journey"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    stage = Column(String(50), nullable=False)
    stage_data = Column(JSONType, nullable=False)
    sequence_order = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("lead_id", "sequence_order", name="uq_lead_journey_sequence"),
        CheckConstraint("stage IN ('keyword', 'touchpoint', 'conversion')", name="chk_journey_stage"),
    )


# ============================================================================
# TASKS
# ============================================================================

class Task(Base):
    """Follow-up work item."""
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(500), nullable=False)
    description = Column(Text)
    priority = Column(Integer, nullable=False, default=3)
    category = Column(String(100), nullable=False, index=True)
    status = Column(String(50), nullable=False, default="pending", index=True)
    estimated_impact = Column(String(255))
    execution_steps = Column(JSONType, default=list)
    due_date = Column(DateTime)
    assigned_to = Column(String(255))
    related_entities = Column(JSONType, default=dict)

    # Denormalized from related_entities for list-by-lead
    lead_id = Column(Uuid, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("priority >= 1 AND priority <= 5", name="chk_task_priority"),
        CheckConstraint("status IN ('pending', 'in_progress', 'done')", name="chk_task_status"),
    )


class FollowUpTask(Base):
    """Lead ↔ task link with trigger provenance."""
    __tablename__ = "follow_up_tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = Column(Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    trigger_type = Column(String(50), nullable=False)
    trigger_condition = Column(JSONType, default=dict)
    auto_generated = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    task = relationship("Task", foreign_keys=[task_id], lazy="joined")

    __table_args__ = (
        CheckConstraint(
            "trigger_type IN ('status_change', 'time_based', 'score_change', 'manual')",
            name="chk_follow_up_trigger"
        ),
    )


# ============================================================================
# PLAYBOOKS
# ============================================================================

class Playbook(Base):
    """Competitor-response plan."""
    __tablename__ = "playbooks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(500), nullable=False)
    competitor_id = Column(String(255), index=True)
    competitor_name = Column(String(255), nullable=False)
    activity_type = Column(String(100), nullable=False)
    priority = Column(String(20), nullable=False, default="medium")
    status = Column(String(20), nullable=False, default="draft", index=True)
    estimated_time = Column(String(100))
    estimated_impact = Column(String(255))
    alert_id = Column(Uuid, ForeignKey("alerts.id", ondelete="SET NULL"))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    actions = relationship(
        "PlaybookAction",
        order_by="PlaybookAction.position",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'approved', 'in_progress', 'completed')",
            name="chk_playbook_status"
        ),
    )


class PlaybookAction(Base):
    """One ordered step of a playbook."""
    __tablename__ = "playbook_actions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    playbook_id = Column(Uuid, ForeignKey("playbooks.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False)
    priority = Column(Integer, nullable=False, default=1)
    estimated_hours = Column(Float, nullable=False, default=0)
    resources_needed = Column(JSONType, default=list)
    success_metrics = Column(JSONType, default=list)
    assigned_to = Column(String(255))
    deadline = Column(DateTime)


# ============================================================================
# ALERTS
# ============================================================================

class Alert(Base):
    """Notification of a detected competitor change."""
    __tablename__ = "alerts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(String(100), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(String(20), nullable=False, index=True)
    read = Column(Boolean, nullable=False, default=False)
    channels = Column(JSONType, default=list)
    data = Column(JSONType, default=dict)
    delivery_status = Column(JSONType, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        CheckConstraint("severity IN ('info', 'warning', 'critical')", name="chk_alert_severity"),
        Index("idx_alerts_unread", "read", "created_at"),
    )


# ============================================================================
# EXTERNAL CRM SYNC
# ============================================================================

class ExternalCRMSync(Base):
    """One attempt to mirror a lead into a third-party CRM."""
    __tablename__ = "external_crm_sync"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    crm_type = Column(String(50), nullable=False)
    external_id = Column(String(255), nullable=False)
    sync_status = Column(String(20), nullable=False, default="pending")
    last_synced = Column(DateTime)
    sync_data = Column(JSONType, default=dict)
    error_message = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        CheckConstraint("sync_status IN ('pending', 'synced', 'error')", name="chk_crm_sync_status"),
    )
