"""
Repository interface for the lead intelligence pipeline.

Every pipeline component reads and writes through this port, so the
pipeline runs against the in-memory adapter in tests and against
SQLAlchemy in deployment without code changes.

Adapters raise RepositoryError (or a subclass) when the store fails,
and NotFoundError from update operations addressing a missing id.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from leadintel.schemas import (
    Alert,
    AlertSeverity,
    ExternalCRMSync,
    FollowUpTask,
    JourneyStage,
    Lead,
    LeadSource,
    LeadStatus,
    Playbook,
    PlaybookStatus,
    Task,
    TaskStatus,
)


class LeadIntelRepository(ABC):
    """Persistence boundary for leads, journeys, tasks, alerts, playbooks and syncs."""

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_lead(self, lead: Lead) -> Lead:
        """
        Insert a new lead.

        Raises:
            DuplicateIdentityError: email or phone already belongs to a lead
        """

    @abstractmethod
    async def get_lead(self, lead_id: UUID) -> Optional[Lead]:
        """Return the lead or None."""

    @abstractmethod
    async def find_lead_by_identity(
        self,
        email: Optional[str],
        phone: Optional[str]
    ) -> Optional[Lead]:
        """
        Find a lead whose email OR phone equals the given values.

        An email match wins over a phone match when they point at
        different leads.
        """

    @abstractmethod
    async def update_lead(self, lead: Lead, expected_version: int) -> Lead:
        """
        Conditionally write all mutable lead fields.

        The write succeeds only while the stored version equals
        expected_version; the stored version then becomes expected_version + 1.

        Raises:
            NotFoundError: lead does not exist
            ConcurrencyError: stored version moved on
        """

    @abstractmethod
    async def list_leads(
        self,
        statuses: Optional[List[LeadStatus]] = None,
        updated_before: Optional[datetime] = None
    ) -> List[Lead]:
        """List leads, optionally filtered by status and staleness."""

    # ------------------------------------------------------------------
    # Lead sources
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_lead_source(self, source: LeadSource) -> LeadSource:
        """Append one origin-channel sighting."""

    @abstractmethod
    async def list_lead_sources(self, lead_id: Optional[UUID] = None) -> List[LeadSource]:
        """Sightings, newest first."""

    # ------------------------------------------------------------------
    # Journey
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_journey_stage(self, stage: JourneyStage) -> JourneyStage:
        """
        Append a journey stage.

        When stage.sequence_order is None the adapter allocates the next
        value for the lead (max + 1, starting at 1).

        Raises:
            ConcurrencyError: sequence_order already taken for this lead
        """

    @abstractmethod
    async def list_journey_stages(self, lead_id: Optional[UUID] = None) -> List[JourneyStage]:
        """Stages ordered by (lead, sequence_order)."""

    # ------------------------------------------------------------------
    # Tasks and follow-ups
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_task(self, task: Task) -> Task:
        """Insert a task."""

    @abstractmethod
    async def get_task(self, task_id: UUID) -> Optional[Task]:
        """Return the task or None."""

    @abstractmethod
    async def list_tasks(
        self,
        status: Optional[TaskStatus] = None,
        category: Optional[str] = None,
        lead_id: Optional[UUID] = None
    ) -> List[Task]:
        """Tasks matching every given filter, newest first."""

    @abstractmethod
    async def update_task_status(self, task_id: UUID, status: TaskStatus) -> Task:
        """Set task status. Raises NotFoundError."""

    @abstractmethod
    async def create_follow_up(self, follow_up: FollowUpTask) -> FollowUpTask:
        """Link a task to a lead."""

    @abstractmethod
    async def list_follow_ups(self, lead_id: UUID) -> List[FollowUpTask]:
        """Links for a lead with their task attached, newest first."""

    # ------------------------------------------------------------------
    # Playbooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_playbook(self, playbook: Playbook) -> Playbook:
        """Insert a playbook with its actions."""

    @abstractmethod
    async def get_playbook(self, playbook_id: UUID) -> Optional[Playbook]:
        """Return the playbook or None."""

    @abstractmethod
    async def list_playbooks(self, active_only: bool = False) -> List[Playbook]:
        """Playbooks newest first; active_only hides completed ones."""

    @abstractmethod
    async def update_playbook_status(self, playbook_id: UUID, status: PlaybookStatus) -> Playbook:
        """Set playbook status. Raises NotFoundError."""

    @abstractmethod
    async def assign_playbook_action(
        self,
        playbook_id: UUID,
        action_id: UUID,
        assigned_to: Optional[str]
    ) -> Playbook:
        """Set one action's assignee. Raises NotFoundError."""

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_alert(self, alert: Alert) -> Alert:
        """Insert an alert."""

    @abstractmethod
    async def get_alert(self, alert_id: UUID) -> Optional[Alert]:
        """Return the alert or None."""

    @abstractmethod
    async def list_alerts(
        self,
        unread_only: bool = False,
        severity: Optional[AlertSeverity] = None,
        alert_type: Optional[str] = None
    ) -> List[Alert]:
        """Alerts matching every given filter, newest first."""

    @abstractmethod
    async def mark_alert_read(self, alert_id: UUID) -> Alert:
        """Set the read flag. Raises NotFoundError."""

    @abstractmethod
    async def update_alert_delivery(self, alert_id: UUID, delivery_status: Dict[str, str]) -> Alert:
        """Record per-channel delivery outcomes. Raises NotFoundError."""

    # ------------------------------------------------------------------
    # External CRM sync
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_crm_sync(self, sync: ExternalCRMSync) -> ExternalCRMSync:
        """Insert a sync attempt."""

    @abstractmethod
    async def get_crm_sync(self, sync_id: UUID) -> Optional[ExternalCRMSync]:
        """Return the sync row or None."""

    @abstractmethod
    async def list_crm_syncs(self, lead_id: UUID) -> List[ExternalCRMSync]:
        """Sync attempts for a lead, newest first."""

    @abstractmethod
    async def update_crm_sync(self, sync_id: UUID, **changes: Any) -> ExternalCRMSync:
        """Apply field changes to a sync row. Raises NotFoundError."""
