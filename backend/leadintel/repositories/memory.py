"""In-memory repository backed by dicts."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from leadintel.exceptions import ConcurrencyError, DuplicateIdentityError, NotFoundError
from leadintel.repositories.base import LeadIntelRepository
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


def _copy(record):
    return record.model_copy(deep=True) if record is not None else None


class InMemoryRepository(LeadIntelRepository):
    """
    Dict-backed adapter.

    Records are copied on the way in and on the way out, so callers
    never hold references into the store.
    """

    def __init__(self):
        self.leads: Dict[UUID, Lead] = {}
        self.lead_sources: List[LeadSource] = []
        self.journey_stages: Dict[UUID, List[JourneyStage]] = {}
        self.tasks: Dict[UUID, Task] = {}
        self.follow_ups: List[FollowUpTask] = []
        self.playbooks: Dict[UUID, Playbook] = {}
        self.alerts: Dict[UUID, Alert] = {}
        self.crm_syncs: Dict[UUID, ExternalCRMSync] = {}

    # Leads

    async def create_lead(self, lead: Lead) -> Lead:
        for existing in self.leads.values():
            if lead.email and existing.email == lead.email:
                raise DuplicateIdentityError(f"email {lead.email} already belongs to lead {existing.id}")
            if lead.phone and existing.phone == lead.phone:
                raise DuplicateIdentityError(f"phone {lead.phone} already belongs to lead {existing.id}")

        self.leads[lead.id] = _copy(lead)
        return _copy(lead)

    async def get_lead(self, lead_id: UUID) -> Optional[Lead]:
        return _copy(self.leads.get(lead_id))

    async def find_lead_by_identity(self, email: Optional[str], phone: Optional[str]) -> Optional[Lead]:
        if email:
            for lead in self.leads.values():
                if lead.email == email:
                    return _copy(lead)
        if phone:
            for lead in self.leads.values():
                if lead.phone == phone:
                    return _copy(lead)
        return None

    async def update_lead(self, lead: Lead, expected_version: int) -> Lead:
        stored = self.leads.get(lead.id)
        if stored is None:
            raise NotFoundError("Lead", lead.id)
        if stored.version != expected_version:
            raise ConcurrencyError(
                f"Lead {lead.id} is at version {stored.version}, expected {expected_version}"
            )

        updated = lead.model_copy(update={"version": expected_version + 1}, deep=True)
        self.leads[lead.id] = updated
        return _copy(updated)

    async def list_leads(
        self,
        statuses: Optional[List[LeadStatus]] = None,
        updated_before: Optional[datetime] = None
    ) -> List[Lead]:
        leads = list(self.leads.values())
        if statuses:
            leads = [lead for lead in leads if lead.status in statuses]
        if updated_before:
            leads = [lead for lead in leads if lead.updated_at < updated_before]
        return [_copy(lead) for lead in sorted(leads, key=lambda l: l.created_at)]

    # Lead sources

    async def create_lead_source(self, source: LeadSource) -> LeadSource:
        self.lead_sources.append(_copy(source))
        return _copy(source)

    async def list_lead_sources(self, lead_id: Optional[UUID] = None) -> List[LeadSource]:
        sources = [s for s in self.lead_sources if lead_id is None or s.lead_id == lead_id]
        return [_copy(s) for s in reversed(sources)]

    # Journey

    async def create_journey_stage(self, stage: JourneyStage) -> JourneyStage:
        stages = self.journey_stages.setdefault(stage.lead_id, [])
        taken = {s.sequence_order for s in stages}

        if stage.sequence_order is None:
            stage = stage.model_copy(update={"sequence_order": max(taken, default=0) + 1})
        elif stage.sequence_order in taken:
            raise ConcurrencyError(
                f"Sequence {stage.sequence_order} already recorded for lead {stage.lead_id}"
            )

        stages.append(_copy(stage))
        return _copy(stage)

    async def list_journey_stages(self, lead_id: Optional[UUID] = None) -> List[JourneyStage]:
        if lead_id is not None:
            stages = list(self.journey_stages.get(lead_id, []))
        else:
            stages = [s for per_lead in self.journey_stages.values() for s in per_lead]
        stages.sort(key=lambda s: (str(s.lead_id), s.sequence_order))
        return [_copy(s) for s in stages]

    # Tasks and follow-ups

    async def create_task(self, task: Task) -> Task:
        self.tasks[task.id] = _copy(task)
        return _copy(task)

    async def get_task(self, task_id: UUID) -> Optional[Task]:
        return _copy(self.tasks.get(task_id))

    async def list_tasks(
        self,
        status: Optional[TaskStatus] = None,
        category: Optional[str] = None,
        lead_id: Optional[UUID] = None
    ) -> List[Task]:
        tasks = list(self.tasks.values())
        if status:
            tasks = [t for t in tasks if t.status == status]
        if category:
            tasks = [t for t in tasks if t.category == category]
        if lead_id:
            tasks = [t for t in tasks if t.related_entities.get("lead_id") == str(lead_id)]
        return [_copy(t) for t in reversed(tasks)]

    async def update_task_status(self, task_id: UUID, status: TaskStatus) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        task.status = status
        task.updated_at = datetime.utcnow()
        return _copy(task)

    async def create_follow_up(self, follow_up: FollowUpTask) -> FollowUpTask:
        stored = follow_up.model_copy(update={"task": None}, deep=True)
        self.follow_ups.append(stored)
        return _copy(stored)

    async def list_follow_ups(self, lead_id: UUID) -> List[FollowUpTask]:
        links = [f for f in self.follow_ups if f.lead_id == lead_id]
        return [
            link.model_copy(update={"task": _copy(self.tasks.get(link.task_id))}, deep=True)
            for link in reversed(links)
        ]

    # Playbooks

    async def create_playbook(self, playbook: Playbook) -> Playbook:
        self.playbooks[playbook.id] = _copy(playbook)
        return _copy(playbook)

    async def get_playbook(self, playbook_id: UUID) -> Optional[Playbook]:
        return _copy(self.playbooks.get(playbook_id))

    async def list_playbooks(self, active_only: bool = False) -> List[Playbook]:
        playbooks = list(self.playbooks.values())
        if active_only:
            playbooks = [p for p in playbooks if p.status != PlaybookStatus.COMPLETED]
        return [_copy(p) for p in reversed(playbooks)]

    async def update_playbook_status(self, playbook_id: UUID, status: PlaybookStatus) -> Playbook:
        playbook = self.playbooks.get(playbook_id)
        if playbook is None:
            raise NotFoundError("Playbook", playbook_id)
        playbook.status = status
        playbook.updated_at = datetime.utcnow()
        return _copy(playbook)

    async def assign_playbook_action(
        self,
        playbook_id: UUID,
        action_id: UUID,
        assigned_to: Optional[str]
    ) -> Playbook:
        playbook = self.playbooks.get(playbook_id)
        if playbook is None:
            raise NotFoundError("Playbook", playbook_id)
        for action in playbook.actions:
            if action.id == action_id:
                action.assigned_to = assigned_to
                playbook.updated_at = datetime.utcnow()
                return _copy(playbook)
        raise NotFoundError("PlaybookAction", action_id)

    # Alerts

    async def create_alert(self, alert: Alert) -> Alert:
        self.alerts[alert.id] = _copy(alert)
        return _copy(alert)

    async def get_alert(self, alert_id: UUID) -> Optional[Alert]:
        return _copy(self.alerts.get(alert_id))

    async def list_alerts(
        self,
        unread_only: bool = False,
        severity: Optional[AlertSeverity] = None,
        alert_type: Optional[str] = None
    ) -> List[Alert]:
        alerts = list(self.alerts.values())
        if unread_only:
            alerts = [a for a in alerts if not a.read]
        if severity:
            alerts = [a for a in alerts if a.severity == severity]
        if alert_type:
            alerts = [a for a in alerts if a.type == alert_type]
        return [_copy(a) for a in reversed(alerts)]

    async def mark_alert_read(self, alert_id: UUID) -> Alert:
        alert = self.alerts.get(alert_id)
        if alert is None:
            raise NotFoundError("Alert", alert_id)
        alert.read = True
        return _copy(alert)

    async def update_alert_delivery(self, alert_id: UUID, delivery_status: Dict[str, str]) -> Alert:
        alert = self.alerts.get(alert_id)
        if alert is None:
            raise NotFoundError("Alert", alert_id)
        alert.delivery_status = dict(delivery_status)
        return _copy(alert)

    # External CRM sync

    async def create_crm_sync(self, sync: ExternalCRMSync) -> ExternalCRMSync:
        self.crm_syncs[sync.id] = _copy(sync)
        return _copy(sync)

    async def get_crm_sync(self, sync_id: UUID) -> Optional[ExternalCRMSync]:
        return _copy(self.crm_syncs.get(sync_id))

    async def list_crm_syncs(self, lead_id: UUID) -> List[ExternalCRMSync]:
        syncs = [s for s in self.crm_syncs.values() if s.lead_id == lead_id]
        return [_copy(s) for s in reversed(syncs)]

    async def update_crm_sync(self, sync_id: UUID, **changes: Any) -> ExternalCRMSync:
        sync = self.crm_syncs.get(sync_id)
        if sync is None:
            raise NotFoundError("ExternalCRMSync", sync_id)
        updated = sync.model_copy(update=changes, deep=True)
        self.crm_syncs[sync_id] = updated
        return _copy(updated)
