"""SQLAlchemy adapter for the repository port (async sessions)."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic_core import to_jsonable_python
from sqlalchemy import select, update, func, or_, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from leadintel import models
from leadintel.exceptions import (
    ConcurrencyError,
    DuplicateIdentityError,
    NotFoundError,
    RepositoryError,
)
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

logger = logging.getLogger(__name__)

# Fields copied verbatim between the Lead schema and the leads table
LEAD_FIELDS = (
    "email", "phone", "name", "company", "title",
    "location_city", "location_state", "location_zip",
    "intent_score", "status", "source", "notes",
)
LEAD_JSON_FIELDS = ("source_data", "tags", "enrichment_data")


def _json(value: Any) -> Any:
    """Make a payload JSON-column safe (datetimes, enums, UUIDs)."""
    return to_jsonable_python(value)


def _lead_values(lead: Lead) -> Dict[str, Any]:
    values = {field: getattr(lead, field) for field in LEAD_FIELDS}
    values["status"] = lead.status.value
    for field in LEAD_JSON_FIELDS:
        values[field] = _json(getattr(lead, field))
    values["updated_at"] = lead.updated_at
    return values


def _is_lead_identity_violation(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "email" in message or "phone" in message


class SQLAlchemyRepository(LeadIntelRepository):
    """
    Adapter over an async_sessionmaker.

    Each operation runs in its own short transaction. Driver failures
    surface as RepositoryError; unique-key collisions on lead identity
    surface as DuplicateIdentityError and on journey sequence as
    ConcurrencyError.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Repository operation failed: {e}")
            raise RepositoryError(str(e)) from e

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    async def create_lead(self, lead: Lead) -> Lead:
        async with self._session() as session:
            row = models.Lead(
                id=lead.id,
                version=lead.version,
                created_at=lead.created_at,
                **_lead_values(lead)
            )
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if _is_lead_identity_violation(e):
                    raise DuplicateIdentityError(
                        f"Lead identity already taken (email={lead.email}, phone={lead.phone})"
                    ) from e
                raise RepositoryError(str(e.orig)) from e
            return lead.model_copy(deep=True)

    async def get_lead(self, lead_id: UUID) -> Optional[Lead]:
        async with self._session() as session:
            row = await session.get(models.Lead, lead_id)
            return Lead.model_validate(row) if row else None

    async def find_lead_by_identity(self, email: Optional[str], phone: Optional[str]) -> Optional[Lead]:
        conditions = []
        if email:
            conditions.append(models.Lead.email == email)
        if phone:
            conditions.append(models.Lead.phone == phone)
        if not conditions:
            return None

        async with self._session() as session:
            result = await session.execute(select(models.Lead).where(or_(*conditions)))
            rows = result.scalars().all()

        if not rows:
            return None
        # Email match wins
        for row in rows:
            if email and row.email == email:
                return Lead.model_validate(row)
        return Lead.model_validate(rows[0])

    async def update_lead(self, lead: Lead, expected_version: int) -> Lead:
        async with self._session() as session:
            stmt = (
                update(models.Lead)
                .where(and_(models.Lead.id == lead.id, models.Lead.version == expected_version))
                .values(version=expected_version + 1, **_lead_values(lead))
            )
            try:
                result = await session.execute(stmt)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateIdentityError(
                    f"Lead {lead.id} update collides with another lead's identity"
                ) from e

            if result.rowcount == 0:
                exists = await session.get(models.Lead, lead.id)
                if exists is None:
                    raise NotFoundError("Lead", lead.id)
                raise ConcurrencyError(
                    f"Lead {lead.id} is at version {exists.version}, expected {expected_version}"
                )

        return lead.model_copy(update={"version": expected_version + 1}, deep=True)

    async def list_leads(
        self,
        statuses: Optional[List[LeadStatus]] = None,
        updated_before: Optional[datetime] = None
    ) -> List[Lead]:
        query = select(models.Lead)
        if statuses:
            query = query.where(models.Lead.status.in_([s.value for s in statuses]))
        if updated_before:
            query = query.where(models.Lead.updated_at < updated_before)
        query = query.order_by(models.Lead.created_at)

        async with self._session() as session:
            result = await session.execute(query)
            return [Lead.model_validate(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------
    # Lead sources
    # ------------------------------------------------------------------

    async def create_lead_source(self, source: LeadSource) -> LeadSource:
        async with self._session() as session:
            session.add(models.LeadSource(
                id=source.id,
                lead_id=source.lead_id,
                source_type=source.source_type,
                source_id=source.source_id,
                source_data=_json(source.source_data),
                created_at=source.created_at
            ))
            await session.commit()
        return source.model_copy(deep=True)

    async def list_lead_sources(self, lead_id: Optional[UUID] = None) -> List[LeadSource]:
        query = select(models.LeadSource)
        if lead_id is not None:
            query = query.where(models.LeadSource.lead_id == lead_id)
        query = query.order_by(models.LeadSource.created_at.desc())

        async with self._session() as session:
            result = await session.execute(query)
            return [LeadSource.model_validate(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------
    # Journey
    # ------------------------------------------------------------------

    async def create_journey_stage(self, stage: JourneyStage) -> JourneyStage:
        async with self._session() as session:
            sequence_order = stage.sequence_order
            if sequence_order is None:
                result = await session.execute(
                    select(func.max(models.LeadJourneyStage.sequence_order))
                    .where(models.LeadJourneyStage.lead_id == stage.lead_id)
                )
                sequence_order = (result.scalar() or 0) + 1

            session.add(models.LeadJourneyStage(
                id=stage.id,
                lead_id=stage.lead_id,
                stage=stage.stage.value,
                stage_data=_json(stage.stage_data),
                sequence_order=sequence_order,
                timestamp=stage.timestamp
            ))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConcurrencyError(
                    f"Sequence {sequence_order} already recorded for lead {stage.lead_id}"
                ) from e

        return stage.model_copy(update={"sequence_order": sequence_order}, deep=True)

    async def list_journey_stages(self, lead_id: Optional[UUID] = None) -> List[JourneyStage]:
        query = select(models.LeadJourneyStage)
        if lead_id is not None:
            query = query.where(models.LeadJourneyStage.lead_id == lead_id)
        query = query.order_by(models.LeadJourneyStage.lead_id, models.LeadJourneyStage.sequence_order)

        async with self._session() as session:
            result = await session.execute(query)
            return [JourneyStage.model_validate(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------
    # Tasks and follow-ups
    # ------------------------------------------------------------------

    async def create_task(self, task: Task) -> Task:
        lead_ref = task.related_entities.get("lead_id")
        async with self._session() as session:
            session.add(models.Task(
                id=task.id,
                title=task.title,
                description=task.description,
                priority=task.priority,
                category=task.category,
                status=task.status.value,
                estimated_impact=task.estimated_impact,
                execution_steps=list(task.execution_steps),
                due_date=task.due_date,
                assigned_to=task.assigned_to,
                related_entities=_json(task.related_entities),
                lead_id=UUID(str(lead_ref)) if lead_ref else None,
                created_at=task.created_at,
                updated_at=task.updated_at
            ))
            await session.commit()
        return task.model_copy(deep=True)

    async def get_task(self, task_id: UUID) -> Optional[Task]:
        async with self._session() as session:
            row = await session.get(models.Task, task_id)
            return Task.model_validate(row) if row else None

    async def list_tasks(
        self,
        status: Optional[TaskStatus] = None,
        category: Optional[str] = None,
        lead_id: Optional[UUID] = None
    ) -> List[Task]:
        query = select(models.Task)
        if status:
            query = query.where(models.Task.status == status.value)
        if category:
            query = query.where(models.Task.category == category)
        if lead_id:
            query = query.where(models.Task.lead_id == lead_id)
        query = query.order_by(models.Task.created_at.desc())

        async with self._session() as session:
            result = await session.execute(query)
            return [Task.model_validate(row) for row in result.scalars().all()]

    async def update_task_status(self, task_id: UUID, status: TaskStatus) -> Task:
        async with self._session() as session:
            row = await session.get(models.Task, task_id)
            if row is None:
                raise NotFoundError("Task", task_id)
            row.status = status.value
            row.updated_at = datetime.utcnow()
            await session.commit()
            return Task.model_validate(row)

    async def create_follow_up(self, follow_up: FollowUpTask) -> FollowUpTask:
        async with self._session() as session:
            session.add(models.FollowUpTask(
                id=follow_up.id,
                lead_id=follow_up.lead_id,
                task_id=follow_up.task_id,
                trigger_type=follow_up.trigger_type.value,
                trigger_condition=_json(follow_up.trigger_condition),
                auto_generated=follow_up.auto_generated,
                created_at=follow_up.created_at
            ))
            await session.commit()
        return follow_up.model_copy(update={"task": None}, deep=True)

    async def list_follow_ups(self, lead_id: UUID) -> List[FollowUpTask]:
        query = (
            select(models.FollowUpTask)
            .where(models.FollowUpTask.lead_id == lead_id)
            .order_by(models.FollowUpTask.created_at.desc())
        )
        async with self._session() as session:
            result = await session.execute(query)
            return [FollowUpTask.model_validate(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------
    # Playbooks
    # ------------------------------------------------------------------

    async def create_playbook(self, playbook: Playbook) -> Playbook:
        async with self._session() as session:
            row = models.Playbook(
                id=playbook.id,
                title=playbook.title,
                competitor_id=playbook.competitor_id,
                competitor_name=playbook.competitor_name,
                activity_type=playbook.activity_type,
                priority=playbook.priority.value,
                status=playbook.status.value,
                estimated_time=playbook.estimated_time,
                estimated_impact=playbook.estimated_impact,
                alert_id=playbook.alert_id,
                created_at=playbook.created_at,
                updated_at=playbook.updated_at,
                actions=[
                    models.PlaybookAction(
                        id=action.id,
                        position=position,
                        type=action.type.value,
                        title=action.title,
                        description=action.description,
                        priority=action.priority,
                        estimated_hours=action.estimated_hours,
                        resources_needed=list(action.resources_needed),
                        success_metrics=list(action.success_metrics),
                        assigned_to=action.assigned_to,
                        deadline=action.deadline
                    )
                    for position, action in enumerate(playbook.actions)
                ]
            )
            session.add(row)
            await session.commit()
        return playbook.model_copy(deep=True)

    async def get_playbook(self, playbook_id: UUID) -> Optional[Playbook]:
        async with self._session() as session:
            row = await session.get(models.Playbook, playbook_id)
            return Playbook.model_validate(row) if row else None

    async def list_playbooks(self, active_only: bool = False) -> List[Playbook]:
        query = select(models.Playbook)
        if active_only:
            query = query.where(models.Playbook.status != PlaybookStatus.COMPLETED.value)
        query = query.order_by(models.Playbook.created_at.desc())

        async with self._session() as session:
            result = await session.execute(query)
            return [Playbook.model_validate(row) for row in result.scalars().all()]

    async def update_playbook_status(self, playbook_id: UUID, status: PlaybookStatus) -> Playbook:
        async with self._session() as session:
            row = await session.get(models.Playbook, playbook_id)
            if row is None:
                raise NotFoundError("Playbook", playbook_id)
            row.status = status.value
            row.updated_at = datetime.utcnow()
            await session.commit()
            return Playbook.model_validate(row)

    async def assign_playbook_action(
        self,
        playbook_id: UUID,
        action_id: UUID,
        assigned_to: Optional[str]
    ) -> Playbook:
        async with self._session() as session:
            row = await session.get(models.Playbook, playbook_id)
            if row is None:
                raise NotFoundError("Playbook", playbook_id)

            action = next((a for a in row.actions if a.id == action_id), None)
            if action is None:
                raise NotFoundError("PlaybookAction", action_id)

            action.assigned_to = assigned_to
            row.updated_at = datetime.utcnow()
            await session.commit()
            return Playbook.model_validate(row)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def create_alert(self, alert: Alert) -> Alert:
        async with self._session() as session:
            session.add(models.Alert(
                id=alert.id,
                type=alert.type,
                title=alert.title,
                message=alert.message,
                severity=alert.severity.value,
                read=alert.read,
                channels=list(alert.channels),
                data=_json(alert.data),
                delivery_status=dict(alert.delivery_status),
                created_at=alert.created_at
            ))
            await session.commit()
        return alert.model_copy(deep=True)

    async def get_alert(self, alert_id: UUID) -> Optional[Alert]:
        async with self._session() as session:
            row = await session.get(models.Alert, alert_id)
            return Alert.model_validate(row) if row else None

    async def list_alerts(
        self,
        unread_only: bool = False,
        severity: Optional[AlertSeverity] = None,
        alert_type: Optional[str] = None
    ) -> List[Alert]:
        query = select(models.Alert)
        if unread_only:
            query = query.where(models.Alert.read == False)  # noqa: E712
        if severity:
            query = query.where(models.Alert.severity == severity.value)
        if alert_type:
            query = query.where(models.Alert.type == alert_type)
        query = query.order_by(models.Alert.created_at.desc())

        async with self._session() as session:
            result = await session.execute(query)
            return [Alert.model_validate(row) for row in result.scalars().all()]

    async def mark_alert_read(self, alert_id: UUID) -> Alert:
        async with self._session() as session:
            row = await session.get(models.Alert, alert_id)
            if row is None:
                raise NotFoundError("Alert", alert_id)
            row.read = True
            await session.commit()
            return Alert.model_validate(row)

    async def update_alert_delivery(self, alert_id: UUID, delivery_status: Dict[str, str]) -> Alert:
        async with self._session() as session:
            row = await session.get(models.Alert, alert_id)
            if row is None:
                raise NotFoundError("Alert", alert_id)
            row.delivery_status = dict(delivery_status)
            await session.commit()
            return Alert.model_validate(row)

    # ------------------------------------------------------------------
    # External CRM sync
    # ------------------------------------------------------------------

    async def create_crm_sync(self, sync: ExternalCRMSync) -> ExternalCRMSync:
        async with self._session() as session:
            session.add(models.ExternalCRMSync(
                id=sync.id,
                lead_id=sync.lead_id,
                crm_type=sync.crm_type.value,
                external_id=sync.external_id,
                sync_status=sync.sync_status.value,
                last_synced=sync.last_synced,
                sync_data=_json(sync.sync_data),
                error_message=sync.error_message,
                created_at=sync.created_at
            ))
            await session.commit()
        return sync.model_copy(deep=True)

    async def get_crm_sync(self, sync_id: UUID) -> Optional[ExternalCRMSync]:
        async with self._session() as session:
            row = await session.get(models.ExternalCRMSync, sync_id)
            return ExternalCRMSync.model_validate(row) if row else None

    async def list_crm_syncs(self, lead_id: UUID) -> List[ExternalCRMSync]:
        query = (
            select(models.ExternalCRMSync)
            .where(models.ExternalCRMSync.lead_id == lead_id)
            .order_by(models.ExternalCRMSync.created_at.desc())
        )
        async with self._session() as session:
            result = await session.execute(query)
            return [ExternalCRMSync.model_validate(row) for row in result.scalars().all()]

    async def update_crm_sync(self, sync_id: UUID, **changes: Any) -> ExternalCRMSync:
        async with self._session() as session:
            row = await session.get(models.ExternalCRMSync, sync_id)
            if row is None:
                raise NotFoundError("ExternalCRMSync", sync_id)
            for field, value in changes.items():
                if field == "sync_data":
                    value = _json(value)
                elif hasattr(value, "value"):
                    value = value.value
                setattr(row, field, value)
            await session.commit()
            return ExternalCRMSync.model_validate(row)
