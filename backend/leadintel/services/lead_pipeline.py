# backend/leadintel/services/lead_pipeline.py
"""
Lead Intelligence Pipeline orchestrator.

Entry points consumed by the HTTP layer and the monitoring loop:

Leads:
- aggregate_leads_from_sources()      pull all channels, create or merge, journey seed
- process_lead_through_pipeline()     one candidate: create or merge, journey, task rules
- update_lead_score()                 activity -> score, touchpoint, crossing alert
- match_and_deduplicate_leads()       merge-only lookup, no journey/task side effects
- gather_lead_intelligence()          read-only search over intelligence channels
- update_lead_status()                status change, conversion stage, proposal task

Competitors:
- handle_competitor_change()          alert + delivery, gated task, gated playbook
- create_competitor_alert()           same, returning only the alert

CRM:
- sync_lead_to_external_crm()         pending row now, outcome in the background
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from leadintel.config import settings
from leadintel.exceptions import ConcurrencyError, NotFoundError, ValidationError
from leadintel.repositories.base import LeadIntelRepository
from leadintel.schemas import (
    Alert,
    AlertSeverity,
    CompetitorChange,
    CompetitorMonitorConfig,
    CompetitorResponse,
    ConversionStageData,
    ExternalCRMSync,
    FollowUpTask,
    JourneyResponse,
    JourneyStageType,
    KeywordStageData,
    Lead,
    LeadAnalytics,
    LeadCandidate,
    LeadSearchFilters,
    LeadSource,
    LeadStatus,
    ManualFollowUpCreate,
    MatchResult,
    PipelineResult,
    Playbook,
    PlaybookStatus,
    Task,
    TaskStatus,
)
from leadintel.services.alert_dispatcher import AlertDispatcher
from leadintel.services.crm_sync import CRMSyncTracker
from leadintel.services.deduplication import DeduplicationEngine, ResolutionResult
from leadintel.services.identity_cache import IdentityCache
from leadintel.services.journey import JourneyTracker
from leadintel.services.normalization import normalization_service
from leadintel.services.playbook_generator import PlaybookGenerator
from leadintel.services.scoring import IntentScoringEngine, ScoreUpdate
from leadintel.services.source_aggregator import SourceAggregator
from leadintel.services.task_generator import TaskGenerator

logger = logging.getLogger(__name__)

# Entering these statuses appends a conversion stage
CONVERSION_STATUSES = {LeadStatus.QUALIFIED, LeadStatus.CLOSED_WON}


class LeadPipeline:
    """Wires the pipeline components over one repository."""

    def __init__(
        self,
        repository: LeadIntelRepository,
        aggregator: Optional[SourceAggregator] = None,
        alert_dispatcher: Optional[AlertDispatcher] = None,
        crm_sync: Optional[CRMSyncTracker] = None,
        identity_cache: Optional[IdentityCache] = None
    ):
        self.repository = repository
        self.aggregator = aggregator or SourceAggregator()
        self.journey = JourneyTracker(repository)
        self.tasks = TaskGenerator(repository)
        self.deduplication = DeduplicationEngine(repository, identity_cache=identity_cache)
        self.scoring = IntentScoringEngine(repository, self.journey, self.tasks)
        self.playbooks = PlaybookGenerator(repository)
        self.alerts = alert_dispatcher or AlertDispatcher(repository)
        self.crm_sync = crm_sync or CRMSyncTracker(repository)

    # ========================================================================
    # INGESTION
    # ========================================================================

    async def _ingest(self, candidate: LeadCandidate) -> ResolutionResult:
        """Create or merge, record the sighting and append a keyword stage."""
        result = await self.deduplication.resolve(candidate)
        lead = result.lead

        await self.repository.create_lead_source(LeadSource(
            lead_id=lead.id,
            source_type=candidate.source,
            source_id=candidate.source_id or f"{candidate.source}_{int(datetime.utcnow().timestamp() * 1000)}",
            source_data=candidate.source_data,
        ))

        await self.journey.add_stage(lead.id, KeywordStageData(
            source=candidate.source,
            keywords=candidate.keywords,
            intent_signals=candidate.source_data,
            enrichment=candidate.enrichment_data,
        ))

        return result

    async def aggregate_leads_from_sources(self) -> List[Lead]:
        """
        Pull candidates from every configured channel and ingest them.

        Returns only leads created by this call; merged sightings update
        existing leads but are not returned.
        """
        candidates = await self.aggregator.collect_candidates()
        created = []

        for candidate in candidates:
            result = await self._ingest(candidate)
            if result.created:
                created.append(result.lead)

        logger.info(f"Aggregated {len(candidates)} candidates: {len(created)} new leads")
        return created

    async def process_lead_through_pipeline(self, candidate: LeadCandidate) -> PipelineResult:
        """
        Run one candidate through create-or-merge, journey and task rules.

        Raises:
            ValidationError: candidate without identity or with an out-of-range score
        """
        candidate = normalization_service.normalize_candidate(candidate)
        logger.info(f"Processing lead through pipeline: {candidate.name or candidate.email or candidate.phone}")

        result = await self._ingest(candidate)
        tasks = await self.tasks.generate_lead_tasks(result.lead, candidate)

        logger.info(f"Lead processed successfully: {result.lead.id} ({len(tasks)} tasks)")
        return PipelineResult(lead=result.lead, tasks=tasks, is_new=result.created)

    async def match_and_deduplicate_leads(self, candidate: LeadCandidate) -> MatchResult:
        candidate = normalization_service.normalize_candidate(candidate)
        return await self.deduplication.match_and_deduplicate(candidate)

    async def gather_lead_intelligence(self, filters: LeadSearchFilters) -> List[LeadCandidate]:
        return await self.aggregator.gather_lead_intelligence(filters)

    # ========================================================================
    # SCORING AND STATUS
    # ========================================================================

    async def apply_activity(
        self,
        lead_id: UUID,
        activity_type: str,
        activity_details: Optional[Dict[str, Any]] = None
    ) -> ScoreUpdate:
        return await self.scoring.update_score(lead_id, activity_type, activity_details)

    async def update_lead_score(
        self,
        lead_id: UUID,
        activity_type: str,
        activity_details: Optional[Dict[str, Any]] = None
    ) -> int:
        """Apply one activity and return the new intent score."""
        update = await self.apply_activity(lead_id, activity_type, activity_details)
        return update.new_score

    async def update_lead_status(self, lead_id: UUID, status: str, note: Optional[str] = None) -> Lead:
        """
        Move a lead to a new pipeline status.

        Entering qualified or closed_won appends a conversion stage;
        entering qualified also queues a "prepare proposal" follow-up.
        """
        try:
            new_status = LeadStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown lead status '{status}'") from None

        for attempt in range(1, settings.MERGE_MAX_RETRIES + 1):
            lead = await self.get_lead(lead_id)
            if lead.status == new_status:
                return lead

            updates = {"status": new_status, "updated_at": datetime.utcnow()}
            if note:
                updates["notes"] = f"{lead.notes}\n{note}" if lead.notes else note
            try:
                saved = await self.repository.update_lead(
                    lead.model_copy(update=updates), expected_version=lead.version
                )
                break
            except ConcurrencyError:
                if attempt == settings.MERGE_MAX_RETRIES:
                    raise
                logger.warning(f"Status update conflict for lead {lead_id}, retrying")

        logger.info(f"Lead {lead_id} status {lead.status.value} -> {new_status.value}")

        if new_status in CONVERSION_STATUSES:
            await self.journey.add_stage(lead_id, ConversionStageData(
                from_status=lead.status.value,
                to_status=new_status.value,
                note=note,
            ))
        if new_status == LeadStatus.QUALIFIED:
            await self.tasks.create_proposal_task(saved)

        return saved

    # ========================================================================
    # READS
    # ========================================================================

    async def get_lead(self, lead_id: UUID) -> Lead:
        lead = await self.repository.get_lead(lead_id)
        if lead is None:
            raise NotFoundError("Lead", lead_id)
        return lead

    async def list_leads(self, status: Optional[LeadStatus] = None) -> List[Lead]:
        return await self.repository.list_leads(statuses=[status] if status else None)

    async def get_lead_sources(self, lead_id: UUID) -> List[LeadSource]:
        await self.get_lead(lead_id)
        return await self.repository.list_lead_sources(lead_id)

    async def get_lead_journey(self, lead_id: UUID) -> JourneyResponse:
        return await self.journey.get_journey(lead_id)

    # ========================================================================
    # TASKS
    # ========================================================================

    async def get_lead_follow_up_tasks(self, lead_id: UUID) -> List[FollowUpTask]:
        return await self.tasks.get_lead_follow_up_tasks(lead_id)

    async def create_manual_follow_up_task(self, lead_id: UUID, data: ManualFollowUpCreate):
        return await self.tasks.create_manual_follow_up(lead_id, data)

    async def generate_time_based_follow_ups(self, now: Optional[datetime] = None) -> List[Task]:
        return await self.tasks.generate_time_based_follow_ups(now)

    async def list_tasks(
        self,
        status: Optional[TaskStatus] = None,
        category: Optional[str] = None,
        lead_id: Optional[UUID] = None
    ) -> List[Task]:
        return await self.repository.list_tasks(status=status, category=category, lead_id=lead_id)

    async def update_task_status(self, task_id: UUID, status: TaskStatus) -> Task:
        return await self.tasks.update_task_status(task_id, status)

    # ========================================================================
    # COMPETITOR CHANGES
    # ========================================================================

    async def handle_competitor_change(
        self,
        change: CompetitorChange,
        config: CompetitorMonitorConfig
    ) -> CompetitorResponse:
        """
        React to one detected change.

        The alert is always created and delivered. A response task is added
        when auto-tasking is on and impact >= AUTO_TASK_IMPACT_THRESHOLD; a
        draft playbook when auto-playbooks are on and impact >=
        PLAYBOOK_IMPACT_THRESHOLD. Both may fire for the same change.
        """
        alert = await self.alerts.create_alert(change, config)
        deliveries = await self.alerts.deliver(alert)

        task = None
        if config.auto_create_tasks and change.impact_score >= settings.AUTO_TASK_IMPACT_THRESHOLD:
            task = await self.tasks.create_competitor_task(alert, change, config)

        playbook = None
        if config.auto_generate_playbooks and change.impact_score >= settings.PLAYBOOK_IMPACT_THRESHOLD:
            playbook = await self.playbooks.generate_playbook(change, config, alert)

        stored = await self.alerts.get_alert(alert.id)
        return CompetitorResponse(alert=stored, task=task, playbook=playbook, deliveries=deliveries)

    async def create_competitor_alert(
        self,
        change: CompetitorChange,
        config: CompetitorMonitorConfig
    ) -> Alert:
        response = await self.handle_competitor_change(change, config)
        return response.alert

    async def list_alerts(
        self,
        unread_only: bool = False,
        severity: Optional[AlertSeverity] = None,
        alert_type: Optional[str] = None
    ) -> List[Alert]:
        return await self.alerts.list_alerts(unread_only=unread_only, severity=severity, alert_type=alert_type)

    async def mark_alert_read(self, alert_id: UUID) -> Alert:
        return await self.alerts.mark_alert_read(alert_id)

    async def list_playbooks(self, active_only: bool = False) -> List[Playbook]:
        return await self.playbooks.list_playbooks(active_only)

    async def get_playbook(self, playbook_id: UUID) -> Playbook:
        return await self.playbooks.get_playbook(playbook_id)

    async def update_playbook_status(self, playbook_id: UUID, status: PlaybookStatus) -> Playbook:
        return await self.playbooks.update_playbook_status(playbook_id, status)

    async def assign_playbook_action(self, playbook_id: UUID, action_id: UUID, assigned_to: str) -> Playbook:
        return await self.playbooks.assign_action(playbook_id, action_id, assigned_to)

    # ========================================================================
    # CRM SYNC
    # ========================================================================

    async def sync_lead_to_external_crm(self, lead_id: UUID, system: str) -> ExternalCRMSync:
        return await self.crm_sync.sync_lead(lead_id, system)

    async def get_lead_crm_sync_status(self, lead_id: UUID) -> List[ExternalCRMSync]:
        await self.get_lead(lead_id)
        return await self.crm_sync.get_lead_crm_sync_status(lead_id)

    # ========================================================================
    # ANALYTICS
    # ========================================================================

    async def get_lead_analytics(self) -> LeadAnalytics:
        """
        Pipeline-wide counts.

        journey_completion is the percentage of leads with any journey
        that reached a conversion stage.
        """
        leads = await self.repository.list_leads()
        sources = await self.repository.list_lead_sources()
        stages = await self.repository.list_journey_stages()

        analytics = LeadAnalytics(total_leads=len(leads))

        for lead in leads:
            key = lead.status.value
            analytics.by_status[key] = analytics.by_status.get(key, 0) + 1
        if leads:
            analytics.avg_intent_score = round(sum(l.intent_score for l in leads) / len(leads), 2)

        for source in sources:
            analytics.by_source[source.source_type] = analytics.by_source.get(source.source_type, 0) + 1

        journeyed = {s.lead_id for s in stages}
        converted = {s.lead_id for s in stages if s.stage == JourneyStageType.CONVERSION}
        if journeyed:
            analytics.journey_completion = round(len(converted) / len(journeyed) * 100, 2)

        return analytics
