"""
Rule-driven follow-up task generation.

Lead-driven rules (evaluated after every ingestion):
    high_intent_outreach  intent_score >= HIGH_INTENT_THRESHOLD   priority 5, due 24h
    company_research      enrichment has company_size             priority 3, due 3 days
    nurture               NURTURE_MIN_SCORE <= score < threshold  priority 2, due 2 days

A rule is skipped while the lead already holds an unfinished task produced
by the same rule, so re-ingesting a lead does not pile up duplicates.

Other producers: the score-crossing alert task, the competitor response
task, the "prepare proposal" task on qualification, the stale-lead
re-engage scan, and manual follow-ups.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from leadintel.config import settings
from leadintel.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from leadintel.repositories.base import LeadIntelRepository
from leadintel.schemas import (
    Alert,
    CompetitorChange,
    CompetitorMonitorConfig,
    FollowUpTask,
    Lead,
    LeadCandidate,
    LeadStatus,
    ManualFollowUpCreate,
    Task,
    TaskStatus,
    TriggerType,
)

logger = logging.getLogger(__name__)

RULE_HIGH_INTENT = "high_intent_outreach"
RULE_COMPANY_RESEARCH = "company_research"
RULE_NURTURE = "nurture"
RULE_SCORE_ALERT = "score_alert"
RULE_PREPARE_PROPOSAL = "prepare_proposal"
RULE_RE_ENGAGE = "re_engage"

# Lead statuses the stale scan looks at
STALE_SCAN_STATUSES = [LeadStatus.NEW, LeadStatus.CONTACTED]

TASK_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.DONE},
    TaskStatus.IN_PROGRESS: {TaskStatus.DONE},
    TaskStatus.DONE: set(),
}

OUTREACH_STEPS = [
    "Research company background and recent news",
    "Personalize outreach message based on keywords and intent signals",
    "Send initial connection request with value proposition",
    "Follow up within 24 hours with relevant case study",
]

RESEARCH_STEPS = [
    "Review company website and recent press releases",
    "Check LinkedIn for key decision makers",
    "Analyze competitor landscape in their industry",
    "Identify potential pain points and use cases",
]

NURTURE_STEPS = [
    "Send relevant industry report or whitepaper",
    "Invite to upcoming webinar or demo",
    "Share case study from similar company",
    "Schedule follow-up in 1 week",
]

PROPOSAL_STEPS = [
    "Confirm budget, authority and timeline with the lead",
    "Draft proposal tailored to the lead's stated needs",
    "Review pricing and terms internally",
    "Send proposal and schedule walkthrough call",
]

RE_ENGAGE_STEPS = [
    "Review lead history and last touchpoint",
    "Send a re-engagement message with fresh content",
    "Decide whether to keep nurturing or close out",
]


def competitor_task_priority(impact_score: float) -> int:
    if impact_score >= 8.5:
        return 5
    if impact_score >= 6.5:
        return 4
    return 3


def competitor_response_steps(competitor_name: str, change_type: str) -> List[str]:
    label = change_type.replace("_", " ")
    return [
        f"Deep-dive analysis of {competitor_name}'s {label}",
        "Assess competitive impact on our market position",
        "Develop counter-strategy recommendations",
        "Implement responsive marketing actions",
        "Monitor competitive response and adjust tactics",
        "Update competitor intelligence database",
    ]


def _display_name(lead: Lead) -> str:
    return lead.name or lead.email or lead.phone or str(lead.id)


def _with_company(text: str, lead: Lead) -> str:
    return f"{text} ({lead.company})" if lead.company else text


class TaskGenerator:
    """Create tasks and their lead links from pipeline events."""

    def __init__(self, repository: LeadIntelRepository):
        self.repository = repository

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _open_rule_task_exists(self, lead_id: UUID, rule: str) -> bool:
        tasks = await self.repository.list_tasks(lead_id=lead_id)
        return any(
            t.related_entities.get("rule") == rule and t.status != TaskStatus.DONE
            for t in tasks
        )

    async def _create_lead_task(
        self,
        lead: Lead,
        task: Task,
        trigger_type: TriggerType,
        trigger_condition: Dict[str, Any],
        auto_generated: bool = True
    ) -> Tuple[Task, FollowUpTask]:
        if not 1 <= task.priority <= 5:
            raise ValidationError(f"Task priority must be between 1 and 5, got {task.priority}")

        saved = await self.repository.create_task(task)
        link = await self.repository.create_follow_up(FollowUpTask(
            lead_id=lead.id,
            task_id=saved.id,
            trigger_type=trigger_type,
            trigger_condition=trigger_condition,
            auto_generated=auto_generated,
        ))
        logger.info(f"Task '{saved.title}' (priority {saved.priority}) created for lead {lead.id}")
        return saved, link

    # ------------------------------------------------------------------
    # Lead-driven rules
    # ------------------------------------------------------------------

    async def generate_lead_tasks(self, lead: Lead, candidate: LeadCandidate) -> List[Task]:
        """
        Apply the lead-driven rules in order.

        Args:
            lead: The lead as stored after create-or-merge
            candidate: The candidate that produced this ingestion

        Returns:
            Tasks created by this call (0-3)
        """
        now = datetime.utcnow()
        score = lead.intent_score
        company_size = candidate.enrichment_data.get("company_size")
        keywords = candidate.keywords or lead.tags

        planned = []

        if score >= settings.HIGH_INTENT_THRESHOLD:
            planned.append((RULE_HIGH_INTENT, Task(
                title=_with_company(f"High-Intent Outreach: {_display_name(lead)}", lead),
                description=(
                    f"Immediate outreach required for high-intent lead. "
                    f"Keywords: {', '.join(keywords)}. Intent score: {score}"
                ),
                priority=5,
                category="outreach",
                estimated_impact="High - Qualified prospect with strong buying signals",
                execution_steps=OUTREACH_STEPS,
                due_date=now + timedelta(hours=settings.OUTREACH_DUE_HOURS),
                related_entities={
                    "lead_id": str(lead.id),
                    "rule": RULE_HIGH_INTENT,
                    "intent_score": score,
                    "keywords": keywords,
                },
            )))

        if company_size:
            revenue = candidate.enrichment_data.get("revenue_estimate", "unknown")
            planned.append((RULE_COMPANY_RESEARCH, Task(
                title=f"Company Research: {lead.company or _display_name(lead)}",
                description=(
                    f"Deep dive research on {lead.company or _display_name(lead)} - {company_size} employees, "
                    f"{revenue} revenue"
                ),
                priority=3,
                category="research",
                estimated_impact="Medium - Better qualification and personalization",
                execution_steps=RESEARCH_STEPS,
                due_date=now + timedelta(days=settings.RESEARCH_DUE_DAYS),
                related_entities={
                    "lead_id": str(lead.id),
                    "rule": RULE_COMPANY_RESEARCH,
                    "company_data": candidate.enrichment_data,
                },
            )))

        if settings.NURTURE_MIN_SCORE <= score < settings.HIGH_INTENT_THRESHOLD:
            planned.append((RULE_NURTURE, Task(
                title=f"Lead Nurturing: {_display_name(lead)}",
                description=(
                    f"Nurture medium-intent lead with relevant content. "
                    f"Focus areas: {', '.join(keywords[:2])}"
                ),
                priority=2,
                category="nurturing",
                estimated_impact="Medium - Build relationship and increase intent",
                execution_steps=NURTURE_STEPS,
                due_date=now + timedelta(days=settings.NURTURE_DUE_DAYS),
                related_entities={
                    "lead_id": str(lead.id),
                    "rule": RULE_NURTURE,
                    "nurturing_focus": keywords,
                },
            )))

        created = []
        for rule, task in planned:
            if await self._open_rule_task_exists(lead.id, rule):
                logger.debug(f"Rule {rule} already has an open task for lead {lead.id}")
                continue
            saved, _ = await self._create_lead_task(
                lead, task, TriggerType.STATUS_CHANGE, {"rule": rule, "intent_score": score}
            )
            created.append(saved)

        return created

    # ------------------------------------------------------------------
    # Score crossing
    # ------------------------------------------------------------------

    async def create_score_alert_task(
        self,
        lead: Lead,
        old_score: int,
        new_score: int,
        activity_type: str,
        score_change: int
    ) -> Task:
        """High-intent alert task for an upward crossing of the threshold."""
        task = Task(
            title=f"Score Alert: {_display_name(lead)} reached high intent ({new_score})",
            description=(
                f"Lead score increased to {new_score} due to {activity_type}. "
                f"Immediate attention required."
            ),
            priority=5,
            category="alert",
            estimated_impact="Critical - Hot lead requires immediate action",
            due_date=datetime.utcnow() + timedelta(hours=settings.SCORE_ALERT_DUE_HOURS),
            related_entities={
                "lead_id": str(lead.id),
                "rule": RULE_SCORE_ALERT,
                "trigger_activity": activity_type,
                "score_change": score_change,
            },
        )
        saved, _ = await self._create_lead_task(
            lead, task, TriggerType.SCORE_CHANGE,
            {"threshold": settings.HIGH_INTENT_THRESHOLD, "from_score": old_score, "to_score": new_score}
        )
        return saved

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    async def create_proposal_task(self, lead: Lead) -> Task:
        task = Task(
            title=_with_company(f"Prepare proposal: {_display_name(lead)}", lead),
            description=f"Lead qualified with intent score {lead.intent_score}. Prepare and send a proposal.",
            priority=4,
            category="sales",
            estimated_impact="High - Qualified lead ready for proposal",
            execution_steps=PROPOSAL_STEPS,
            due_date=datetime.utcnow() + timedelta(days=settings.PROPOSAL_DUE_DAYS),
            related_entities={"lead_id": str(lead.id), "rule": RULE_PREPARE_PROPOSAL},
        )
        saved, _ = await self._create_lead_task(
            lead, task, TriggerType.STATUS_CHANGE,
            {"rule": RULE_PREPARE_PROPOSAL, "to_status": LeadStatus.QUALIFIED.value}
        )
        return saved

    # ------------------------------------------------------------------
    # Competitor changes
    # ------------------------------------------------------------------

    async def create_competitor_task(
        self,
        alert: Alert,
        change: CompetitorChange,
        config: CompetitorMonitorConfig
    ) -> Task:
        """Single response task with the fixed six-step checklist."""
        task = Task(
            title=f"Respond to {config.competitor_name} {change.change_type.replace('_', ' ')}",
            description=f"Analyze and respond to competitor change: {change.description}",
            priority=competitor_task_priority(change.impact_score),
            category="competitor_analysis",
            estimated_impact="high" if change.impact_score >= 8.5 else "medium",
            execution_steps=competitor_response_steps(config.competitor_name, change.change_type),
            related_entities={
                "alert_id": str(alert.id),
                "competitor_id": change.competitor_id,
                "change_type": change.change_type,
                "impact_score": change.impact_score,
            },
        )
        saved = await self.repository.create_task(task)
        logger.info(f"Competitor task '{saved.title}' created with priority {saved.priority}")
        return saved

    # ------------------------------------------------------------------
    # Manual and time-based follow-ups
    # ------------------------------------------------------------------

    async def create_manual_follow_up(
        self,
        lead_id: UUID,
        data: ManualFollowUpCreate
    ) -> Tuple[Task, FollowUpTask]:
        lead = await self.repository.get_lead(lead_id)
        if lead is None:
            raise NotFoundError("Lead", lead_id)

        task = Task(
            title=data.title,
            description=data.description,
            priority=data.priority,
            category="follow_up",
            due_date=data.due_date,
            related_entities={"lead_id": str(lead_id), "trigger_type": TriggerType.MANUAL.value},
        )
        return await self._create_lead_task(
            lead, task, TriggerType.MANUAL, {"created_manually": True}, auto_generated=False
        )

    async def generate_time_based_follow_ups(self, now: Optional[datetime] = None) -> List[Task]:
        """Re-engage tasks for leads idle longer than STALE_LEAD_DAYS."""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(days=settings.STALE_LEAD_DAYS)

        stale = await self.repository.list_leads(statuses=STALE_SCAN_STATUSES, updated_before=cutoff)
        created = []

        for lead in stale:
            if await self._open_rule_task_exists(lead.id, RULE_RE_ENGAGE):
                continue

            idle_days = (now - lead.updated_at).days
            task = Task(
                title=f"Re-engage stale lead: {_display_name(lead)}",
                description=f"No activity for {idle_days} days while in status '{lead.status.value}'.",
                priority=2,
                category="follow_up",
                estimated_impact="Low - Recover dormant pipeline",
                execution_steps=RE_ENGAGE_STEPS,
                due_date=now + timedelta(days=1),
                related_entities={"lead_id": str(lead.id), "rule": RULE_RE_ENGAGE},
            )
            saved, _ = await self._create_lead_task(
                lead, task, TriggerType.TIME_BASED,
                {"rule": RULE_RE_ENGAGE, "idle_days": idle_days, "stale_after_days": settings.STALE_LEAD_DAYS}
            )
            created.append(saved)

        logger.info(f"Stale lead scan created {len(created)} follow-up tasks")
        return created

    async def get_lead_follow_up_tasks(self, lead_id: UUID) -> List[FollowUpTask]:
        if await self.repository.get_lead(lead_id) is None:
            raise NotFoundError("Lead", lead_id)
        return await self.repository.list_follow_ups(lead_id)

    # ------------------------------------------------------------------
    # Task status
    # ------------------------------------------------------------------

    async def update_task_status(self, task_id: UUID, status: TaskStatus) -> Task:
        task = await self.repository.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)

        if task.status == status:
            return task
        if status not in TASK_TRANSITIONS[task.status]:
            raise InvalidTransitionError("Task", task.status.value, status.value)

        updated = await self.repository.update_task_status(task_id, status)
        logger.info(f"Task {task_id} moved {task.status.value} -> {status.value}")
        return updated
