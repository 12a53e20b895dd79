"""
Intent scoring from activity events.

Each activity variant knows its own delta (see schemas.activity). The
engine applies the delta, clamps to [0, 100], records a touchpoint stage
and raises a high-intent alert task on an upward crossing of
HIGH_INTENT_THRESHOLD (old < threshold <= new). Staying above, dropping
below, or rising again without having dropped below never re-fires.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from leadintel.config import settings
from leadintel.exceptions import ConcurrencyError, NotFoundError
from leadintel.repositories.base import LeadIntelRepository
from leadintel.schemas import JourneyStage, Lead, Task, TouchpointStageData, build_activity
from leadintel.services.journey import JourneyTracker
from leadintel.services.task_generator import TaskGenerator

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100


def clamp_score(value: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, value))


def crossed_upward(old_score: int, new_score: int, threshold: int = None) -> bool:
    threshold = settings.HIGH_INTENT_THRESHOLD if threshold is None else threshold
    return old_score < threshold <= new_score


@dataclass
class ScoreUpdate:
    """Result of applying one activity to a lead."""
    lead: Lead
    old_score: int
    new_score: int
    delta: int
    stage: JourneyStage
    alert_task: Optional[Task] = None


class IntentScoringEngine:
    """Apply activity deltas to lead intent scores."""

    def __init__(
        self,
        repository: LeadIntelRepository,
        journey: JourneyTracker,
        task_generator: TaskGenerator,
        max_retries: int = None
    ):
        self.repository = repository
        self.journey = journey
        self.task_generator = task_generator
        self.max_retries = max_retries or settings.MERGE_MAX_RETRIES

    async def _apply(self, lead_id: UUID, delta: int):
        """Version-checked read-modify-write of the score; returns (before, after)."""
        for attempt in range(1, self.max_retries + 1):
            lead = await self.repository.get_lead(lead_id)
            if lead is None:
                raise NotFoundError("Lead", lead_id)

            new_score = clamp_score(lead.intent_score + delta)
            updated = lead.model_copy(update={"intent_score": new_score, "updated_at": datetime.utcnow()})
            try:
                saved = await self.repository.update_lead(updated, expected_version=lead.version)
                return lead, saved
            except ConcurrencyError as e:
                if attempt == self.max_retries:
                    raise
                logger.warning(f"Score update conflict for lead {lead_id} ({attempt}/{self.max_retries}): {e}")

    async def update_score(
        self,
        lead_id: UUID,
        activity_type: str,
        activity_details: Optional[Dict[str, Any]] = None
    ) -> ScoreUpdate:
        """
        Apply one activity event.

        Args:
            lead_id: Lead to score
            activity_type: website_visit, email_engagement, content_download,
                demo_request or manual_adjustment
            activity_details: Variant fields (pages_visited, clicked, delta, ...)

        Returns:
            ScoreUpdate with the touchpoint stage and any alert task

        Raises:
            ValidationError: unknown activity or malformed details (nothing written)
            NotFoundError: lead does not exist
        """
        activity = build_activity(activity_type, activity_details)
        delta = activity.score_delta()

        before, after = await self._apply(lead_id, delta)
        old_score, new_score = before.intent_score, after.intent_score

        stage = await self.journey.add_stage(lead_id, TouchpointStageData(
            activity_type=activity.activity_type,
            activity_details=activity.details(),
            score_change=new_score - old_score,
            new_score=new_score,
        ))

        logger.info(f"Lead {lead_id} score {old_score} -> {new_score} after {activity.activity_type}")

        alert_task = None
        if crossed_upward(old_score, new_score):
            alert_task = await self.task_generator.create_score_alert_task(
                after, old_score, new_score, activity.activity_type, new_score - old_score
            )

        return ScoreUpdate(
            lead=after,
            old_score=old_score,
            new_score=new_score,
            delta=delta,
            stage=stage,
            alert_task=alert_task,
        )
