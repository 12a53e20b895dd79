"""Lead journey tracking: append-only stage timeline and completion."""

import logging
from typing import Iterable, Optional
from uuid import UUID

from leadintel.config import settings
from leadintel.exceptions import ConcurrencyError, NotFoundError
from leadintel.repositories.base import LeadIntelRepository
from leadintel.schemas import JourneyResponse, JourneyStage, JourneyStageType, StageData

logger = logging.getLogger(__name__)

# Percentage contributed by the presence of each stage type
STAGE_WEIGHTS = {
    JourneyStageType.KEYWORD: 33,
    JourneyStageType.TOUCHPOINT: 33,
    JourneyStageType.CONVERSION: 34,
}


def journey_completion(stage_types: Iterable[JourneyStageType]) -> int:
    """Completion percentage from the distinct stage types present."""
    present = {JourneyStageType(stage_type) for stage_type in stage_types}
    return min(100, sum(STAGE_WEIGHTS[stage_type] for stage_type in present))


class JourneyTracker:
    """Append stages to a lead's timeline and read it back in order."""

    def __init__(self, repository: LeadIntelRepository, max_retries: int = None):
        self.repository = repository
        self.max_retries = max_retries or settings.MERGE_MAX_RETRIES

    async def add_stage(
        self,
        lead_id: UUID,
        stage_data: StageData,
        sequence_order: Optional[int] = None
    ) -> JourneyStage:
        """
        Append one immutable stage.

        With no explicit sequence_order the repository allocates the next
        per-lead value; a collision with a concurrent writer is retried.
        An explicit sequence_order that is already taken raises
        ConcurrencyError unchanged.
        """
        stage = JourneyStage(
            lead_id=lead_id,
            stage=JourneyStageType(stage_data.stage),
            stage_data=stage_data,
            sequence_order=sequence_order,
        )

        attempts = 1 if sequence_order is not None else self.max_retries
        for attempt in range(1, attempts + 1):
            try:
                saved = await self.repository.create_journey_stage(stage)
                logger.info(
                    f"Journey stage {saved.stage.value} #{saved.sequence_order} recorded for lead {lead_id}"
                )
                return saved
            except ConcurrencyError:
                if attempt == attempts:
                    raise
                logger.warning(f"Journey sequence collision for lead {lead_id}, retrying ({attempt}/{attempts})")

    async def get_journey(self, lead_id: UUID) -> JourneyResponse:
        """Ordered stages plus completion. Raises NotFoundError for unknown leads."""
        if await self.repository.get_lead(lead_id) is None:
            raise NotFoundError("Lead", lead_id)

        stages = await self.repository.list_journey_stages(lead_id)
        return JourneyResponse(
            lead_id=lead_id,
            stages=stages,
            completion=journey_completion(s.stage for s in stages),
        )

    async def completion(self, lead_id: UUID) -> int:
        stages = await self.repository.list_journey_stages(lead_id)
        return journey_completion(s.stage for s in stages)
