# tests/services/test_journey.py
"""
Tests for JourneyTracker

Run with: pytest tests/services/test_journey.py -v
"""

import pytest
from uuid import uuid4

from leadintel.exceptions import ConcurrencyError, NotFoundError
from leadintel.schemas import (
    ConversionStageData,
    JourneyStageType,
    KeywordStageData,
    Lead,
    TouchpointStageData,
)
from leadintel.services.journey import JourneyTracker, journey_completion


@pytest.fixture
def tracker(repository):
    return JourneyTracker(repository)


@pytest.mark.parametrize("stage_types,expected", [
    ([], 0),
    ([JourneyStageType.KEYWORD], 33),
    ([JourneyStageType.KEYWORD, JourneyStageType.KEYWORD], 33),
    ([JourneyStageType.KEYWORD, JourneyStageType.TOUCHPOINT], 66),
    ([JourneyStageType.TOUCHPOINT, JourneyStageType.CONVERSION], 67),
    (list(JourneyStageType), 100),
])
def test_journey_completion(stage_types, expected):
    assert journey_completion(stage_types) == expected


@pytest.mark.asyncio
async def test_stages_numbered_in_order(tracker, repository):
    lead = await repository.create_lead(Lead(email="a@x.com"))

    await tracker.add_stage(lead.id, KeywordStageData(source="lead_locator", keywords=["seo"]))
    await tracker.add_stage(lead.id, TouchpointStageData(activity_type="demo_request", score_change=15, new_score=15))
    await tracker.add_stage(lead.id, ConversionStageData(from_status="new", to_status="qualified"))

    journey = await tracker.get_journey(lead.id)

    assert [s.sequence_order for s in journey.stages] == [1, 2, 3]
    assert [s.stage for s in journey.stages] == list(JourneyStageType)
    assert journey.completion == 100


@pytest.mark.asyncio
async def test_explicit_sequence_collision_raises(tracker, repository):
    lead = await repository.create_lead(Lead(email="a@x.com"))
    await tracker.add_stage(lead.id, KeywordStageData(source="manual"), sequence_order=1)

    with pytest.raises(ConcurrencyError):
        await tracker.add_stage(lead.id, KeywordStageData(source="manual"), sequence_order=1)


@pytest.mark.asyncio
async def test_unknown_lead_journey(tracker):
    with pytest.raises(NotFoundError):
        await tracker.get_journey(uuid4())


@pytest.mark.asyncio
async def test_pipeline_journey_reaches_full_completion(pipeline, make_candidate):
    result = await pipeline.process_lead_through_pipeline(make_candidate(intent_score=50))
    lead_id = result.lead.id

    assert (await pipeline.get_lead_journey(lead_id)).completion == 33

    await pipeline.apply_activity(lead_id, "email_engagement", {"clicked": True})
    assert (await pipeline.get_lead_journey(lead_id)).completion == 66

    await pipeline.update_lead_status(lead_id, "qualified")
    journey = await pipeline.get_lead_journey(lead_id)
    assert journey.completion == 100
    assert journey.stages[-1].stage_data.to_status == "qualified"
