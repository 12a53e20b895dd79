# tests/services/test_scoring.py
"""
Tests for IntentScoringEngine

Coverage:
- Activity deltas per variant
- Clamping to [0, 100]
- Touchpoint stage recording
- High-intent crossing fires exactly on old < 85 <= new
- Unknown activities rejected without writes

Run with: pytest tests/services/test_scoring.py -v
"""

import pytest
from uuid import uuid4

from leadintel.exceptions import NotFoundError, ValidationError
from leadintel.schemas import Lead, build_activity
from leadintel.services.scoring import clamp_score, crossed_upward


async def _seed_lead(repository, score):
    return await repository.create_lead(Lead(email=f"{uuid4().hex[:8]}@x.com", intent_score=score))


class TestActivityDeltas:

    @pytest.mark.parametrize("activity_type,details,expected", [
        ("website_visit", {"pages_visited": 5}, 5),
        ("website_visit", {"pages_visited": 3}, 2),
        ("email_engagement", {"clicked": True}, 8),
        ("email_engagement", {}, 3),
        ("content_download", {"asset": "whitepaper.pdf"}, 10),
        ("demo_request", {}, 15),
        ("manual_adjustment", {"delta": -12, "reason": "bounced"}, -12),
    ])
    def test_score_delta(self, activity_type, details, expected):
        assert build_activity(activity_type, details).score_delta() == expected

    def test_unknown_activity_rejected(self):
        with pytest.raises(ValidationError):
            build_activity("carrier_pigeon", {})

    def test_adjustment_requires_delta(self):
        with pytest.raises(ValidationError):
            build_activity("manual_adjustment", {"reason": "no delta"})


class TestThresholds:

    def test_clamp(self):
        assert clamp_score(120) == 100
        assert clamp_score(-5) == 0
        assert clamp_score(42) == 42

    @pytest.mark.parametrize("old,new,fires", [
        (84, 85, True),
        (78, 93, True),
        (85, 90, False),
        (90, 80, False),
        (70, 84, False),
    ])
    def test_crossed_upward(self, old, new, fires):
        assert crossed_upward(old, new) is fires


class TestUpdateScore:

    @pytest.mark.asyncio
    async def test_demo_request_crosses_high_intent(self, pipeline, repository):
        lead = await _seed_lead(repository, 78)

        update = await pipeline.apply_activity(lead.id, "demo_request", {})

        assert update.old_score == 78
        assert update.new_score == 93
        assert update.alert_task is not None
        assert update.alert_task.priority == 5
        assert update.alert_task.category == "alert"

        stored = await repository.get_lead(lead.id)
        assert stored.intent_score == 93
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_touchpoint_stage_recorded(self, pipeline, repository):
        lead = await _seed_lead(repository, 10)

        update = await pipeline.apply_activity(lead.id, "website_visit", {"pages_visited": 4})

        assert update.stage.stage.value == "touchpoint"
        assert update.stage.stage_data.score_change == 5
        assert update.stage.stage_data.new_score == 15
        assert update.stage.stage_data.activity_details["pages_visited"] == 4

    @pytest.mark.asyncio
    async def test_clamped_change_recorded_on_stage(self, pipeline, repository):
        lead = await _seed_lead(repository, 95)

        update = await pipeline.apply_activity(lead.id, "demo_request", {})

        assert update.new_score == 100
        assert update.delta == 15
        assert update.stage.stage_data.score_change == 5

    @pytest.mark.asyncio
    async def test_crossing_fires_once_per_upward_crossing(self, pipeline, repository):
        lead = await _seed_lead(repository, 70)

        fired = []
        for delta in (20, -10, 12, 3):
            update = await pipeline.apply_activity(lead.id, "manual_adjustment", {"delta": delta})
            fired.append(update.alert_task is not None)

        # 70 -> 90 -> 80 -> 92 -> 95
        assert fired == [True, False, True, False]
        alerts = await repository.list_tasks(category="alert", lead_id=lead.id)
        assert len(alerts) == 2

    @pytest.mark.asyncio
    async def test_update_lead_score_returns_new_score(self, pipeline, repository):
        lead = await _seed_lead(repository, 40)
        assert await pipeline.update_lead_score(lead.id, "content_download") == 50

    @pytest.mark.asyncio
    async def test_unknown_activity_writes_nothing(self, pipeline, repository):
        lead = await _seed_lead(repository, 40)

        with pytest.raises(ValidationError):
            await pipeline.apply_activity(lead.id, "carrier_pigeon", {})

        stored = await repository.get_lead(lead.id)
        assert stored.intent_score == 40
        assert await repository.list_journey_stages(lead.id) == []

    @pytest.mark.asyncio
    async def test_unknown_lead(self, pipeline):
        with pytest.raises(NotFoundError):
            await pipeline.apply_activity(uuid4(), "demo_request", {})
