# tests/services/test_competitor_monitoring.py
"""
Tests for competitor change handling, detectors and the monitoring loop

Coverage:
- Task/playbook gates on impact and config flags
- Snapshot detectors (baseline, diff, impact weighting)
- Simulated change source
- CompetitorMonitor tick isolation, thresholds, start/stop

Run with: pytest tests/services/test_competitor_monitoring.py -v
"""

import pytest
import random
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from leadintel.schemas import AlertSeverity, CompetitorChange, PlaybookPriority
from leadintel.scheduler import CompetitorMonitor, MONITOR_JOB_ID
from leadintel.services.change_detection import (
    AdCampaignChangeDetector,
    BusinessProfileChangeDetector,
    ChangeDetector,
    SimulatedChangeSource,
    WebsiteChangeDetector,
)


class FixedDetector(ChangeDetector):
    """Yields the same changes on every tick"""

    def __init__(self, changes):
        self.changes = changes
        self.calls = 0

    async def detect(self, config):
        self.calls += 1
        return [c.model_copy(update={"competitor_id": config.competitor_id}) for c in self.changes]


class BrokenDetector(ChangeDetector):
    async def detect(self, config):
        raise RuntimeError("scraper blew up")


def _snapshots(*snapshots):
    """Snapshot provider that replays a sequence"""
    queue = list(snapshots)

    async def provider(config):
        return queue.pop(0) if queue else None
    return provider


# ============================================================================
# TEST: handle_competitor_change
# ============================================================================

class TestHandleChange:

    @pytest.mark.asyncio
    async def test_critical_change_full_response(self, pipeline, make_change, competitor_config):
        response = await pipeline.handle_competitor_change(make_change(impact_score=9.2), competitor_config)

        assert response.alert.severity == AlertSeverity.CRITICAL
        assert response.alert.delivery_status == {"email": "delivered", "slack": "delivered"}
        assert response.task.priority == 5
        assert response.task.category == "competitor_analysis"
        assert len(response.task.execution_steps) == 6
        assert response.task.related_entities["alert_id"] == str(response.alert.id)
        assert response.playbook.priority == PlaybookPriority.URGENT
        assert response.playbook.alert_id == response.alert.id

    @pytest.mark.asyncio
    async def test_low_impact_alert_only(self, pipeline, make_change, competitor_config):
        response = await pipeline.handle_competitor_change(make_change(impact_score=5.0), competitor_config)

        assert response.alert.severity == AlertSeverity.INFO
        assert response.task is None
        assert response.playbook is None

    @pytest.mark.asyncio
    async def test_impact_exactly_at_gate(self, pipeline, make_change, competitor_config):
        response = await pipeline.handle_competitor_change(make_change(impact_score=7.0), competitor_config)

        assert response.alert.severity == AlertSeverity.WARNING
        assert response.task.priority == 4
        assert response.playbook is not None

    @pytest.mark.asyncio
    async def test_flags_disable_task_and_playbook(self, pipeline, make_change, competitor_config):
        config = competitor_config.model_copy(update={"auto_create_tasks": False})
        response = await pipeline.handle_competitor_change(make_change(impact_score=9.0), config)
        assert response.task is None
        assert response.playbook is not None

        config = competitor_config.model_copy(update={"auto_generate_playbooks": False})
        response = await pipeline.handle_competitor_change(make_change(impact_score=9.0), config)
        assert response.task is not None
        assert response.playbook is None

    @pytest.mark.asyncio
    async def test_competitor_task_has_no_lead_link(self, pipeline, repository, make_change, competitor_config):
        await pipeline.handle_competitor_change(make_change(impact_score=9.0), competitor_config)

        assert repository.follow_ups == []

    @pytest.mark.asyncio
    async def test_create_competitor_alert_returns_alert(self, pipeline, make_change, competitor_config):
        alert = await pipeline.create_competitor_alert(make_change(impact_score=6.6), competitor_config)

        assert alert.severity == AlertSeverity.WARNING
        assert [a.id for a in await pipeline.list_alerts()] == [alert.id]


# ============================================================================
# TEST: Detectors
# ============================================================================

class TestDetectors:

    @pytest.mark.asyncio
    async def test_first_snapshot_is_baseline(self, competitor_config):
        detector = WebsiteChangeDetector(_snapshots({"pricing": "$10"}, {"pricing": "$10"}))

        assert await detector.detect(competitor_config) == []
        assert await detector.detect(competitor_config) == []

    @pytest.mark.asyncio
    async def test_pricing_change(self, competitor_config):
        detector = WebsiteChangeDetector(_snapshots(
            {"pricing": "$10", "headline": "Fast"},
            {"pricing": "$12", "headline": "Fast"},
        ))
        await detector.detect(competitor_config)

        changes = await detector.detect(competitor_config)

        assert len(changes) == 1
        change = changes[0]
        assert change.change_type == "pricing_update"
        assert change.impact_score == 8.5
        assert change.change_data["before"] == {"pricing": "$10"}
        assert change.change_data["after"] == {"pricing": "$12"}

    @pytest.mark.asyncio
    async def test_impact_capped_at_ten(self, competitor_config):
        detector = WebsiteChangeDetector(_snapshots(
            {"pricing": 1, "plans": 1, "features": 1},
            {"pricing": 2, "plans": 2, "features": 2},
        ))
        await detector.detect(competitor_config)

        changes = await detector.detect(competitor_config)

        assert changes[0].impact_score == 10.0

    @pytest.mark.asyncio
    async def test_new_ad_campaign(self, competitor_config):
        detector = AdCampaignChangeDetector(_snapshots(
            {"campaigns": ["brand"]},
            {"campaigns": ["brand", "spring-sale"]},
        ))
        await detector.detect(competitor_config)

        changes = await detector.detect(competitor_config)

        assert changes[0].change_type == "new_ad_campaign"
        assert changes[0].impact_score == 6.0

    @pytest.mark.asyncio
    async def test_business_profile_change(self, competitor_config):
        detector = BusinessProfileChangeDetector(_snapshots({"rating": 4.1}, {"rating": 4.6}))
        await detector.detect(competitor_config)

        changes = await detector.detect(competitor_config)

        assert changes[0].change_type == "gmb_update"

    def test_applies_to_monitoring_types(self, competitor_config):
        config = competitor_config.model_copy(update={"monitoring_types": ["website"]})

        assert WebsiteChangeDetector(_snapshots()).applies_to(config)
        assert not AdCampaignChangeDetector(_snapshots()).applies_to(config)
        assert SimulatedChangeSource().applies_to(config)

    @pytest.mark.asyncio
    async def test_simulated_source(self, competitor_config):
        always = SimulatedChangeSource(probability=1.0, rng=random.Random(7))
        never = SimulatedChangeSource(probability=0.0)

        changes = await always.detect(competitor_config)

        assert len(changes) == 1
        assert changes[0].change_type in SimulatedChangeSource.CHANGE_TYPES
        assert 0 <= changes[0].impact_score <= 10
        assert await never.detect(competitor_config) == []


# ============================================================================
# TEST: Monitor
# ============================================================================

class TestCompetitorMonitor:

    @pytest.mark.asyncio
    async def test_tick_handles_changes(self, pipeline, competitor_config):
        change = CompetitorChange(competitor_id="x", change_type="ad_change", impact_score=9.0)
        monitor = CompetitorMonitor(pipeline, detectors=[FixedDetector([change])])
        monitor.configs = [competitor_config]

        responses = await monitor.run_tick()

        assert len(responses) == 1
        assert responses[0].alert.data["competitor_id"] == "comp_1"

    @pytest.mark.asyncio
    async def test_broken_detector_does_not_stop_tick(self, pipeline, competitor_config):
        change = CompetitorChange(competitor_id="x", change_type="ad_change", impact_score=3.0)
        fixed = FixedDetector([change])
        monitor = CompetitorMonitor(pipeline, detectors=[BrokenDetector(), fixed])
        monitor.configs = [competitor_config]

        responses = await monitor.run_tick()

        assert fixed.calls == 1
        assert len(responses) == 1

    @pytest.mark.asyncio
    async def test_alert_threshold_filters_changes(self, pipeline, competitor_config):
        config = competitor_config.model_copy(update={"alert_thresholds": {"ad_change": 5.0}})
        changes = [
            CompetitorChange(competitor_id="x", change_type="ad_change", impact_score=4.9),
            CompetitorChange(competitor_id="x", change_type="ad_change", impact_score=5.0),
        ]
        monitor = CompetitorMonitor(pipeline, detectors=[FixedDetector(changes)])
        monitor.configs = [config]

        responses = await monitor.run_tick()

        assert [r.alert.data["impact_score"] for r in responses] == [5.0]

    @pytest.mark.asyncio
    async def test_start_and_stop(self, pipeline, competitor_config):
        monitor = CompetitorMonitor(
            pipeline, detectors=[], interval_seconds=60, scheduler=AsyncIOScheduler()
        )

        monitor.start([competitor_config])
        try:
            assert monitor.is_running
            assert monitor.scheduler.get_job(MONITOR_JOB_ID).trigger.interval.total_seconds() == 60
            assert [c.competitor_name for c in monitor.configs] == ["Acme Analytics"]

            monitor.stop()
            assert not monitor.is_running
            assert monitor.configs == []

            monitor.stop()
        finally:
            monitor.shutdown()
