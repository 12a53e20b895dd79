"""APScheduler jobs: competitor monitoring loop and stale lead scan."""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
import logging
from typing import List, Optional

from leadintel.config import settings
from leadintel.exceptions import PipelineError
from leadintel.schemas import CompetitorMonitorConfig, CompetitorResponse
from leadintel.services.change_detection import ChangeDetector, SimulatedChangeSource
from leadintel.services.lead_pipeline import LeadPipeline

logger = logging.getLogger(__name__)

MONITOR_JOB_ID = "competitor_monitoring"
STALE_SCAN_JOB_ID = "stale_lead_scan"


class CompetitorMonitor:
    """
    Timer-driven change detection for a set of competitors.

    Every tick asks each applicable detector for changes per competitor
    and hands them to the pipeline. A failing detector or competitor is
    logged and skipped; the rest of the tick carries on.
    """

    def __init__(
        self,
        pipeline: LeadPipeline,
        detectors: Optional[List[ChangeDetector]] = None,
        interval_seconds: int = None,
        scheduler: Optional[AsyncIOScheduler] = None
    ):
        self.pipeline = pipeline
        self.detectors = detectors if detectors is not None else [SimulatedChangeSource()]
        self.interval_seconds = interval_seconds or settings.MONITORING_INTERVAL_SECONDS
        self.scheduler = scheduler or AsyncIOScheduler()
        self.configs: List[CompetitorMonitorConfig] = []

    @property
    def is_running(self) -> bool:
        return self.scheduler.get_job(MONITOR_JOB_ID) is not None

    def start(self, configs: List[CompetitorMonitorConfig]):
        """Begin (or restart with new configs) periodic monitoring."""
        self.configs = list(configs)

        self.scheduler.add_job(
            self.run_tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=MONITOR_JOB_ID,
            name="Competitor Monitoring",
            replace_existing=True,
            max_instances=1
        )
        if not self.scheduler.running:
            self.scheduler.start()

        names = ", ".join(c.competitor_name for c in self.configs)
        logger.info(f"Starting competitor monitoring for: {names} (every {self.interval_seconds}s)")

    def stop(self):
        """Cancel the monitoring loop. Safe to call when not running."""
        if self.scheduler.get_job(MONITOR_JOB_ID) is not None:
            self.scheduler.remove_job(MONITOR_JOB_ID)
            logger.info("Competitor monitoring stopped")
        self.configs = []

    def shutdown(self):
        self.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def run_tick(self) -> List[CompetitorResponse]:
        """One detection pass over every configured competitor."""
        responses = []

        for config in list(self.configs):
            for detector in self.detectors:
                if not detector.applies_to(config):
                    continue

                try:
                    changes = await detector.detect(config)
                except Exception as e:
                    logger.warning(
                        f"{type(detector).__name__} failed for {config.competitor_name}: {e}"
                    )
                    continue

                for change in changes:
                    min_impact = config.alert_thresholds.get(change.change_type, 0.0)
                    if change.impact_score < min_impact:
                        logger.debug(
                            f"Ignoring {change.change_type} for {config.competitor_name}: "
                            f"impact {change.impact_score} below {min_impact}"
                        )
                        continue
                    try:
                        responses.append(await self.pipeline.handle_competitor_change(change, config))
                    except PipelineError as e:
                        logger.error(f"Error handling change for {config.competitor_name}: {e}")

        if responses:
            logger.info(f"Monitoring tick produced {len(responses)} alerts")
        return responses


def schedule_stale_lead_scan(scheduler: AsyncIOScheduler, pipeline: LeadPipeline):
    """Daily re-engage scan (03:00 UTC)."""

    async def run_stale_lead_scan():
        try:
            await pipeline.generate_time_based_follow_ups()
        except PipelineError as e:
            logger.error(f"Error in stale lead scan: {e}")

    scheduler.add_job(
        run_stale_lead_scan,
        trigger=CronTrigger(hour=3, minute=0),
        id=STALE_SCAN_JOB_ID,
        name="Stale Lead Scan",
        replace_existing=True,
        max_instances=1
    )
    logger.info("Scheduled: Stale Lead Scan (daily at 03:00 UTC)")
