"""
Competitor change detection.

A detector yields zero or more CompetitorChange events per tick for one
competitor. Channel detectors diff the latest snapshot against the one
seen on the previous tick and weight the changed fields into an impact
score capped at 10. The simulated source stands in for real scraping.
"""

import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from leadintel.config import settings
from leadintel.schemas import CompetitorChange, CompetitorMonitorConfig

logger = logging.getLogger(__name__)

MAX_IMPACT = 10.0

SnapshotProvider = Callable[[CompetitorMonitorConfig], Awaitable[Optional[Dict[str, Any]]]]


class ChangeDetector(ABC):
    """Pluggable source of competitor change events."""

    # Matched against CompetitorMonitorConfig.monitoring_types; None runs for every competitor
    monitoring_type: Optional[str] = None

    def applies_to(self, config: CompetitorMonitorConfig) -> bool:
        return self.monitoring_type is None or self.monitoring_type in config.monitoring_types

    @abstractmethod
    async def detect(self, config: CompetitorMonitorConfig) -> List[CompetitorChange]:
        """Changes observed for one competitor since the previous call."""


class SnapshotChangeDetector(ChangeDetector):
    """
    Diff successive snapshots of one channel.

    The first snapshot for a competitor is the baseline and yields nothing.
    """

    field_weights: Dict[str, float] = {}
    default_weight: float = 1.0

    def __init__(self, snapshot_provider: SnapshotProvider):
        self.snapshot_provider = snapshot_provider
        self._last_snapshots: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def diff(before: Dict[str, Any], after: Dict[str, Any]) -> List[str]:
        keys = set(before) | set(after)
        return sorted(k for k in keys if before.get(k) != after.get(k))

    def impact(self, changed_fields: List[str]) -> float:
        total = sum(self.field_weights.get(f, self.default_weight) for f in changed_fields)
        return round(min(MAX_IMPACT, total), 2)

    @abstractmethod
    def change_type(self, changed_fields: List[str], before: Dict[str, Any], after: Dict[str, Any]) -> str:
        """Name the change for templates and alerts."""

    @abstractmethod
    def describe(self, changed_fields: List[str]) -> str:
        """Human-readable summary."""

    async def detect(self, config: CompetitorMonitorConfig) -> List[CompetitorChange]:
        snapshot = await self.snapshot_provider(config)
        if snapshot is None:
            return []

        previous = self._last_snapshots.get(config.competitor_id)
        self._last_snapshots[config.competitor_id] = dict(snapshot)
        if previous is None:
            logger.debug(f"Baseline {self.monitoring_type} snapshot stored for {config.competitor_name}")
            return []

        changed = self.diff(previous, snapshot)
        if not changed:
            return []

        change = CompetitorChange(
            competitor_id=config.competitor_id,
            change_type=self.change_type(changed, previous, snapshot),
            impact_score=self.impact(changed),
            change_data={
                "description": self.describe(changed),
                "monitoring_type": self.monitoring_type,
                "changed_fields": changed,
                "before": {k: previous.get(k) for k in changed},
                "after": {k: snapshot.get(k) for k in changed},
            },
        )
        logger.info(
            f"{self.monitoring_type} change for {config.competitor_name}: "
            f"{change.change_type} (impact {change.impact_score})"
        )
        return [change]


class WebsiteChangeDetector(SnapshotChangeDetector):
    monitoring_type = "website"
    field_weights = {
        "pricing": 8.5,
        "plans": 4.0,
        "features": 3.0,
        "services": 3.0,
        "headline": 2.5,
        "cta": 1.5,
    }
    default_weight = 1.0

    def change_type(self, changed_fields, before, after) -> str:
        if "pricing" in changed_fields or "plans" in changed_fields:
            return "pricing_update"
        return "website_change"

    def describe(self, changed_fields) -> str:
        return f"Website updated: {', '.join(changed_fields)}"


class AdCampaignChangeDetector(SnapshotChangeDetector):
    monitoring_type = "ads"
    field_weights = {
        "campaigns": 6.0,
        "daily_budget": 3.2,
        "keywords": 2.5,
        "ad_count": 1.5,
        "platforms": 1.0,
    }
    default_weight = 0.5

    def change_type(self, changed_fields, before, after) -> str:
        added = set(after.get("campaigns") or []) - set(before.get("campaigns") or [])
        return "new_ad_campaign" if added else "ad_change"

    def describe(self, changed_fields) -> str:
        return f"Ad activity changed: {', '.join(changed_fields)}"


class BusinessProfileChangeDetector(SnapshotChangeDetector):
    monitoring_type = "business_profile"
    field_weights = {
        "rating": 3.0,
        "hours": 1.5,
        "review_count": 1.0,
        "photos": 1.0,
        "posts": 1.0,
        "categories": 2.0,
    }
    default_weight = 0.5

    def change_type(self, changed_fields, before, after) -> str:
        return "gmb_update"

    def describe(self, changed_fields) -> str:
        return f"Business profile updated: {', '.join(changed_fields)}"


class SimulatedChangeSource(ChangeDetector):
    """
    Random change generator for demos.

    Each call has `probability` chance of yielding one change with a
    uniformly random type and impact.
    """

    CHANGE_TYPES = ["website_change", "new_ad_campaign", "gmb_update"]

    def __init__(self, probability: float = None, rng: Optional[random.Random] = None):
        self.probability = settings.SIMULATED_CHANGE_PROBABILITY if probability is None else probability
        self.rng = rng or random.Random()

    async def detect(self, config: CompetitorMonitorConfig) -> List[CompetitorChange]:
        if self.rng.random() >= self.probability:
            return []

        now = datetime.utcnow()
        return [CompetitorChange(
            competitor_id=config.competitor_id,
            change_type=self.rng.choice(self.CHANGE_TYPES),
            impact_score=round(self.rng.random() * MAX_IMPACT, 2),
            change_data={
                "description": f"Automated change detected for {config.competitor_name}",
                "detected_at": now.isoformat(),
            },
            detected_at=now,
        )]
