"""
Competitor alert creation and fan-out delivery.

Severity is derived from the change's impact score:
    impact >= 8.5  critical
    impact >= 6.5  warning
    otherwise      info

Delivery attempts every configured channel concurrently and waits for all
of them. One channel failing never blocks or fails the others; each
outcome is recorded on the alert's delivery_status.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from uuid import UUID
import httpx

from leadintel.config import settings
from leadintel.exceptions import DeliveryError, NotFoundError
from leadintel.repositories.base import LeadIntelRepository
from leadintel.schemas import (
    Alert,
    AlertSeverity,
    CompetitorChange,
    CompetitorMonitorConfig,
    DeliveryResult,
)

logger = logging.getLogger(__name__)

CRITICAL_IMPACT = 8.5
WARNING_IMPACT = 6.5

DELIVERED = "delivered"
FAILED = "failed"


def classify_severity(impact_score: float) -> AlertSeverity:
    if impact_score >= CRITICAL_IMPACT:
        return AlertSeverity.CRITICAL
    if impact_score >= WARNING_IMPACT:
        return AlertSeverity.WARNING
    return AlertSeverity.INFO


def build_alert(change: CompetitorChange, config: CompetitorMonitorConfig) -> Alert:
    description = change.description
    return Alert(
        type=change.change_type,
        title=f"{config.competitor_name}: {description or 'Change Detected'}",
        message=description or "Competitor change detected",
        severity=classify_severity(change.impact_score),
        channels=list(config.delivery_channels),
        data={
            "competitor": config.competitor_name,
            "competitor_id": change.competitor_id,
            "impact_score": change.impact_score,
            "change_details": change.change_data,
            "detected_at": change.detected_at.isoformat(),
            "monitoring_config": config.model_dump(),
        },
    )


# ============================================================================
# CHANNELS
# ============================================================================

class AlertChannel(ABC):
    """One delivery channel."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def send(self, alert: Alert):
        """Deliver the alert. Raises DeliveryError on failure."""


class WebhookAlertChannel(AlertChannel):
    """
    Chat webhook (Slack or Discord style) over httpx.

    Slack expects {"text": ...}, Discord expects {"content": ...}.
    """

    def __init__(
        self,
        name: str,
        url: str,
        timeout: float = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(name)
        self.url = url
        self.timeout = timeout or settings.ALERT_DELIVERY_TIMEOUT_SECONDS
        self.client = client

    def build_payload(self, alert: Alert) -> Dict[str, str]:
        text = f"[{alert.severity.value.upper()}] {alert.title}\n{alert.message}"
        key = "content" if self.name == "discord" else "text"
        return {key: text}

    async def send(self, alert: Alert):
        payload = self.build_payload(alert)
        try:
            if self.client is not None:
                response = await self.client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise DeliveryError(self.name, f"request failed: {e}") from e

        if response.status_code >= 400:
            raise DeliveryError(self.name, f"webhook returned {response.status_code}")

        logger.info(f"{self.name} alert sent: {alert.title}")


class LoggingAlertChannel(AlertChannel):
    """Stand-in for email/SMS providers: the alert is written to the log."""

    async def send(self, alert: Alert):
        logger.info(f"{self.name} alert sent: {alert.title}")


def default_channels() -> Dict[str, AlertChannel]:
    """Channels available from configuration."""
    channels: Dict[str, AlertChannel] = {
        "email": LoggingAlertChannel("email"),
        "sms": LoggingAlertChannel("sms"),
    }
    if settings.SLACK_WEBHOOK_URL:
        channels["slack"] = WebhookAlertChannel("slack", settings.SLACK_WEBHOOK_URL)
    if settings.DISCORD_WEBHOOK_URL:
        channels["discord"] = WebhookAlertChannel("discord", settings.DISCORD_WEBHOOK_URL)
    return channels


# ============================================================================
# DISPATCHER
# ============================================================================

class AlertDispatcher:
    """Create alerts and fan them out to their channels."""

    def __init__(
        self,
        repository: LeadIntelRepository,
        channels: Optional[Dict[str, AlertChannel]] = None
    ):
        self.repository = repository
        self.channels = channels if channels is not None else default_channels()

    async def create_alert(self, change: CompetitorChange, config: CompetitorMonitorConfig) -> Alert:
        alert = await self.repository.create_alert(build_alert(change, config))
        logger.info(f"Alert created: {alert.title} ({alert.severity.value})")
        return alert

    async def _deliver_one(self, alert: Alert, channel_name: str) -> DeliveryResult:
        channel = self.channels.get(channel_name)
        if channel is None:
            raise DeliveryError(channel_name, "unknown delivery channel")
        await channel.send(alert)
        return DeliveryResult(channel=channel_name, delivered=True)

    async def deliver(self, alert: Alert) -> List[DeliveryResult]:
        """Attempt every channel on the alert; failures are isolated per channel."""
        if not alert.channels:
            return []

        outcomes = await asyncio.gather(
            *(self._deliver_one(alert, name) for name in alert.channels),
            return_exceptions=True
        )

        results = []
        for name, outcome in zip(alert.channels, outcomes):
            if isinstance(outcome, DeliveryResult):
                results.append(outcome)
            else:
                logger.warning(f"Alert {alert.id} delivery via {name} failed: {outcome}")
                results.append(DeliveryResult(channel=name, delivered=False, error=str(outcome)))

        await self.repository.update_alert_delivery(
            alert.id,
            {r.channel: DELIVERED if r.delivered else FAILED for r in results}
        )
        return results

    async def mark_alert_read(self, alert_id: UUID) -> Alert:
        return await self.repository.mark_alert_read(alert_id)

    async def get_alert(self, alert_id: UUID) -> Alert:
        alert = await self.repository.get_alert(alert_id)
        if alert is None:
            raise NotFoundError("Alert", alert_id)
        return alert

    async def list_alerts(
        self,
        unread_only: bool = False,
        severity: Optional[AlertSeverity] = None,
        alert_type: Optional[str] = None
    ) -> List[Alert]:
        return await self.repository.list_alerts(
            unread_only=unread_only, severity=severity, alert_type=alert_type
        )
