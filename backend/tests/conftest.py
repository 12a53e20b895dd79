# tests/conftest.py
"""Shared fixtures: in-memory repository, wired pipeline, candidate/change factories."""

import pytest
from datetime import datetime

from leadintel.repositories import InMemoryRepository
from leadintel.schemas import CompetitorChange, CompetitorMonitorConfig, LeadCandidate
from leadintel.services.alert_dispatcher import AlertDispatcher, LoggingAlertChannel
from leadintel.services.crm_sync import CRMSyncTracker, SimulatedCRMConnector
from leadintel.services.lead_pipeline import LeadPipeline
from leadintel.services.source_aggregator import SourceAggregator


@pytest.fixture
def repository():
    """Fresh in-memory store per test"""
    return InMemoryRepository()


@pytest.fixture
def alert_channels():
    """Channels that always succeed"""
    return {
        "email": LoggingAlertChannel("email"),
        "slack": LoggingAlertChannel("slack"),
    }


@pytest.fixture
def pipeline(repository, alert_channels):
    """Pipeline over the in-memory store with instant CRM sync"""
    return LeadPipeline(
        repository,
        aggregator=SourceAggregator(),
        alert_dispatcher=AlertDispatcher(repository, alert_channels),
        crm_sync=CRMSyncTracker(repository, SimulatedCRMConnector(delay=0)),
    )


@pytest.fixture
def make_candidate():
    """Factory for lead candidates"""
    def _make(**overrides):
        data = {
            "email": "a@x.com",
            "name": "Alex Johnson",
            "company": "TechStartup Inc",
            "intent_score": 60,
            "keywords": ["competitive analysis"],
            "source": "lead_locator",
        }
        data.update(overrides)
        return LeadCandidate(**data)
    return _make


@pytest.fixture
def competitor_config():
    return CompetitorMonitorConfig(
        competitor_id="comp_1",
        competitor_name="Acme Analytics",
        website_url="https://acme.example.com",
        delivery_channels=["email", "slack"],
    )


@pytest.fixture
def make_change():
    """Factory for competitor changes"""
    def _make(impact_score=5.0, change_type="ad_change", **overrides):
        data = {
            "competitor_id": "comp_1",
            "change_type": change_type,
            "impact_score": impact_score,
            "change_data": {"description": "New search campaign launched"},
            "detected_at": datetime(2024, 5, 1, 12, 0, 0),
        }
        data.update(overrides)
        return CompetitorChange(**data)
    return _make
