"""
Lead source aggregation.

Pulls raw lead records from named origin channels, normalizes them into
LeadCandidate objects tagged with provenance, and answers read-only
intelligence searches over the same channels.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
import httpx
from pydantic import ValidationError as PydanticValidationError

from leadintel.exceptions import ValidationError
from leadintel.schemas import LeadCandidate, LeadSearchFilters, SourceChannel
from leadintel.services.deduplication import validate_candidate
from leadintel.services.normalization import NormalizationService, normalization_service

logger = logging.getLogger(__name__)


# ============================================================================
# SEED DATA
# ============================================================================

AGGREGATION_SEED: Dict[str, List[Dict[str, Any]]] = {
    SourceChannel.LEAD_LOCATOR.value: [
        {
            "name": "Alex Johnson",
            "email": "alex@techstartup.com",
            "company": "TechStartup Inc",
            "location_city": "Seattle",
            "location_state": "WA",
            "intent_score": 85,
            "keywords": ["competitive analysis", "market research"],
            "source_data": {"search_keywords": ["competitive analysis", "market research"]},
        }
    ],
    SourceChannel.CAMPAIGN_MANAGER.value: [
        {
            "name": "Lisa Brown",
            "email": "lisa@growthco.com",
            "company": "GrowthCo",
            "location_city": "Austin",
            "location_state": "TX",
            "intent_score": 78,
            "source_data": {"campaign_id": "camp_123", "ad_clicked": "competitive-intel-ad"},
        }
    ],
    SourceChannel.AD_SIGNAL_HIJACK.value: [
        {
            "name": "Mike Davis",
            "email": "mike@scalecorp.com",
            "company": "ScaleCorp",
            "location_city": "Denver",
            "location_state": "CO",
            "intent_score": 92,
            "source_data": {"competitor_ad_engaged": "SimilarWeb", "engagement_type": "click"},
        }
    ],
}

INTELLIGENCE_SEED: Dict[str, List[Dict[str, Any]]] = {
    SourceChannel.LEAD_LOCATOR.value: [
        {
            "name": "Sarah Chen",
            "email": "sarah.chen@techcorp.com",
            "company": "TechCorp Solutions",
            "title": "VP of Marketing",
            "phone": "(555) 123-4567",
            "location_city": "San Francisco",
            "location_state": "CA",
            "location_zip": "94105",
            "intent_score": 92,
            "keywords": ["competitive analysis", "market intelligence", "growth strategies"],
            "source_data": {
                "discovery_method": "keyword_intent_analysis",
                "engagement_signals": ["downloaded_whitepaper", "visited_pricing_page"],
            },
            "enrichment_data": {
                "company_size": "100-500",
                "industry": "Technology",
                "revenue_estimate": "$10M-50M",
                "tech_stack": ["HubSpot", "Salesforce", "Google Analytics"],
            },
        }
    ],
    SourceChannel.AD_SIGNAL_HIJACK.value: [
        {
            "name": "Michael Rodriguez",
            "email": "mike@growthstartup.com",
            "company": "GrowthStartup Inc",
            "title": "CEO",
            "phone": "(555) 987-6543",
            "location_city": "Austin",
            "location_state": "TX",
            "location_zip": "73301",
            "intent_score": 88,
            "keywords": ["ad intelligence", "competitor tracking", "marketing automation"],
            "source_data": {
                "competitor_ads_engaged": ["SimilarWeb", "SEMrush"],
                "engagement_type": "clicked_competitor_ad",
                "ad_platform": "Google Ads",
            },
            "enrichment_data": {
                "company_size": "10-50",
                "industry": "SaaS",
                "revenue_estimate": "$1M-10M",
                "funding_stage": "Series A",
            },
        }
    ],
    SourceChannel.CAMPAIGN_MANAGER.value: [
        {
            "name": "Jessica Wang",
            "email": "jessica@enterpriseco.com",
            "company": "Enterprise Solutions Co",
            "title": "Director of Sales",
            "phone": "(555) 456-7890",
            "location_city": "Seattle",
            "location_state": "WA",
            "location_zip": "98101",
            "intent_score": 85,
            "keywords": ["sales intelligence", "lead generation", "CRM integration"],
            "source_data": {
                "campaign_id": "camp_456",
                "ad_creative_clicked": "competitive_intelligence_demo",
                "landing_page": "/demo-request",
                "utm_source": "google_ads",
            },
            "enrichment_data": {
                "company_size": "500-1000",
                "industry": "Enterprise Software",
                "revenue_estimate": "$50M+",
                "existing_tools": ["Salesforce", "Marketo", "Outreach"],
            },
        }
    ],
}


# ============================================================================
# SOURCE ADAPTERS
# ============================================================================

class LeadSourceAdapter(ABC):
    """One origin channel that yields raw lead records."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def fetch(self) -> List[Dict[str, Any]]:
        """Return raw records from this channel."""


class StaticLeadSourceAdapter(LeadSourceAdapter):
    """Channel backed by a fixed list of records."""

    def __init__(self, name: str, records: List[Dict[str, Any]]):
        super().__init__(name)
        self.records = records

    async def fetch(self) -> List[Dict[str, Any]]:
        return [dict(record) for record in self.records]


class HttpLeadSourceAdapter(LeadSourceAdapter):
    """
    Channel served over HTTP as a JSON list of lead records.

    The endpoint may return either a bare list or {"leads": [...]}.
    """

    def __init__(
        self,
        name: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(name)
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout
        self.client = client

    async def fetch(self) -> List[Dict[str, Any]]:
        if self.client is not None:
            response = await self.client.get(self.url, headers=self.headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.url, headers=self.headers)

        response.raise_for_status()
        payload = response.json()

        if isinstance(payload, dict):
            payload = payload.get("leads", [])
        if not isinstance(payload, list):
            raise ValueError(f"Source {self.name} returned {type(payload).__name__}, expected a list")

        logger.info(f"Fetched {len(payload)} records from {self.name}")
        return payload


def default_source_adapters() -> List[LeadSourceAdapter]:
    return [StaticLeadSourceAdapter(name, records) for name, records in AGGREGATION_SEED.items()]


def default_intelligence_adapters() -> List[LeadSourceAdapter]:
    return [StaticLeadSourceAdapter(name, records) for name, records in INTELLIGENCE_SEED.items()]


# ============================================================================
# AGGREGATOR
# ============================================================================

class SourceAggregator:
    """Collect normalized candidates across channels."""

    def __init__(
        self,
        adapters: Optional[List[LeadSourceAdapter]] = None,
        intelligence_adapters: Optional[List[LeadSourceAdapter]] = None,
        normalizer: Optional[NormalizationService] = None
    ):
        self.adapters = adapters if adapters is not None else default_source_adapters()
        self.intelligence_adapters = (
            intelligence_adapters if intelligence_adapters is not None
            else default_intelligence_adapters()
        )
        self.normalizer = normalizer or normalization_service

    async def _collect(self, adapters: List[LeadSourceAdapter]) -> List[LeadCandidate]:
        candidates = []

        for adapter in adapters:
            try:
                records = await adapter.fetch()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Source {adapter.name} failed, skipping: {e}")
                continue

            for index, record in enumerate(records):
                record.setdefault("source_id", f"{adapter.name}_{int(datetime.utcnow().timestamp() * 1000)}_{index}")
                try:
                    candidate = self.normalizer.candidate_from_record(record, adapter.name)
                    validate_candidate(candidate)
                except (PydanticValidationError, ValidationError) as e:
                    logger.warning(f"Dropping invalid record {index} from {adapter.name}: {e}")
                    continue
                candidates.append(candidate)

        return candidates

    async def collect_candidates(self) -> List[LeadCandidate]:
        """Candidates from every configured ingestion channel, in channel order."""
        candidates = await self._collect(self.adapters)
        logger.info(f"Collected {len(candidates)} candidates from {len(self.adapters)} sources")
        return candidates

    async def gather_lead_intelligence(self, filters: LeadSearchFilters) -> List[LeadCandidate]:
        """
        Search intelligence channels without writing anything.

        Matches on industry (enrichment industry or any keyword, substring,
        case-insensitive), city substring and minimum intent score.
        """
        candidates = await self._collect(self.intelligence_adapters)
        return [c for c in candidates if matches_filters(c, filters)]


def matches_filters(candidate: LeadCandidate, filters: LeadSearchFilters) -> bool:
    if filters.industry:
        needle = filters.industry.lower()
        industry = str(candidate.enrichment_data.get("industry") or "").lower()
        if needle not in industry and not any(needle in k.lower() for k in candidate.keywords):
            return False

    if filters.city:
        if filters.city.lower() not in (candidate.location_city or "").lower():
            return False

    if filters.state:
        if (candidate.location_state or "").lower() != filters.state.lower():
            return False

    if filters.keywords:
        wanted = {k.lower() for k in filters.keywords}
        if not wanted & {k.lower() for k in candidate.keywords}:
            return False

    if filters.min_intent_score is not None:
        if candidate.intent_score < filters.min_intent_score:
            return False

    return True
