# tests/services/test_deduplication.py
"""
Tests for DeduplicationEngine

Coverage:
- Create on first sighting, merge on repeat
- Email and phone matching (email wins)
- Merge rules: max score, source union, tags union, fill-empty profile
- Validation of identity and score range
- Optimistic-lock retries
- Identity cache hits and stale entries

Run with: pytest tests/services/test_deduplication.py -v
"""

import pytest
from uuid import uuid4
from unittest.mock import AsyncMock, MagicMock

from leadintel.exceptions import ConcurrencyError, ValidationError
from leadintel.schemas import Lead
from leadintel.services.deduplication import DeduplicationEngine, build_lead, merge_lead
from leadintel.services.identity_cache import IdentityCache


@pytest.fixture
def engine(repository):
    return DeduplicationEngine(repository)


# ============================================================================
# TEST: Merge rules
# ============================================================================

class TestMergeRules:

    def test_build_lead_records_first_source(self, make_candidate):
        lead = build_lead(make_candidate(keywords=["seo", "ppc"]))

        assert lead.sources == ["lead_locator"]
        assert lead.tags == ["seo", "ppc"]
        assert lead.version == 1
        assert "lead_locator" in lead.notes

    def test_merge_takes_max_score_and_unions_sources(self, make_candidate):
        existing = build_lead(make_candidate(intent_score=60))

        merged = merge_lead(existing, make_candidate(intent_score=75, source="campaign_manager"))

        assert merged.intent_score == 75
        assert merged.sources == ["lead_locator", "campaign_manager"]

    def test_merge_never_lowers_score(self, make_candidate):
        existing = build_lead(make_candidate(intent_score=90))
        merged = merge_lead(existing, make_candidate(intent_score=40))
        assert merged.intent_score == 90

    def test_merge_enrichment_incoming_wins(self, make_candidate):
        existing = build_lead(make_candidate(enrichment_data={"industry": "SaaS", "size": "10"}))

        merged = merge_lead(existing, make_candidate(enrichment_data={"size": "50"}))

        assert merged.enrichment_data["industry"] == "SaaS"
        assert merged.enrichment_data["size"] == "50"

    def test_merge_fills_only_empty_profile_fields(self, make_candidate):
        existing = build_lead(make_candidate(title=None, company="Original Co"))

        merged = merge_lead(existing, make_candidate(title="CTO", company="Other Co"))

        assert merged.title == "CTO"
        assert merged.company == "Original Co"

    def test_merge_repeated_source_not_duplicated(self, make_candidate):
        existing = build_lead(make_candidate())
        merged = merge_lead(existing, make_candidate())
        assert merged.sources == ["lead_locator"]


# ============================================================================
# TEST: Resolve
# ============================================================================

class TestResolve:

    @pytest.mark.asyncio
    async def test_first_sighting_creates(self, engine, make_candidate):
        result = await engine.resolve(make_candidate())

        assert result.created is True
        assert result.lead.email == "a@x.com"

    @pytest.mark.asyncio
    async def test_second_sighting_merges_same_lead(self, engine, repository, make_candidate):
        first = await engine.resolve(make_candidate(intent_score=60))
        second = await engine.resolve(make_candidate(intent_score=75, source="campaign_manager"))

        assert second.created is False
        assert second.lead.id == first.lead.id
        assert second.lead.intent_score == 75
        assert second.lead.sources == ["lead_locator", "campaign_manager"]
        assert second.previous.intent_score == 60
        assert len(repository.leads) == 1

    @pytest.mark.asyncio
    async def test_phone_only_match(self, engine, make_candidate):
        first = await engine.resolve(make_candidate(email=None, phone="+16502530000"))
        second = await engine.resolve(make_candidate(email="new@x.com", phone="+16502530000"))

        assert second.lead.id == first.lead.id

    @pytest.mark.asyncio
    async def test_email_match_wins_over_phone(self, engine, make_candidate):
        by_email = await engine.resolve(make_candidate(email="a@x.com", phone=None))
        await engine.resolve(make_candidate(email="b@x.com", phone="+16502530000"))

        result = await engine.resolve(make_candidate(email="a@x.com", phone="+16502530000"))

        assert result.lead.id == by_email.lead.id

    @pytest.mark.asyncio
    async def test_missing_identity_rejected(self, engine, repository, make_candidate):
        with pytest.raises(ValidationError):
            await engine.resolve(make_candidate(email=None, phone=None))
        assert repository.leads == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [-1, 101])
    async def test_out_of_range_score_rejected(self, engine, make_candidate, score):
        with pytest.raises(ValidationError):
            await engine.resolve(make_candidate(intent_score=score))

    @pytest.mark.asyncio
    async def test_conflict_is_retried(self, engine, repository, make_candidate):
        await engine.resolve(make_candidate(intent_score=60))

        real_update = repository.update_lead
        calls = {"n": 0}

        async def flaky_update(lead, expected_version):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConcurrencyError("lost race")
            return await real_update(lead, expected_version)

        repository.update_lead = flaky_update

        result = await engine.resolve(make_candidate(intent_score=80, source="campaign_manager"))

        assert calls["n"] == 2
        assert result.lead.intent_score == 80

    @pytest.mark.asyncio
    async def test_conflict_gives_up_after_max_retries(self, repository, make_candidate):
        engine = DeduplicationEngine(repository, max_retries=2)
        await engine.resolve(make_candidate())
        repository.update_lead = AsyncMock(side_effect=ConcurrencyError("always"))

        with pytest.raises(ConcurrencyError):
            await engine.resolve(make_candidate(intent_score=90))
        assert repository.update_lead.await_count == 2


class TestMatchOnly:

    @pytest.mark.asyncio
    async def test_no_match_creates_nothing(self, engine, repository, make_candidate):
        result = await engine.match_and_deduplicate(make_candidate())

        assert result.is_duplicate is False
        assert result.matched_lead is None
        assert repository.leads == {}

    @pytest.mark.asyncio
    async def test_match_returns_merged_lead(self, engine, make_candidate):
        await engine.resolve(make_candidate(intent_score=60))

        result = await engine.match_and_deduplicate(make_candidate(intent_score=70, source="ad_signal_hijack"))

        assert result.is_duplicate is True
        assert result.matched_lead.intent_score == 70
        assert "ad_signal_hijack" in result.matched_lead.sources


# ============================================================================
# TEST: Identity cache
# ============================================================================

class TestIdentityCache:

    @pytest.mark.asyncio
    async def test_cache_hit_confirmed_by_repository(self, repository, make_candidate):
        lead = await repository.create_lead(Lead(email="a@x.com"))
        redis_client = MagicMock()
        redis_client.get = AsyncMock(return_value=str(lead.id))
        redis_client.setex = AsyncMock(return_value=True)
        engine = DeduplicationEngine(repository, identity_cache=IdentityCache(redis_client))

        match = await engine.find_match(make_candidate())

        assert match.id == lead.id
        redis_client.get.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stale_cache_entry_is_forgotten(self, repository, make_candidate):
        redis_client = MagicMock()
        redis_client.get = AsyncMock(return_value=str(uuid4()))
        redis_client.delete = AsyncMock(return_value=1)
        engine = DeduplicationEngine(repository, identity_cache=IdentityCache(redis_client))

        match = await engine.find_match(make_candidate())

        assert match is None
        redis_client.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_redis_failure_treated_as_miss(self):
        redis_client = MagicMock()
        redis_client.get = AsyncMock(side_effect=ConnectionError("redis down"))
        cache = IdentityCache(redis_client)

        assert await cache.lookup("a@x.com", None) is None

    def test_cache_key_hashes_value(self):
        key = IdentityCache.generate_cache_key("email", "A@X.com")

        assert key.startswith("lead:identity:email:")
        assert "a@x.com" not in key
        assert key == IdentityCache.generate_cache_key("email", "a@x.com")
