"""
Lead deduplication and merge.

Identity is (email, phone): a candidate matches an existing lead when
either value is equal. Merges are computed in memory and written with a
single version-checked update; a lost race is retried from a fresh read.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from leadintel.config import settings
from leadintel.exceptions import ConcurrencyError, DuplicateIdentityError, ValidationError
from leadintel.repositories.base import LeadIntelRepository
from leadintel.schemas import Lead, LeadCandidate, MatchResult
from leadintel.services.identity_cache import IdentityCache

logger = logging.getLogger(__name__)

# Profile fields filled from a candidate only when the lead has no value yet
FILLABLE_FIELDS = ("name", "company", "title", "location_city", "location_state", "location_zip")


@dataclass
class ResolutionResult:
    """Outcome of create-or-merge."""
    lead: Lead
    created: bool
    previous: Optional[Lead] = None


def _union(first: List[str], second: List[str]) -> List[str]:
    """Ordered set-union, first-seen wins."""
    result = list(first)
    for item in second:
        if item not in result:
            result.append(item)
    return result


def validate_candidate(candidate: LeadCandidate):
    if not candidate.has_identity:
        raise ValidationError("Lead candidate needs an email or a phone")
    if not 0 <= candidate.intent_score <= 100:
        raise ValidationError(f"intent_score must be within [0, 100], got {candidate.intent_score}")


def build_lead(candidate: LeadCandidate) -> Lead:
    """New lead from a first sighting."""
    enrichment = dict(candidate.enrichment_data)
    enrichment["sources"] = [candidate.source]

    return Lead(
        email=candidate.email,
        phone=candidate.phone,
        name=candidate.name,
        company=candidate.company,
        title=candidate.title,
        location_city=candidate.location_city,
        location_state=candidate.location_state,
        location_zip=candidate.location_zip,
        intent_score=candidate.intent_score,
        status=candidate.status,
        source=candidate.source,
        source_data=dict(candidate.source_data),
        tags=_union([], candidate.keywords),
        enrichment_data=enrichment,
        notes=f"Auto-generated lead from {candidate.source}. Intent score: {candidate.intent_score}",
    )


def merge_lead(existing: Lead, candidate: LeadCandidate) -> Lead:
    """
    Merge a candidate into an existing lead.

    - enrichment_data: shallow merge, candidate wins on conflicts
    - enrichment_data["sources"]: union of prior and new channels
    - intent_score: max(existing, incoming)
    - tags: union
    - profile fields: filled only where the lead has none
    """
    prior_sources = list(existing.enrichment_data.get("sources", []))

    enrichment = {**existing.enrichment_data, **candidate.enrichment_data}
    enrichment["sources"] = _union(prior_sources, [candidate.source])

    updates = {
        "enrichment_data": enrichment,
        "intent_score": max(existing.intent_score, candidate.intent_score),
        "tags": _union(existing.tags, candidate.keywords),
        "updated_at": datetime.utcnow(),
    }
    for field in FILLABLE_FIELDS:
        if getattr(existing, field) is None and getattr(candidate, field) is not None:
            updates[field] = getattr(candidate, field)

    return existing.model_copy(update=updates, deep=True)


class DeduplicationEngine:
    """Resolve candidates to leads with optimistic concurrency."""

    def __init__(
        self,
        repository: LeadIntelRepository,
        identity_cache: Optional[IdentityCache] = None,
        max_retries: int = None
    ):
        self.repository = repository
        self.identity_cache = identity_cache
        self.max_retries = max_retries or settings.MERGE_MAX_RETRIES

    async def find_match(self, candidate: LeadCandidate) -> Optional[Lead]:
        """
        Existing lead for the candidate's identity, or None.

        Cached ids are confirmed against the repository; a stale entry is
        dropped and the lookup falls through to the repository query.
        """
        if self.identity_cache:
            cached_id = await self.identity_cache.lookup(candidate.email, candidate.phone)
            if cached_id:
                lead = await self.repository.get_lead(cached_id)
                if lead and (
                    (candidate.email and lead.email == candidate.email)
                    or (candidate.phone and lead.phone == candidate.phone)
                ):
                    return lead
                await self.identity_cache.forget(candidate.email, candidate.phone)

        return await self.repository.find_lead_by_identity(candidate.email, candidate.phone)

    async def _remember(self, lead: Lead):
        if self.identity_cache:
            await self.identity_cache.remember(lead.id, lead.email, lead.phone)

    async def _merge_once(self, existing: Lead, candidate: LeadCandidate) -> Lead:
        merged = merge_lead(existing, candidate)
        saved = await self.repository.update_lead(merged, expected_version=existing.version)
        logger.info(
            f"Merged {candidate.source} sighting into lead {saved.id} "
            f"(score {existing.intent_score} -> {saved.intent_score})"
        )
        return saved

    async def resolve(self, candidate: LeadCandidate) -> ResolutionResult:
        """
        Create a new lead or merge into the matching one.

        Raises:
            ValidationError: candidate has no identity or an out-of-range score
            ConcurrencyError: still conflicting after max_retries attempts
            RepositoryError: store failure (propagated unchanged)
        """
        validate_candidate(candidate)

        for attempt in range(1, self.max_retries + 1):
            existing = await self.find_match(candidate)
            try:
                if existing:
                    saved = await self._merge_once(existing, candidate)
                    await self._remember(saved)
                    return ResolutionResult(lead=saved, created=False, previous=existing)

                saved = await self.repository.create_lead(build_lead(candidate))
                logger.info(f"Created lead {saved.id} from {candidate.source} (score {saved.intent_score})")
                await self._remember(saved)
                return ResolutionResult(lead=saved, created=True)

            except (ConcurrencyError, DuplicateIdentityError) as e:
                logger.warning(f"Identity race on attempt {attempt}/{self.max_retries}: {e}")

        raise ConcurrencyError(
            f"Could not resolve identity (email={candidate.email}, phone={candidate.phone}) "
            f"after {self.max_retries} attempts"
        )

    async def match_and_deduplicate(self, candidate: LeadCandidate) -> MatchResult:
        """
        Merge into an existing lead if one matches; never create.

        Returns the merged lead as matched_lead.
        """
        validate_candidate(candidate)

        for attempt in range(1, self.max_retries + 1):
            existing = await self.find_match(candidate)
            if existing is None:
                return MatchResult(is_duplicate=False, matched_lead=None)
            try:
                saved = await self._merge_once(existing, candidate)
                await self._remember(saved)
                return MatchResult(is_duplicate=True, matched_lead=saved)
            except ConcurrencyError as e:
                logger.warning(f"Merge conflict on attempt {attempt}/{self.max_retries}: {e}")

        raise ConcurrencyError(f"Could not merge into lead after {self.max_retries} attempts")
