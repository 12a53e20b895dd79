# tests/services/test_normalization.py
"""
Tests for NormalizationService

Coverage:
- Email lowercasing and trimming
- Name whitespace and capitalization
- E.164 phone formatting with fallback
- Keyword de-duplication
- Raw record -> candidate mapping

Run with: pytest tests/services/test_normalization.py -v
"""

import pytest

from leadintel.schemas import LeadCandidate
from leadintel.services.normalization import NormalizationService, normalization_service


class TestFieldNormalization:

    def test_email_lowercased_and_trimmed(self):
        assert NormalizationService.normalize_email("  Alex@Example.COM ") == "alex@example.com"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_email_is_none(self, value):
        assert NormalizationService.normalize_email(value) is None

    def test_lowercase_name_is_capitalized(self):
        assert NormalizationService.normalize_name("  jane   doe ") == "Jane Doe"

    def test_mixed_case_name_is_kept(self):
        assert NormalizationService.normalize_name("Sarah Chen") == "Sarah Chen"

    def test_blank_name_is_none(self):
        assert NormalizationService.normalize_name("   ") is None

    def test_valid_phone_formatted_e164(self):
        assert NormalizationService.normalize_phone("(650) 253-0000") == "+16502530000"

    def test_invalid_phone_falls_back_to_original(self):
        assert NormalizationService.normalize_phone(" 12345 ") == "12345"

    def test_keywords_deduplicated_case_insensitively(self):
        result = NormalizationService.normalize_keywords([" SEO ", "seo", "ppc   ads", ""])
        assert result == ["SEO", "ppc ads"]


class TestCandidateNormalization:

    def test_normalize_candidate_returns_copy(self):
        candidate = LeadCandidate(email="A@X.com", phone="650-253-0000", company="  Acme  ")

        normalized = normalization_service.normalize_candidate(candidate)

        assert normalized.email == "a@x.com"
        assert normalized.phone == "+16502530000"
        assert normalized.company == "Acme"
        assert candidate.email == "A@X.com"

    def test_candidate_from_record_tags_source(self):
        record = {
            "email": " Lisa@GrowthCo.com ",
            "intent_score": 78,
            "location_city": "Austin",
            "unexpected": "ignored",
        }

        candidate = normalization_service.candidate_from_record(record, "campaign_manager")

        assert candidate.email == "lisa@growthco.com"
        assert candidate.source == "campaign_manager"
        assert candidate.intent_score == 78
        assert candidate.location_city == "Austin"
        assert candidate.has_identity

    def test_record_without_identity(self):
        candidate = normalization_service.candidate_from_record({"name": "No Contact"}, "manual")
        assert not candidate.has_identity
