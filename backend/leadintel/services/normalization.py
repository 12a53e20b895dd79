"""Lead candidate normalization service."""

import re
import logging
from typing import Dict, Any, List, Optional
import phonenumbers
from nameparser import HumanName

from leadintel.schemas import LeadCandidate

logger = logging.getLogger(__name__)

# Keys a raw source record may carry, mapped onto LeadCandidate fields
CANDIDATE_FIELDS = (
    "email", "phone", "name", "company", "title",
    "location_city", "location_state", "location_zip",
    "intent_score", "keywords", "source_id", "source_data",
    "enrichment_data", "status",
)


class NormalizationService:
    """Normalize raw channel records into canonical lead candidates."""

    @staticmethod
    def normalize_email(email: Optional[str]) -> Optional[str]:
        """
        Normalize email address.
        - Convert to lowercase
        - Strip whitespace
        """
        if not email:
            return None
        return email.lower().strip() or None

    @staticmethod
    def normalize_name(name: Optional[str]) -> Optional[str]:
        """Collapse whitespace and fix capitalization of a full name."""
        if not name or not name.strip():
            return None

        parsed = HumanName(" ".join(name.split()))
        if parsed.first and parsed.last and (name.islower() or name.isupper()):
            parsed.capitalize(force=True)
        return str(parsed) or None

    @staticmethod
    def normalize_phone(phone: Optional[str], default_region: str = "US") -> Optional[str]:
        """
        Normalize phone number to E.164 format.
        Returns the stripped original if parsing fails.
        """
        if not phone:
            return None

        try:
            # Remove common separators and whitespace
            cleaned = re.sub(r'[\s\-\(\)\.]', '', phone)

            parsed = phonenumbers.parse(cleaned, default_region)

            if phonenumbers.is_valid_number(parsed):
                return phonenumbers.format_number(
                    parsed,
                    phonenumbers.PhoneNumberFormat.E164
                )
        except phonenumbers.NumberParseException:
            logger.debug(f"Failed to parse phone number: {phone}")

        return phone.strip() or None

    @staticmethod
    def normalize_keywords(keywords: Optional[List[str]]) -> List[str]:
        """Strip keywords and drop case-insensitive duplicates, keeping first-seen order."""
        seen = set()
        result = []
        for keyword in keywords or []:
            cleaned = " ".join(str(keyword).split())
            if cleaned and cleaned.lower() not in seen:
                seen.add(cleaned.lower())
                result.append(cleaned)
        return result

    def normalize_candidate(self, candidate: LeadCandidate) -> LeadCandidate:
        """Return a copy of the candidate with identity and profile fields cleaned."""
        return candidate.model_copy(update={
            "email": self.normalize_email(candidate.email),
            "phone": self.normalize_phone(candidate.phone),
            "name": self.normalize_name(candidate.name),
            "company": candidate.company.strip() if candidate.company else None,
            "title": " ".join(candidate.title.split()) if candidate.title else None,
            "keywords": self.normalize_keywords(candidate.keywords),
        })

    def candidate_from_record(self, record: Dict[str, Any], source: str) -> LeadCandidate:
        """
        Build a normalized candidate from one raw channel record.

        Args:
            record: Raw dict from a source adapter
            source: Origin channel name

        Returns:
            Normalized LeadCandidate tagged with its channel
        """
        data = {key: record[key] for key in CANDIDATE_FIELDS if record.get(key) is not None}
        data["source"] = source

        candidate = LeadCandidate(**data)
        normalized = self.normalize_candidate(candidate)

        logger.debug(f"Normalized candidate from {source}: {normalized.email or normalized.phone}")
        return normalized


# Singleton instance
normalization_service = NormalizationService()
