"""Lead, lead source and CRM sync records."""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID, uuid4

from leadintel.schemas.enums import LeadStatus, SourceChannel, SyncStatus, CRMSystem


class LeadCandidate(BaseModel):
    """
    Canonical shape of one lead sighting from an origin channel.

    At least one of email/phone must be present before the candidate
    can enter the pipeline.
    """
    email: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    location_city: Optional[str] = None
    location_state: Optional[str] = None
    location_zip: Optional[str] = None
    intent_score: int = 0
    keywords: List[str] = Field(default_factory=list)
    source: str = SourceChannel.MANUAL.value
    source_id: Optional[str] = None
    source_data: Dict[str, Any] = Field(default_factory=dict)
    enrichment_data: Dict[str, Any] = Field(default_factory=dict)
    status: LeadStatus = LeadStatus.NEW

    @property
    def has_identity(self) -> bool:
        return bool(self.email or self.phone)


class Lead(BaseModel):
    """Persisted lead record, keyed by identity (email and/or phone)."""
    id: UUID = Field(default_factory=uuid4)
    email: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    location_city: Optional[str] = None
    location_state: Optional[str] = None
    location_zip: Optional[str] = None
    intent_score: int = 0
    status: LeadStatus = LeadStatus.NEW
    source: Optional[str] = None
    source_data: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    enrichment_data: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    version: int = 1
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(from_attributes=True)

    @property
    def sources(self) -> List[str]:
        return list(self.enrichment_data.get("sources", []))


class LeadSource(BaseModel):
    """Immutable record of one origin-channel sighting."""
    id: UUID = Field(default_factory=uuid4)
    lead_id: UUID
    source_type: str
    source_id: str
    source_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(from_attributes=True)


class LeadSearchFilters(BaseModel):
    """Filters for lead intelligence gathering (no writes)."""
    industry: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    min_intent_score: Optional[int] = Field(None, ge=0, le=100)


class MatchResult(BaseModel):
    """Outcome of identity resolution."""
    is_duplicate: bool
    matched_lead: Optional[Lead] = None


class LeadStatusUpdate(BaseModel):
    status: LeadStatus
    note: Optional[str] = None


class LeadAnalytics(BaseModel):
    total_leads: int = 0
    by_source: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)
    journey_completion: float = 0.0
    avg_intent_score: float = 0.0


class ExternalCRMSync(BaseModel):
    """One attempt to mirror a lead into a third-party CRM."""
    id: UUID = Field(default_factory=uuid4)
    lead_id: UUID
    crm_type: CRMSystem
    external_id: str
    sync_status: SyncStatus = SyncStatus.PENDING
    last_synced: Optional[datetime] = None
    sync_data: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(from_attributes=True)


class ScoreUpdateRequest(BaseModel):
    activity_type: str
    activity_details: Dict[str, Any] = Field(default_factory=dict)


class ScoreUpdateResponse(BaseModel):
    lead_id: UUID
    old_score: int
    new_score: int
    crossed_high_intent: bool = False


class CRMSyncRequest(BaseModel):
    system: str
