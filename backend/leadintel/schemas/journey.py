"""Journey stage records and their typed payloads."""

from pydantic import BaseModel, Field, ConfigDict
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from datetime import datetime
from uuid import UUID, uuid4

from leadintel.schemas.enums import JourneyStageType


class KeywordStageData(BaseModel):
    """Discovery: the lead surfaced through an origin channel."""
    stage: Literal["keyword"] = "keyword"
    source: str
    keywords: List[str] = Field(default_factory=list)
    intent_signals: Dict[str, Any] = Field(default_factory=dict)
    enrichment: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class TouchpointStageData(BaseModel):
    """Engagement: an activity event and the score change it caused."""
    stage: Literal["touchpoint"] = "touchpoint"
    activity_type: str
    activity_details: Dict[str, Any] = Field(default_factory=dict)
    score_change: int
    new_score: int
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ConversionStageData(BaseModel):
    """Qualification or close."""
    stage: Literal["conversion"] = "conversion"
    from_status: Optional[str] = None
    to_status: str
    note: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


StageData = Annotated[
    Union[KeywordStageData, TouchpointStageData, ConversionStageData],
    Field(discriminator="stage"),
]


class JourneyStage(BaseModel):
    """
    Append-only journey record.

    sequence_order is left as None by callers that want the repository
    to allocate the next per-lead value.
    """
    id: UUID = Field(default_factory=uuid4)
    lead_id: UUID
    stage: JourneyStageType
    stage_data: StageData
    sequence_order: Optional[int] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(from_attributes=True)


class JourneyResponse(BaseModel):
    lead_id: UUID
    stages: List[JourneyStage]
    completion: int
