"""
Lead activity events that move the intent score.

Each variant carries its own score delta so the delta table stays closed:
adding an activity type means adding a variant here.
"""

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from typing import Annotated, Any, Dict, Literal, Optional, Union

from leadintel.exceptions import ValidationError


class ActivityBase(BaseModel):
    """Common base; unknown detail keys are kept for the journey record."""
    model_config = ConfigDict(extra="allow")

    def score_delta(self) -> int:
        raise NotImplementedError

    def details(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"activity_type"})


class WebsiteVisit(ActivityBase):
    activity_type: Literal["website_visit"] = "website_visit"
    pages_visited: int = Field(default=0, ge=0)

    def score_delta(self) -> int:
        return 5 if self.pages_visited > 3 else 2


class EmailEngagement(ActivityBase):
    activity_type: Literal["email_engagement"] = "email_engagement"
    clicked: bool = False

    def score_delta(self) -> int:
        return 8 if self.clicked else 3


class ContentDownload(ActivityBase):
    activity_type: Literal["content_download"] = "content_download"
    asset: Optional[str] = None

    def score_delta(self) -> int:
        return 10


class DemoRequest(ActivityBase):
    activity_type: Literal["demo_request"] = "demo_request"

    def score_delta(self) -> int:
        return 15


class ScoreAdjustment(ActivityBase):
    """Manual correction by an operator; delta may be negative."""
    activity_type: Literal["manual_adjustment"] = "manual_adjustment"
    delta: int
    reason: Optional[str] = None

    def score_delta(self) -> int:
        return self.delta


Activity = Annotated[
    Union[WebsiteVisit, EmailEngagement, ContentDownload, DemoRequest, ScoreAdjustment],
    Field(discriminator="activity_type"),
]

_activity_adapter = TypeAdapter(Activity)


def build_activity(activity_type: str, activity_details: Optional[Dict[str, Any]] = None):
    """
    Build a typed activity from a type name and a details bag.

    Raises:
        ValidationError: unknown activity type or malformed details
    """
    payload = dict(activity_details or {})
    payload["activity_type"] = activity_type
    try:
        return _activity_adapter.validate_python(payload)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid activity '{activity_type}': {e.errors()[0]['msg']}") from e
