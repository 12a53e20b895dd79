"""Enumerations shared by records, services and routers."""

from enum import Enum


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class SourceChannel(str, Enum):
    LEAD_LOCATOR = "lead_locator"
    CAMPAIGN_MANAGER = "campaign_manager"
    AD_SIGNAL_HIJACK = "ad_signal_hijack"
    MANUAL = "manual"


class JourneyStageType(str, Enum):
    KEYWORD = "keyword"
    TOUCHPOINT = "touchpoint"
    CONVERSION = "conversion"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TriggerType(str, Enum):
    STATUS_CHANGE = "status_change"
    TIME_BASED = "time_based"
    SCORE_CHANGE = "score_change"
    MANUAL = "manual"


class PlaybookStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class PlaybookPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class PlaybookActionType(str, Enum):
    AD_CAMPAIGN = "ad_campaign"
    CONTENT_CREATION = "content_creation"
    SEO_OPTIMIZATION = "seo_optimization"
    PRICING_ADJUSTMENT = "pricing_adjustment"
    PRODUCT_UPDATE = "product_update"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


class CRMSystem(str, Enum):
    HUBSPOT = "hubspot"
    PIPEDRIVE = "pipedrive"
