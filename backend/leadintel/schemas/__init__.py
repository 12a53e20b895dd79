"""Pydantic schemas for pipeline records, payload variants and requests."""

from leadintel.schemas.enums import (
    LeadStatus,
    SourceChannel,
    JourneyStageType,
    TaskStatus,
    TriggerType,
    PlaybookStatus,
    PlaybookPriority,
    PlaybookActionType,
    AlertSeverity,
    SyncStatus,
    CRMSystem,
)

from leadintel.schemas.lead import (
    LeadCandidate,
    Lead,
    LeadSource,
    LeadSearchFilters,
    MatchResult,
    LeadStatusUpdate,
    LeadAnalytics,
    ExternalCRMSync,
    ScoreUpdateRequest,
    ScoreUpdateResponse,
    CRMSyncRequest,
)

from leadintel.schemas.activity import (
    Activity,
    WebsiteVisit,
    EmailEngagement,
    ContentDownload,
    DemoRequest,
    ScoreAdjustment,
    build_activity,
)

from leadintel.schemas.journey import (
    KeywordStageData,
    TouchpointStageData,
    ConversionStageData,
    StageData,
    JourneyStage,
    JourneyResponse,
)

from leadintel.schemas.task import (
    Task,
    FollowUpTask,
    ManualFollowUpCreate,
    ManualFollowUpResponse,
    TaskStatusUpdate,
    PipelineResult,
)

from leadintel.schemas.competitor import (
    CompetitorMonitorConfig,
    CompetitorChange,
    Alert,
    PlaybookAction,
    Playbook,
    DeliveryResult,
    CompetitorResponse,
    PlaybookStatusUpdate,
    PlaybookActionAssign,
    CompetitorChangeRequest,
    MonitoringStatus,
)
