"""Application configuration."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://leadintel:leadintel123@db:5432/leadintel"

    # Redis (identity cache)
    REDIS_URL: Optional[str] = None
    ENABLE_IDENTITY_CACHE: bool = False
    IDENTITY_CACHE_TTL_SECONDS: int = 3600

    # Intent scoring
    HIGH_INTENT_THRESHOLD: int = 85
    NURTURE_MIN_SCORE: int = 70
    MERGE_MAX_RETRIES: int = 3

    # Task due dates
    OUTREACH_DUE_HOURS: int = 24
    RESEARCH_DUE_DAYS: int = 3
    NURTURE_DUE_DAYS: int = 2
    SCORE_ALERT_DUE_HOURS: int = 2
    PROPOSAL_DUE_DAYS: int = 3
    STALE_LEAD_DAYS: int = 7

    # Competitor monitoring
    AUTO_TASK_IMPACT_THRESHOLD: float = 7.0
    PLAYBOOK_IMPACT_THRESHOLD: float = 7.0
    MONITORING_INTERVAL_SECONDS: int = 15
    SIMULATED_CHANGE_PROBABILITY: float = 0.05

    # Alert delivery
    SLACK_WEBHOOK_URL: Optional[str] = None
    DISCORD_WEBHOOK_URL: Optional[str] = None
    ALERT_DELIVERY_TIMEOUT_SECONDS: float = 10.0

    # External CRM sync
    CRM_SYNC_DELAY_SECONDS: float = 2.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
