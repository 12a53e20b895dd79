"""
Competitor-response playbook generation and lifecycle.

Playbooks are authored from per-change-type templates and always start
in draft. Status only moves forward, one step at a time:

    draft -> approved -> in_progress -> completed
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from leadintel.exceptions import InvalidTransitionError, NotFoundError
from leadintel.repositories.base import LeadIntelRepository
from leadintel.schemas import (
    Alert,
    CompetitorChange,
    CompetitorMonitorConfig,
    Playbook,
    PlaybookAction,
    PlaybookActionType,
    PlaybookPriority,
    PlaybookStatus,
)

logger = logging.getLogger(__name__)

PLAYBOOK_FLOW = [
    PlaybookStatus.DRAFT,
    PlaybookStatus.APPROVED,
    PlaybookStatus.IN_PROGRESS,
    PlaybookStatus.COMPLETED,
]

CRITICAL_IMPACT = 8.5
ESTIMATED_TIME = "24-48 hours"


# ============================================================================
# TEMPLATES
# ============================================================================

PLAYBOOK_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "ad_change": {
        "title": "Counter {competitor}'s New Ad Campaign",
        "actions": [
            {
                "title": "Analyze competitor ad creative and messaging",
                "description": "Deep-dive into competitor's new ad copy, visuals, and targeting strategy",
                "type": PlaybookActionType.AD_CAMPAIGN,
                "priority": 1,
                "estimated_hours": 3,
                "resources_needed": ["Ad intelligence tools", "Creative team"],
                "success_metrics": ["Competitor analysis completed", "Key messaging identified"],
            },
            {
                "title": "Launch competing ad campaign with superior value proposition",
                "description": "Create and launch ads that directly compete for the same keywords with better messaging",
                "type": PlaybookActionType.AD_CAMPAIGN,
                "priority": 2,
                "estimated_hours": 8,
                "resources_needed": ["Ad budget ($2000)", "Creative assets", "Campaign manager"],
                "success_metrics": ["CTR > competitor +20%", "CPC < competitor -15%"],
            },
            {
                "title": "Implement defensive SEO strategy",
                "description": "Optimize content and landing pages for targeted keywords to maintain organic visibility",
                "type": PlaybookActionType.SEO_OPTIMIZATION,
                "priority": 3,
                "estimated_hours": 6,
                "resources_needed": ["SEO team", "Content writer"],
                "success_metrics": ["Maintain top 3 rankings", "Increase organic CTR by 10%"],
            },
        ],
    },
    "pricing_update": {
        "title": "Respond to {competitor} Pricing Changes",
        "actions": [
            {
                "title": "Competitive pricing analysis",
                "description": "Analyze the impact of competitor pricing changes on market positioning",
                "type": PlaybookActionType.PRICING_ADJUSTMENT,
                "priority": 1,
                "estimated_hours": 4,
                "resources_needed": ["Pricing team", "Market research"],
                "success_metrics": ["Pricing impact assessment completed", "Recommendations provided"],
            },
            {
                "title": "Evaluate pricing strategy adjustment",
                "description": "Determine if we need to adjust our pricing or enhance value proposition",
                "type": PlaybookActionType.PRICING_ADJUSTMENT,
                "priority": 2,
                "estimated_hours": 6,
                "resources_needed": ["Leadership approval", "Finance team"],
                "success_metrics": ["Pricing strategy updated", "Customer retention maintained"],
            },
            {
                "title": "Launch value-focused campaign",
                "description": "Create marketing campaign emphasizing unique value over price competition",
                "type": PlaybookActionType.AD_CAMPAIGN,
                "priority": 3,
                "estimated_hours": 10,
                "resources_needed": ["Marketing budget", "Creative team"],
                "success_metrics": ["Campaign launched within 48h", "Value perception improved"],
            },
        ],
    },
    "content_change": {
        "title": "Outrank {competitor}'s New Content",
        "actions": [
            {
                "title": "Audit competitor content and target keywords",
                "description": "Map the topics and keywords the new competitor content is going after",
                "type": PlaybookActionType.SEO_OPTIMIZATION,
                "priority": 1,
                "estimated_hours": 3,
                "resources_needed": ["SEO tools", "Content strategist"],
                "success_metrics": ["Keyword gap list produced"],
            },
            {
                "title": "Publish a stronger competing asset",
                "description": "Write a more complete guide on the same topic with original data",
                "type": PlaybookActionType.CONTENT_CREATION,
                "priority": 2,
                "estimated_hours": 12,
                "resources_needed": ["Content writer", "Designer"],
                "success_metrics": ["Asset published", "Ranking within top 5 in 30 days"],
            },
        ],
    },
    "product_launch": {
        "title": "Position Against {competitor}'s Product Launch",
        "actions": [
            {
                "title": "Feature comparison of the new product",
                "description": "Compare the launched product against our roadmap and current offering",
                "type": PlaybookActionType.PRODUCT_UPDATE,
                "priority": 1,
                "estimated_hours": 5,
                "resources_needed": ["Product manager", "Sales engineering"],
                "success_metrics": ["Comparison sheet shared with sales"],
            },
            {
                "title": "Publish competitive battlecard",
                "description": "Arm sales with objection handling and differentiators",
                "type": PlaybookActionType.CONTENT_CREATION,
                "priority": 2,
                "estimated_hours": 4,
                "resources_needed": ["Product marketing"],
                "success_metrics": ["Battlecard adopted by sales team"],
            },
            {
                "title": "Run targeted campaign to at-risk accounts",
                "description": "Reach accounts most likely to evaluate the competitor's new product",
                "type": PlaybookActionType.AD_CAMPAIGN,
                "priority": 3,
                "estimated_hours": 8,
                "resources_needed": ["Marketing budget", "Account list"],
                "success_metrics": ["Churn in target accounts below baseline"],
            },
        ],
    },
    "seo_ranking_change": {
        "title": "Recover Rankings Lost to {competitor}",
        "actions": [
            {
                "title": "Diagnose ranking movement",
                "description": "Identify which pages and keywords lost position and why",
                "type": PlaybookActionType.SEO_OPTIMIZATION,
                "priority": 1,
                "estimated_hours": 4,
                "resources_needed": ["SEO tools", "SEO team"],
                "success_metrics": ["Root cause identified"],
            },
            {
                "title": "Refresh affected landing pages",
                "description": "Update content, internal links and metadata on the affected pages",
                "type": PlaybookActionType.CONTENT_CREATION,
                "priority": 2,
                "estimated_hours": 6,
                "resources_needed": ["Content writer", "Web developer"],
                "success_metrics": ["Rankings restored within 4 weeks"],
            },
        ],
    },
}

# Detector change types mapped onto template keys
TEMPLATE_ALIASES = {
    "new_campaign": "ad_change",
    "new_ad_campaign": "ad_change",
    "website_change": "content_change",
    "profile_update": "content_change",
    "gmb_update": "content_change",
}

DEFAULT_TEMPLATE = "ad_change"


def template_for(change_type: str) -> Dict[str, Any]:
    key = TEMPLATE_ALIASES.get(change_type, change_type)
    return PLAYBOOK_TEMPLATES.get(key, PLAYBOOK_TEMPLATES[DEFAULT_TEMPLATE])


def build_playbook(
    change: CompetitorChange,
    config: CompetitorMonitorConfig,
    alert_id: Optional[UUID] = None,
    now: Optional[datetime] = None
) -> Playbook:
    """Assemble a draft playbook; action deadlines are staggered one day apart."""
    now = now or datetime.utcnow()
    template = template_for(change.change_type)
    critical = change.impact_score >= CRITICAL_IMPACT

    actions = [
        PlaybookAction(**action, deadline=now + timedelta(days=index + 1))
        for index, action in enumerate(template["actions"])
    ]

    return Playbook(
        title=template["title"].format(competitor=config.competitor_name),
        competitor_id=change.competitor_id,
        competitor_name=config.competitor_name,
        activity_type=change.change_type,
        priority=PlaybookPriority.URGENT if critical else PlaybookPriority.HIGH,
        status=PlaybookStatus.DRAFT,
        estimated_time=ESTIMATED_TIME,
        estimated_impact="High revenue protection" if critical else "Market share defense",
        actions=actions,
        alert_id=alert_id,
        created_at=now,
        updated_at=now,
    )


class PlaybookGenerator:
    """Author playbooks and drive their lifecycle."""

    def __init__(self, repository: LeadIntelRepository):
        self.repository = repository

    async def generate_playbook(
        self,
        change: CompetitorChange,
        config: CompetitorMonitorConfig,
        alert: Optional[Alert] = None
    ) -> Playbook:
        playbook = build_playbook(change, config, alert_id=alert.id if alert else None)
        saved = await self.repository.create_playbook(playbook)
        logger.info(f"Auto-generated playbook: {saved.title} ({len(saved.actions)} actions)")
        return saved

    async def get_playbook(self, playbook_id: UUID) -> Playbook:
        playbook = await self.repository.get_playbook(playbook_id)
        if playbook is None:
            raise NotFoundError("Playbook", playbook_id)
        return playbook

    async def list_playbooks(self, active_only: bool = False) -> List[Playbook]:
        return await self.repository.list_playbooks(active_only=active_only)

    async def update_playbook_status(self, playbook_id: UUID, status: PlaybookStatus) -> Playbook:
        """
        Advance a playbook one step.

        Raises:
            NotFoundError: unknown playbook
            InvalidTransitionError: anything but the next step in the flow
        """
        playbook = await self.get_playbook(playbook_id)

        current_index = PLAYBOOK_FLOW.index(playbook.status)
        if PLAYBOOK_FLOW.index(status) != current_index + 1:
            raise InvalidTransitionError("Playbook", playbook.status.value, status.value)

        updated = await self.repository.update_playbook_status(playbook_id, status)
        logger.info(f"Playbook {playbook_id} moved {playbook.status.value} -> {status.value}")
        return updated

    async def assign_action(self, playbook_id: UUID, action_id: UUID, assigned_to: str) -> Playbook:
        updated = await self.repository.assign_playbook_action(playbook_id, action_id, assigned_to)
        logger.info(f"Playbook {playbook_id} action {action_id} assigned to {assigned_to}")
        return updated
