# tests/services/test_playbook_generator.py
"""
Tests for PlaybookGenerator

Run with: pytest tests/services/test_playbook_generator.py -v
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from uuid import uuid4

from leadintel.exceptions import InvalidTransitionError, NotFoundError
from leadintel.schemas import PlaybookActionType, PlaybookPriority, PlaybookStatus
from leadintel.services.playbook_generator import (
    DEFAULT_TEMPLATE,
    PLAYBOOK_TEMPLATES,
    PlaybookGenerator,
    build_playbook,
    template_for,
)


@pytest.fixture
def generator(repository):
    return PlaybookGenerator(repository)


@pytest_asyncio.fixture
async def playbook(generator, make_change, competitor_config):
    return await generator.generate_playbook(make_change(impact_score=7.5), competitor_config)


class TestBuild:

    def test_ad_change_template(self, make_change, competitor_config):
        now = datetime(2024, 5, 1, 9, 0, 0)
        playbook = build_playbook(make_change(impact_score=7.5), competitor_config, now=now)

        assert playbook.title == "Counter Acme Analytics's New Ad Campaign"
        assert playbook.status == PlaybookStatus.DRAFT
        assert playbook.priority == PlaybookPriority.HIGH
        assert playbook.estimated_time == "24-48 hours"
        assert playbook.actions[0].type == PlaybookActionType.AD_CAMPAIGN
        assert [a.deadline for a in playbook.actions] == [
            now + timedelta(days=i + 1) for i in range(len(playbook.actions))
        ]

    def test_critical_impact_is_urgent(self, make_change, competitor_config):
        playbook = build_playbook(make_change(impact_score=9.2), competitor_config)
        assert playbook.priority == PlaybookPriority.URGENT

    def test_pricing_template(self, make_change, competitor_config):
        playbook = build_playbook(make_change(change_type="pricing_update"), competitor_config)
        assert playbook.title == "Respond to Acme Analytics Pricing Changes"

    @pytest.mark.parametrize("change_type,template", [
        ("new_ad_campaign", "ad_change"),
        ("gmb_update", "content_change"),
        ("website_change", "content_change"),
        ("something_new", DEFAULT_TEMPLATE),
    ])
    def test_template_aliases(self, change_type, template):
        assert template_for(change_type) is PLAYBOOK_TEMPLATES[template]


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_forward_one_step_at_a_time(self, generator, playbook):
        for status in (PlaybookStatus.APPROVED, PlaybookStatus.IN_PROGRESS, PlaybookStatus.COMPLETED):
            updated = await generator.update_playbook_status(playbook.id, status)
            assert updated.status == status

    @pytest.mark.asyncio
    async def test_skipping_a_step_rejected(self, generator, playbook):
        with pytest.raises(InvalidTransitionError):
            await generator.update_playbook_status(playbook.id, PlaybookStatus.IN_PROGRESS)

    @pytest.mark.asyncio
    async def test_backwards_rejected(self, generator, playbook):
        await generator.update_playbook_status(playbook.id, PlaybookStatus.APPROVED)

        with pytest.raises(InvalidTransitionError):
            await generator.update_playbook_status(playbook.id, PlaybookStatus.DRAFT)

    @pytest.mark.asyncio
    async def test_same_status_rejected(self, generator, playbook):
        with pytest.raises(InvalidTransitionError):
            await generator.update_playbook_status(playbook.id, PlaybookStatus.DRAFT)

    @pytest.mark.asyncio
    async def test_active_only_hides_completed(self, generator, playbook, make_change, competitor_config):
        other = await generator.generate_playbook(make_change(), competitor_config)
        for status in (PlaybookStatus.APPROVED, PlaybookStatus.IN_PROGRESS, PlaybookStatus.COMPLETED):
            await generator.update_playbook_status(playbook.id, status)

        active = await generator.list_playbooks(active_only=True)

        assert [p.id for p in active] == [other.id]
        assert len(await generator.list_playbooks()) == 2

    @pytest.mark.asyncio
    async def test_assign_action(self, generator, playbook):
        action = playbook.actions[1]

        updated = await generator.assign_action(playbook.id, action.id, "marketing@team")

        assert updated.actions[1].assigned_to == "marketing@team"
        assert updated.progress == pytest.approx(1 / len(updated.actions))
        assert updated.model_dump()["progress"] == pytest.approx(1 / len(updated.actions))

    @pytest.mark.asyncio
    async def test_assign_unknown_action(self, generator, playbook):
        with pytest.raises(NotFoundError):
            await generator.assign_action(playbook.id, uuid4(), "someone")

    @pytest.mark.asyncio
    async def test_unknown_playbook(self, generator):
        with pytest.raises(NotFoundError):
            await generator.get_playbook(uuid4())
