"""
End-to-end tests for quest generation and the quest lifecycle.

Every test runs against a real SQLite file and a scripted provider; agents
with nothing scripted behave like an unreachable provider.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from questline.db.schema import utcnow
from questline.engine.orchestrator import UNAVAILABLE_REASON
from questline.errors import (
    ContentNotFoundError,
    InvalidTransitionError,
    PersistenceError,
)
from questline.schemas import Character, StatName
from questline.tests.fakes import decision_payload, lore_payload, quest_payload

NARRATIVE = (
    "The last stone settles into place with a deep and satisfying thud. "
    "Elder Thorne watches from the edge of the quarry, nodding slowly. "
    "Villagers gather at the well to see the marker restored at last, "
    "and children trace the old carvings with curious fingers. "
    "Your arms ache, yet the ache feels earned and honest. "
    "Word of your effort travels along the road toward Vitalia City."
)


def event_types(services, character_id):
    return [e.event_type for e in services.db.all_events(character_id)]


async def fallback_quest(services, character_id):
    """Create a quest without scripting any agent (every step falls back)."""
    result = await services.quests.generate_quest(character_id)
    assert result.status == "created"
    return result.content


class TestGenerateQuest:
    """Test the decide → validate → generate → store flow"""

    @pytest.mark.asyncio
    async def test_low_lore_score_triggers_one_retry(
        self, services, provider, weak_character
    ):
        provider.queue("coordinator", decision_payload())
        provider.queue("creator", quest_payload(), quest_payload())
        provider.queue("lorekeeper", lore_payload(15), lore_payload(67))

        result = await services.quests.generate_quest(weak_character.id)

        assert result.status == "created"
        assert provider.calls_for("creator") == 2
        content = result.content
        assert content.is_fallback is False
        assert round(content.validation_score, 2) == 0.90
        assert content.status == "available"
        assert content.title == "Stones of the Quarry Road"
        assert [o.reward_stat for o in content.objectives] == [StatName.STR] * 2
        assert content.progress.total == 2
        assert content.expires_at is not None
        assert result.pipeline.passed is True
        assert [t.tier for t in result.pipeline.tiers] == [1, 2, 3]
        assert event_types(services, weak_character.id) == ["quest_offered"]

    @pytest.mark.asyncio
    async def test_exhausted_retries_store_fallback(
        self, services, provider, weak_character
    ):
        provider.queue("coordinator", decision_payload())
        provider.queue("creator", quest_payload(), quest_payload())
        provider.queue(
            "lorekeeper", lore_payload(15), lore_payload(15), lore_payload(40)
        )

        result = await services.quests.generate_quest(weak_character.id)

        assert result.status == "created"
        assert provider.calls_for("creator") == 2
        content = result.content
        assert content.is_fallback is True
        assert content.title == "Rediscover the Pillar of Might"
        assert 1 <= len(content.objectives) <= 5
        assert round(content.validation_score, 2) == 0.82
        assert result.pipeline.passed is False

    @pytest.mark.asyncio
    async def test_unreachable_provider_still_creates_content(
        self, services, provider, balanced_character
    ):
        content = await fallback_quest(services, balanced_character.id)

        assert content.is_fallback is True
        assert content.content_type == "side"
        assert provider.calls_for("creator") == 2

    @pytest.mark.asyncio
    async def test_no_content_needed(self, services, provider, weak_character):
        provider.queue(
            "coordinator", {"needs_content": False, "reasoning": "Let them rest"}
        )

        result = await services.quests.generate_quest(weak_character.id)

        assert result.status == "not_needed"
        assert result.content is None
        assert provider.calls_for("creator") == 0
        assert services.quests.list_content(weak_character.id) == []

    @pytest.mark.asyncio
    async def test_active_ceiling_makes_no_provider_calls(
        self, services, provider, weak_character
    ):
        for _ in range(3):
            await fallback_quest(services, weak_character.id)
        calls_before = len(provider.calls)

        result = await services.quests.generate_quest(weak_character.id)

        assert result.status == "not_needed"
        assert len(provider.calls) == calls_before
        assert len(services.quests.list_content(weak_character.id)) == 3

    @pytest.mark.asyncio
    async def test_tier_one_failure_is_unavailable(self, services, provider, db):
        character = db.save_character(
            Character(
                id="hero-x",
                name="<script>alert('x')</script>",
                character_class="Rogue",
                stats={stat: 12 for stat in StatName},
            )
        )

        result = await services.quests.generate_quest(character.id)

        assert result.status == "unavailable"
        assert result.reason == UNAVAILABLE_REASON
        assert result.pipeline.failed_tier == 1
        assert provider.calls_for("creator") == 0
        assert services.quests.list_content(character.id) == []

    @pytest.mark.asyncio
    async def test_unknown_character(self, services):
        with pytest.raises(ContentNotFoundError):
            await services.quests.generate_quest("nobody")


class TestTemplateQuests:
    """Test offering handwritten template quests"""

    def test_template_is_stored_without_provider_calls(
        self, services, provider, weak_character
    ):
        result = services.quests.generate_from_template(
            weak_character.id, "tutorial_first_steps"
        )

        assert result.status == "created"
        assert result.reason == "Template quest: tutorial_first_steps"
        content = services.quests.get_content(result.content.id)
        assert content.template == "tutorial_first_steps"
        assert content.status == "available"
        assert content.validation_score == 1.0
        assert content.expires_at is not None
        assert [o.reward_stat for o in content.objectives] == [
            StatName.CON,
            StatName.WIS,
        ]
        assert provider.calls == []
        assert event_types(services, weak_character.id) == ["quest_offered"]

    def test_template_quest_completes_normally(self, services, weak_character):
        content = services.quests.generate_from_template(
            weak_character.id, "str_quarry_stones"
        ).content
        services.quests.start(content.id)

        done = services.quests.complete_objective(content.id, content.objectives[0].id)

        assert done.quest_completed is True
        assert services.db.get_character(weak_character.id).stat(StatName.STR) == 7
        world = services.db.get_world_state(weak_character.id)
        assert world["story_flags"] == {"quarry_restored": 1}

    def test_unknown_template(self, services, weak_character):
        with pytest.raises(ContentNotFoundError):
            services.quests.generate_from_template(weak_character.id, "dragon_slayer")
        assert services.quests.list_content(weak_character.id) == []

    def test_unknown_character(self, services):
        with pytest.raises(ContentNotFoundError):
            services.quests.generate_from_template("nobody", "tutorial_first_steps")


class TestLifecycle:
    """Test start, objective completion, abandonment and expiry"""

    @pytest.mark.asyncio
    async def test_completing_every_objective(self, services, provider, weak_character):
        provider.queue("coordinator", decision_payload())
        provider.queue("creator", quest_payload())
        provider.queue("lorekeeper", lore_payload(95))
        content = (await services.quests.generate_quest(weak_character.id)).content

        started = services.quests.start(content.id)
        assert started.status == "active"
        assert started.started_at is not None

        first, second = started.objectives
        step = services.quests.complete_objective(content.id, first.id)
        assert step.quest_completed is False
        assert step.progress.completed == 1
        assert step.progress.percentage == 50

        done = services.quests.complete_objective(content.id, second.id)
        assert done.quest_completed is True
        assert done.content.status == "completed"
        assert done.content.completed_at is not None
        assert done.progress.percentage == 100

        character = services.db.get_character(weak_character.id)
        assert character.stat(StatName.STR) == 8
        assert character.xp == 45

        world = services.db.get_world_state(weak_character.id)
        assert world["story_flags"] == {"quarry_restored": 1}
        assert world["npc_relationships"] == {"Elder Thorne": {"trust": "growing"}}

        assert event_types(services, weak_character.id) == [
            "quest_offered",
            "quest_started",
            "objective_completed",
            "quest_completed",
        ]

    @pytest.mark.asyncio
    async def test_objective_requires_active_content(self, services, weak_character):
        content = await fallback_quest(services, weak_character.id)
        with pytest.raises(InvalidTransitionError):
            services.quests.complete_objective(content.id, content.objectives[0].id)

    @pytest.mark.asyncio
    async def test_objective_cannot_complete_twice(self, services, balanced_character):
        content = await fallback_quest(services, balanced_character.id)
        services.quests.start(content.id)
        objective_id = content.objectives[0].id
        services.quests.complete_objective(content.id, objective_id)

        with pytest.raises(InvalidTransitionError):
            services.quests.complete_objective(content.id, objective_id)

    @pytest.mark.asyncio
    async def test_unknown_objective(self, services, weak_character):
        content = await fallback_quest(services, weak_character.id)
        services.quests.start(content.id)
        with pytest.raises(ContentNotFoundError):
            services.quests.complete_objective(content.id, 9999)

    @pytest.mark.asyncio
    async def test_abandon(self, services, weak_character):
        content = await fallback_quest(services, weak_character.id)

        abandoned = services.quests.abandon(content.id)
        assert abandoned.status == "abandoned"
        assert services.db.count_active_content(weak_character.id) == 0
        with pytest.raises(InvalidTransitionError):
            services.quests.abandon(content.id)
        with pytest.raises(InvalidTransitionError):
            services.quests.start(content.id)

    @pytest.mark.asyncio
    async def test_expire_stale(self, services, weak_character):
        old = await services.quests.generate_quest(
            weak_character.id, now=utcnow() - timedelta(days=10)
        )
        fresh = await fallback_quest(services, weak_character.id)

        expired = services.quests.expire_stale()

        assert expired == [old.content.id]
        assert services.quests.get_content(old.content.id).status == "expired"
        assert services.quests.get_content(fresh.id).status == "available"

    @pytest.mark.asyncio
    async def test_start_refuses_content_past_expiry(self, services, weak_character):
        old = await services.quests.generate_quest(
            weak_character.id, now=utcnow() - timedelta(days=10)
        )

        with pytest.raises(InvalidTransitionError):
            services.quests.start(old.content.id)

        stored = services.quests.get_content(old.content.id)
        assert stored.status == "expired"
        assert stored.started_at is None
        assert "quest_started" not in event_types(services, weak_character.id)

    @pytest.mark.asyncio
    async def test_started_content_does_not_expire(self, services, weak_character):
        created = utcnow() - timedelta(days=10)
        old = await services.quests.generate_quest(weak_character.id, now=created)
        services.quests.start(old.content.id, now=created + timedelta(days=1))

        assert services.quests.expire_stale() == []
        assert services.db.count_active_content(weak_character.id) == 1

    @pytest.mark.asyncio
    async def test_content_past_expiry_does_not_count_toward_ceiling(
        self, services, weak_character
    ):
        long_ago = utcnow() - timedelta(days=10)
        for _ in range(3):
            await services.quests.generate_quest(weak_character.id, now=long_ago)
        assert services.db.count_active_content(weak_character.id, long_ago) == 3
        assert services.db.count_active_content(weak_character.id) == 0

        result = await services.quests.generate_quest(weak_character.id)

        assert result.status == "created"


class TestAtomicity:
    """A failed completion leaves no partial state"""

    @pytest.mark.asyncio
    async def test_failure_mid_completion_rolls_back(self, services, weak_character):
        content = await fallback_quest(services, weak_character.id)
        services.quests.start(content.id)
        objective_id = content.objectives[0].id

        with patch.object(
            services.db, "recompute_progress", side_effect=RuntimeError("disk full")
        ):
            with pytest.raises(PersistenceError):
                services.quests.complete_objective(content.id, objective_id)

        stored = services.quests.get_content(content.id)
        assert stored.status == "active"
        assert stored.objectives[0].completed is False
        assert stored.progress.completed == 0

        character = services.db.get_character(weak_character.id)
        assert character.stat(StatName.STR) == 6
        assert character.xp == 0
        assert "objective_completed" not in event_types(services, weak_character.id)

    @pytest.mark.asyncio
    async def test_interleaved_completions_award_once(self, services, weak_character):
        content = await fallback_quest(services, weak_character.id)
        services.quests.start(content.id)
        objective = content.objectives[0]
        original = services.db.get_quest_row
        raced = []

        def interleaved(session, quest_id):
            row = original(session, quest_id)
            if not raced:
                # A second request completes the same objective after this
                # one has read the quest but before it writes anything
                raced.append(True)
                services.quests.complete_objective(quest_id, objective.id)
            return row

        with patch.object(services.db, "get_quest_row", side_effect=interleaved):
            with pytest.raises(InvalidTransitionError):
                services.quests.complete_objective(content.id, objective.id)

        character = services.db.get_character(weak_character.id)
        assert character.stat(StatName.STR) == 7
        assert character.xp == objective.reward_xp
        awarded = [
            t
            for t in event_types(services, weak_character.id)
            if t in ("objective_completed", "quest_completed")
        ]
        assert len(awarded) == 1
        stored = services.quests.get_content(content.id)
        assert stored.objectives[0].completed is True
        assert stored.progress.completed == 1

    @pytest.mark.asyncio
    async def test_objective_is_claimed_once(self, services, weak_character):
        content = await fallback_quest(services, weak_character.id)
        objective_id = content.objectives[0].id

        with services.db.transaction() as session:
            claimed = services.db.claim_objective(
                session, content.id, objective_id, utcnow()
            )
            assert claimed.completed is True
            assert claimed.completed_at is not None

        with pytest.raises(InvalidTransitionError):
            with services.db.transaction() as session:
                services.db.claim_objective(session, content.id, objective_id, utcnow())

        with pytest.raises(ContentNotFoundError):
            with services.db.transaction() as session:
                services.db.claim_objective(session, content.id, 9999, utcnow())


class TestNarration:
    """Test consequence narration for completed quests"""

    async def completed(self, services, character_id):
        content = await fallback_quest(services, character_id)
        services.quests.start(content.id)
        services.quests.complete_objective(content.id, content.objectives[0].id)
        return content

    @pytest.mark.asyncio
    async def test_scripted_narrative(self, services, provider, weak_character):
        content = await self.completed(services, weak_character.id)
        provider.queue(
            "consequence",
            {
                "narrative_text": NARRATIVE,
                "npc_interactions": [{"npc_name": "Elder Thorne", "dialogue": "Well done."}],
            },
        )
        provider.queue("lorekeeper", lore_payload(95))

        consequence = await services.quests.narrate_completion(content.id)

        assert consequence.is_fallback is False
        events = services.db.all_events(weak_character.id)
        assert events[-1].event_type == "quest_outcome"
        assert events[-1].participants == ["Elder Thorne"]
        assert events[-1].description == NARRATIVE

    @pytest.mark.asyncio
    async def test_fallback_narrative(self, services, provider, weak_character):
        content = await self.completed(services, weak_character.id)

        consequence = await services.quests.narrate_completion(content.id)

        assert consequence.is_fallback is True
        assert provider.calls_for("consequence") == 2
        assert consequence.narrative_text.startswith(f"You've completed {content.title}")

    @pytest.mark.asyncio
    async def test_only_completed_content(self, services, weak_character):
        content = await fallback_quest(services, weak_character.id)
        with pytest.raises(InvalidTransitionError):
            await services.quests.narrate_completion(content.id)

    @pytest.mark.asyncio
    async def test_narration_extends_story_so_far(
        self, services, provider, weak_character
    ):
        content = await self.completed(services, weak_character.id)

        await services.quests.narrate_completion(content.id)

        summary = services.db.get_narrative_summary(weak_character.id)
        assert summary.startswith("Aria, a Ranger, has recently begun their journey.")
        assert f'Aria recently completed "{content.title}"' in summary
        assert provider.calls_for("memory") == 1
