"""
Tests for lore-consistency scoring.
"""

import pytest

from questline.engine.generation_client import GenerationClient
from questline.engine.lorekeeper import Lorekeeper, RuleBasedLoreScorer
from questline.schemas import GeneratedContent
from questline.tests.fakes import FakeProvider, lore_payload, quest_payload


def content(**overrides) -> GeneratedContent:
    return GeneratedContent.model_validate(quest_payload(**overrides))


class TestRuleBasedLoreScorer:
    """Phrase penalties and NPC checks without a provider"""

    def test_clean_content_scores_full(self, config):
        judgment = RuleBasedLoreScorer(config).evaluate(content())
        assert judgment.score == 100
        assert judgment.passed is True
        assert judgment.is_fallback is True
        assert judgment.violations == []

    def test_phrases_match_whole_words(self, config):
        scorer = RuleBasedLoreScorer(config)
        # "diet" and "skill" contain "die" and "kill" but are not violations
        safe = scorer.evaluate(
            content(title="A diet of skill and patience", npc_involved="Lady Seraphine")
        )
        assert safe.score == 100

        flagged = scorer.evaluate(content(title="Kill the beast or die trying"))
        assert flagged.score == 65
        assert {v.type for v in flagged.violations} == {"contradiction"}
        assert flagged.passed is False

    def test_unknown_npc_penalised(self, config):
        judgment = RuleBasedLoreScorer(config).evaluate(
            content(npc_involved="Captain Nemo")
        )
        assert judgment.score == 85
        assert judgment.violations[0].type == "unknown_reference"
        assert judgment.passed is True

    def test_score_floors_at_zero(self, config):
        text = "You failed. Pathetic. Death will kill you, you should die by fireball"
        judgment = RuleBasedLoreScorer(config).evaluate(
            content(description=text, npc_involved="Nobody")
        )
        assert judgment.score == 0


class TestLorekeeper:
    """Provider judgment with rule-based fallback"""

    @pytest.mark.asyncio
    async def test_provider_judgment(self, config, weak_character):
        provider = FakeProvider({"lorekeeper": [lore_payload(90)]})
        keeper = Lorekeeper(GenerationClient(provider, config), config)

        judgment = await keeper.score(content(), weak_character)

        assert judgment.score == 90
        assert judgment.passed is True
        assert judgment.is_fallback is False
        assert provider.calls[0]["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_pass_flag_derived_from_score(self, config, weak_character):
        provider = FakeProvider({"lorekeeper": [lore_payload(70, passed=True)]})
        keeper = Lorekeeper(GenerationClient(provider, config), config)
        judgment = await keeper.score(content(), weak_character)
        assert judgment.passed is False

    @pytest.mark.asyncio
    async def test_unavailable_provider_uses_rules(self, config, weak_character):
        keeper = Lorekeeper(GenerationClient(FakeProvider(), config), config)
        judgment = await keeper.score(content(npc_involved="Captain Nemo"), weak_character)
        assert judgment.is_fallback is True
        assert judgment.score == 85

    @pytest.mark.asyncio
    async def test_malformed_judgment_uses_rules(self, config, weak_character):
        provider = FakeProvider({"lorekeeper": ['{"score": 250, "passed": true}']})
        keeper = Lorekeeper(GenerationClient(provider, config), config)
        judgment = await keeper.score(content(), weak_character)
        assert judgment.is_fallback is True
        assert judgment.score == 100
