"""
Tests for pipeline schemas: decisions, content structure and response parsing.
"""

import pytest
from pydantic import ValidationError

from questline.errors import SchemaValidationError
from questline.schemas import (
    Character,
    Decision,
    Err,
    GeneratedContent,
    GenerationResponse,
    Objective,
    Ok,
    StatName,
    extract_json,
    structural_issues,
)
from questline.tests.fakes import quest_payload


class TestDecision:
    """Test Decision field requirements"""

    def test_no_content_needs_only_reasoning(self):
        decision = Decision(needs_content=False, reasoning="Enough quests")
        assert decision.content_type is None

    def test_content_requires_type_theme_and_difficulty(self):
        with pytest.raises(ValidationError):
            Decision(needs_content=True, content_type="side", reasoning="why not")

    def test_corrective_requires_target_stat(self):
        with pytest.raises(ValidationError):
            Decision(
                needs_content=True,
                content_type="corrective",
                theme="Balance",
                difficulty="easy",
                reasoning="STR is low",
            )

    def test_unknown_enum_rejected(self):
        with pytest.raises(ValidationError):
            Decision(
                needs_content=True,
                content_type="epic",
                theme="Balance",
                difficulty="easy",
                reasoning="?",
            )


class TestCharacter:
    def test_missing_stats_default_to_ten(self):
        character = Character(id="c", stats={StatName.STR: 4})
        assert character.stat(StatName.WIS) == 10
        assert character.lowest_stat() == StatName.STR
        assert len(character.full_stats()) == 6

    def test_ranked_stats_highest_first(self):
        character = Character(id="c", stats={StatName.CHA: 18, StatName.DEX: 15})
        ranked = character.ranked_stats()
        assert ranked[0] == (StatName.CHA, 18)
        assert ranked[1] == (StatName.DEX, 15)
        assert character.highest_stat() == StatName.CHA


class TestStructuralIssues:
    """Test the structural check shared by the creator and Tier 2"""

    def test_valid_content_has_no_issues(self):
        content = GeneratedContent.model_validate(quest_payload())
        assert structural_issues(content) == []

    def test_each_problem_is_reported(self):
        content = GeneratedContent(
            title="x" * 101,
            description="Too short.",
            objectives=[Objective(description="", reward_stat="LUCK", reward_xp=0)],
            estimated_duration="",
        )
        issues = structural_issues(content)
        assert any("Title longer" in issue for issue in issues)
        assert any("Description has 2 words" in issue for issue in issues)
        assert any("no description" in issue for issue in issues)
        assert any("invalid reward stat 'LUCK'" in issue for issue in issues)
        assert any("XP below 1" in issue for issue in issues)
        assert any("duration" in issue for issue in issues)

    @pytest.mark.parametrize("count", [0, 6])
    def test_objective_count_bounds(self, count):
        objectives = [
            {"description": "Walk", "reward_stat": "CON", "reward_xp": 5}
        ] * count
        content = GeneratedContent.model_validate(quest_payload(objectives=objectives))
        assert any("objectives" in issue for issue in structural_issues(content))

    def test_is_pure(self):
        content = GeneratedContent.model_validate(quest_payload(title=""))
        assert structural_issues(content) == structural_issues(content)


class TestResponseParsing:
    """Test strict parsing of provider text into schemas"""

    def test_extract_json_from_fence(self):
        text = 'Here you go:\n```json\n{"needs_content": false, "reasoning": "x"}\n```'
        assert extract_json(text) == {"needs_content": False, "reasoning": "x"}

    def test_extract_json_from_surrounding_prose(self):
        assert extract_json('Sure! {"a": 1} Hope that helps.') == {"a": 1}

    def test_parse_ok(self):
        response = GenerationResponse(
            content='{"needs_content": false, "reasoning": "busy"}', model="m"
        )
        result = response.parse(Decision)
        assert isinstance(result, Ok)
        assert result.value.needs_content is False

    @pytest.mark.parametrize(
        "content",
        [
            "not json at all",
            "[1, 2, 3]",
            '{"needs_content": true, "reasoning": "missing fields"}',
        ],
    )
    def test_parse_errors_are_values(self, content):
        result = GenerationResponse(content=content, model="m").parse(Decision)
        assert isinstance(result, Err)
        assert isinstance(result.error, SchemaValidationError)
        assert result.error.raw == content
        assert not result.ok
