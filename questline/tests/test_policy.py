"""
Tests for the bounded generate/evaluate/retry/fallback policy.
"""

import pytest

from questline.engine.policy import GenerationPolicy, Verdict
from questline.errors import GenerationProviderError
from questline.schemas import Err, Ok


class ScriptedSteps:
    """Hands out queued generation results and verdicts in order"""

    def __init__(self, results, verdicts):
        self.results = list(results)
        self.verdicts = dict(verdicts)
        self.generated = 0
        self.evaluated = []

    async def generate(self):
        self.generated += 1
        return self.results.pop(0)

    async def evaluate(self, candidate):
        self.evaluated.append(candidate)
        return self.verdicts.get(candidate, Verdict.REVISE), f"graded {candidate}"

    def fallback(self):
        return "fallback"


def make_policy(steps, max_attempts=2):
    return GenerationPolicy(
        steps.generate,
        steps.evaluate,
        steps.fallback,
        max_attempts=max_attempts,
        name="test",
    )


class TestGenerationPolicy:
    """Test retry routing and fallback guarantees"""

    @pytest.mark.asyncio
    async def test_first_attempt_passes(self):
        steps = ScriptedSteps([Ok("first")], {"first": Verdict.PASS})
        outcome = await make_policy(steps).run()

        assert outcome.value == "first"
        assert outcome.attempts == 1
        assert outcome.used_fallback is False
        assert outcome.evaluation == "graded first"

    @pytest.mark.asyncio
    async def test_revise_then_pass(self):
        steps = ScriptedSteps(
            [Ok("first"), Ok("second")],
            {"first": Verdict.REVISE, "second": Verdict.PASS},
        )
        outcome = await make_policy(steps).run()

        assert outcome.value == "second"
        assert outcome.attempts == 2
        assert steps.generated == 2

    @pytest.mark.asyncio
    async def test_budget_exhausted_uses_fallback(self):
        steps = ScriptedSteps([Ok("first"), Ok("second"), Ok("third")], {})
        outcome = await make_policy(steps).run()

        assert outcome.value == "fallback"
        assert outcome.used_fallback is True
        assert steps.generated == 2
        # the fallback is graded too, and kept regardless
        assert steps.evaluated == ["first", "second", "fallback"]
        assert outcome.evaluation == "graded fallback"

    @pytest.mark.asyncio
    async def test_reject_skips_remaining_attempts(self):
        steps = ScriptedSteps([Ok("bad"), Ok("unused")], {"bad": Verdict.REJECT})
        outcome = await make_policy(steps).run()

        assert outcome.used_fallback is True
        assert steps.generated == 1

    @pytest.mark.asyncio
    async def test_errors_count_as_attempts(self):
        steps = ScriptedSteps(
            [Err(GenerationProviderError("down")), Err(GenerationProviderError("down"))],
            {},
        )
        outcome = await make_policy(steps).run()

        assert outcome.used_fallback is True
        assert outcome.attempts == 2
        assert len(outcome.errors) == 2
        # failed attempts never reach the evaluator
        assert steps.evaluated == ["fallback"]

    @pytest.mark.asyncio
    async def test_single_attempt_budget(self):
        steps = ScriptedSteps([Ok("first"), Ok("second")], {"second": Verdict.PASS})
        outcome = await make_policy(steps, max_attempts=1).run()
        assert outcome.used_fallback is True
        assert steps.generated == 1

    def test_invalid_budget(self):
        steps = ScriptedSteps([], {})
        with pytest.raises(ValueError):
            make_policy(steps, max_attempts=0)
