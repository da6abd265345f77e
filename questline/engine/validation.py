"""
Three-tier validation pipeline.

Tier 1 checks the *input* before any provider cost is spent. Tier 2 checks
generated content in isolation. Tier 3 checks content against its context
and blends in the lore-consistency score. The pipeline holds no state; every
threshold comes from Settings.
"""

import re
from typing import Iterable, List, Optional

from pydantic import BaseModel

from questline.config import Settings, settings as default_settings
from questline.engine.context import GenerationContext
from questline.lore import known_location_names
from questline.schemas import (
    Character,
    Decision,
    GeneratedContent,
    LoreValidation,
    PipelineResult,
    StatName,
    ValidationResult,
    structural_issues,
)
from questline.utils.logger import get_logger

logger = get_logger(__name__)

INJECTION_PATTERNS = {
    "<script": "Potential script injection detected",
    "drop table": "Potential SQL injection detected",
    "delete from": "Potential SQL injection detected",
    "ignore previous instructions": "Potential prompt override detected",
    "ignore all previous instructions": "Potential prompt override detected",
}

GENERIC_PHRASES = [
    "you must",
    "you need to",
    "complete the",
    "finish the",
    "the quest",
    "your mission",
    "gain experience",
    "level up",
]

POSITIVE_WORDS = ["hope", "victory", "success", "brave", "triumph", "glory"]
NEGATIVE_WORDS = ["doom", "despair", "failure", "death", "dark", "lost"]


class PipelineInput(BaseModel):
    """What Tier 1 inspects before generation"""

    character: Optional[Character] = None
    decision: Optional[Decision] = None
    context: Optional[GenerationContext] = None


# ==================== Tier 2 heuristics (pure) ====================


def repetition_score(text: str) -> float:
    """Share of distinct meaningful words (len > 3) used more than twice."""
    counts: dict = {}
    for word in text.lower().split():
        if len(word) > 3:
            counts[word] = counts.get(word, 0) + 1
    if not counts:
        return 0.0
    repeated = sum(1 for count in counts.values() if count > 2)
    return repeated / len(counts)


def genericity_score(title: str, description: str) -> float:
    """Fraction of stock phrases present in title plus description."""
    if not title or not description:
        return 0.0
    text = f"{title} {description}".lower()
    hits = sum(1 for phrase in GENERIC_PHRASES if phrase in text)
    return hits / len(GENERIC_PHRASES)


def tone_counts(text: str):
    lowered = text.lower()
    positive = sum(1 for w in POSITIVE_WORDS if w in lowered)
    negative = sum(1 for w in NEGATIVE_WORDS if w in lowered)
    return positive, negative


def expected_tone_for(decision: Optional[Decision]) -> str:
    """Main story beats may be sombre; side and corrective quests stay hopeful."""
    if decision is None or decision.content_type == "main":
        return "neutral"
    return "positive"


def recommendation_for(score: float, issues: List[str]) -> str:
    if score >= 0.9:
        return "Content passes all validation checks. Safe to use."
    if score >= 0.7:
        return f"Content is acceptable with minor issues: {'; '.join(issues)}"
    if score >= 0.5:
        return f"Content needs revision. Issues: {'; '.join(issues)}"
    return "Content fails validation. Regenerate with stricter constraints."


class ValidationPipeline:
    """Stateless three-tier validator"""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    # ==================== Tier 1 ====================

    def validate_pre_generation(self, data: PipelineInput) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []
        score = 1.0

        character = data.character
        if character is None:
            errors.append("Missing character data")
            score -= 0.3
        else:
            if not character.name:
                warnings.append("Character missing name")
                score -= 0.05
            if not character.character_class:
                warnings.append("Character missing class")
                score -= 0.05
            if not self._has_valid_stats(character):
                warnings.append("Character has incomplete stats")
                score -= 0.1

        decision = data.decision
        if decision is None:
            warnings.append("No decision specified")
            score -= 0.1
        else:
            if not decision.needs_content:
                errors.append("Decision does not request content")
            if not decision.theme:
                warnings.append("No suggested theme")
                score -= 0.05

        if data.context is not None:
            conflicts = self._context_conflicts(data.context)
            if conflicts:
                warnings.append(f"Context conflicts detected: {', '.join(conflicts)}")
                score -= 0.1 * len(conflicts)
            size = data.context.approximate_size()
            if size > self.config.max_context_chars:
                warnings.append("Context too large, may cause token overflow")
                score -= 0.1
            elif size < self.config.min_context_chars:
                warnings.append("Context too small to ground generation")
                score -= 0.1

        injection_issues = self._injection_issues(self._free_text(data))
        if injection_issues:
            errors.extend(injection_issues)
            score -= 0.2 * len(injection_issues)

        score = max(0.0, score)
        passed = not errors and score > self.config.tier1_pass_score
        if not passed:
            logger.warning(f"[ValidationPipeline] Tier 1 failed: {errors + warnings}")
        return ValidationResult(
            tier=1,
            passed=passed,
            score=score,
            issues=errors + warnings,
            revisable=False,
            metrics={"errors": len(errors), "warnings": len(warnings)},
        )

    @staticmethod
    def _has_valid_stats(character: Character) -> bool:
        return all(character.stats.get(stat, 0) >= 1 for stat in StatName)

    @staticmethod
    def _context_conflicts(context: GenerationContext) -> List[str]:
        conflicts = []
        seen = set()
        for index, memory in enumerate(context.memories):
            if memory.source_id in seen:
                conflicts.append(f"Duplicate memory at position {index}")
            seen.add(memory.source_id)
        return conflicts

    @staticmethod
    def _free_text(data: PipelineInput) -> Iterable[str]:
        if data.character is not None:
            yield data.character.name
            yield data.character.character_class
        if data.decision is not None:
            yield data.decision.theme or ""
            yield data.decision.reasoning
        if data.context is not None:
            for memory in data.context.memories:
                yield memory.content

    @staticmethod
    def _injection_issues(texts: Iterable[str]) -> List[str]:
        joined = "\n".join(texts).lower()
        return [
            f"{message} ('{pattern}')"
            for pattern, message in INJECTION_PATTERNS.items()
            if pattern in joined
        ]

    # ==================== Tier 2 ====================

    def validate_generation(self, content: GeneratedContent) -> ValidationResult:
        warnings: List[str] = []
        score = 1.0

        repetition = repetition_score(content.description)
        if repetition > self.config.repetition_threshold:
            warnings.append(f"High repetition detected: {repetition * 100:.1f}%")
            score -= repetition * 0.5

        word_count = len(content.description.split())
        if word_count < self.config.min_word_count:
            warnings.append(f"Description too short: {word_count} words")
            score -= 0.2
        elif word_count > self.config.max_word_count:
            warnings.append(f"Description too long: {word_count} words")
            score -= 0.1

        genericity = genericity_score(content.title, content.description)
        if genericity > self.config.genericity_threshold:
            warnings.append("Content appears too generic")
            score -= genericity * 0.3

        structure = structural_issues(content)
        if structure:
            warnings.extend(structure)
            score -= 0.1 * len(structure)

        score = max(0.0, score)
        return ValidationResult(
            tier=2,
            passed=score > self.config.tier2_pass_score,
            score=score,
            issues=warnings,
            revisable=score > self.config.tier2_revisable_floor,
            metrics={
                "repetition": repetition,
                "genericity": genericity,
                "word_count": word_count,
                "structural_issues": len(structure),
            },
        )

    # ==================== Tier 3 ====================

    def validate_post_generation(
        self,
        content: GeneratedContent,
        context: Optional[GenerationContext],
        lore: Optional[LoreValidation] = None,
        expected_tone: str = "neutral",
    ) -> ValidationResult:
        issues: List[str] = []
        text = content.full_text().lower()

        coherence = self._coherence(text, context)
        if coherence < 1.0:
            issues.append("Content does not build on any retrieved memory")

        alignment = self._stat_alignment(content, context)
        if alignment < 1.0:
            issues.append("Objective rewards do not fit the character's stat profile")

        plot = self._plot_consistency(content)
        if plot < 1.0:
            issues.append(
                f"Unlocks unknown location '{content.effects.unlock_location}'"
            )

        emotional = self._emotional_consistency(text, expected_tone)
        if emotional < 1.0:
            issues.append("Emotional tone inconsistency")

        score = 1.0 - sum(1.0 - s for s in (coherence, alignment, plot, emotional))
        score = max(0.0, score)

        lore_score = None
        if lore is not None:
            lore_score = lore.score / 100.0
            weight = self.config.lorekeeper_weight
            score = score * (1 - weight) + lore_score * weight
            if not lore.passed:
                issues.extend(v.description for v in lore.violations)

        score = max(0.0, min(1.0, score))
        passed = score > self.config.consistency_threshold
        logger.info(
            f"[ValidationPipeline] Tier 3 score {score:.2f} "
            f"({'pass' if passed else 'fail'})",
            extra={"component": "ValidationPipeline", "tier": 3, "score": score},
        )
        return ValidationResult(
            tier=3,
            passed=passed,
            score=score,
            issues=issues,
            revisable=True,
            metrics={
                "coherence": coherence,
                "character_consistency": alignment,
                "plot_consistency": plot,
                "emotional_consistency": emotional,
                "lorekeeper_score": lore_score,
                "recommendation": recommendation_for(score, issues),
            },
        )

    @staticmethod
    def _coherence(text: str, context: Optional[GenerationContext]) -> float:
        if context is None or not context.memories:
            return 1.0
        keywords = {
            w for w in re.findall(r"[a-z']+", context.memory_text().lower()) if len(w) > 4
        }
        if keywords and not any(k in text for k in keywords):
            return 0.8
        return 1.0

    @staticmethod
    def _stat_alignment(
        content: GeneratedContent, context: Optional[GenerationContext]
    ) -> float:
        if context is None or not content.objectives:
            return 1.0
        ranked = [stat.value for stat, _ in context.character.ranked_stats()]
        # Corrective quests deliberately target weak stats
        focus = ranked[-2:] if content.content_type == "corrective" else ranked[:2]
        if any(o.reward_stat in focus for o in content.objectives):
            return 1.0
        return 0.9

    @staticmethod
    def _plot_consistency(content: GeneratedContent) -> float:
        location = content.effects.unlock_location
        if location and location.lower() not in {
            name.lower() for name in known_location_names()
        }:
            return 0.85
        return 1.0

    @staticmethod
    def _emotional_consistency(text: str, expected_tone: str) -> float:
        positive, negative = tone_counts(text)
        score = 1.0
        if expected_tone == "positive" and negative > positive:
            score -= 0.2
        elif expected_tone == "negative" and positive > negative:
            score -= 0.2
        if abs(positive - negative) > 5:
            score -= 0.1
        return score

    # ==================== Aggregation ====================

    def evaluate_content(
        self,
        content: GeneratedContent,
        context: Optional[GenerationContext],
        lore: Optional[LoreValidation] = None,
        expected_tone: str = "neutral",
    ) -> PipelineResult:
        """Tiers 2 and 3 for content whose input already passed Tier 1."""
        tier2 = self.validate_generation(content)
        if not tier2.revisable:
            return PipelineResult(
                passed=False,
                failed_tier=2,
                reason="; ".join(tier2.issues) or "Tier 2 score below revisable floor",
                tiers=[tier2],
            )
        tier3 = self.validate_post_generation(content, context, lore, expected_tone)
        if not tier3.passed:
            return PipelineResult(
                passed=False,
                failed_tier=3,
                reason="; ".join(tier3.issues)
                or f"Consistency {tier3.score:.2f} below threshold",
                tiers=[tier2, tier3],
            )
        return PipelineResult(passed=True, tiers=[tier2, tier3])

    def run_full_pipeline(
        self,
        data: PipelineInput,
        content: GeneratedContent,
        lore: Optional[LoreValidation] = None,
    ) -> PipelineResult:
        """All three tiers, stopping at the first failing one."""
        tier1 = self.validate_pre_generation(data)
        if not tier1.passed:
            return PipelineResult(
                passed=False,
                failed_tier=1,
                reason="; ".join(tier1.issues) or "Tier 1 score too low",
                tiers=[tier1],
            )
        rest = self.evaluate_content(
            content, data.context, lore, expected_tone_for(data.decision)
        )
        return rest.model_copy(update={"tiers": [tier1, *rest.tiers]})
