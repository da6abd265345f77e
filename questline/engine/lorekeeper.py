"""
Lore-consistency scoring used by Tier 3 validation.

Two interchangeable scorers: ``Lorekeeper`` asks the provider for a
judgment against the canonical lore; ``RuleBasedLoreScorer`` applies fixed
phrase penalties and NPC checks with no network access. The Lorekeeper falls
back to the rules whenever its judgment is unavailable or malformed.
"""

import re
from typing import List, Optional, Protocol, Tuple

from questline.config import Settings, settings as default_settings
from questline.engine.generation_client import GenerationClient
from questline.errors import GenerationProviderError
from questline.lore import known_npc_names, lore_excerpt
from questline.prompts import LOREKEEPER_SYSTEM, LOREKEEPER_USER
from questline.schemas import (
    ChatMessage,
    Character,
    Err,
    GenerationRequest,
    LoreValidation,
    LoreViolation,
)
from questline.utils.logger import get_logger

logger = get_logger(__name__)

# (phrase, penalty, violation type, severity)
FORBIDDEN_PHRASES: List[Tuple[str, int, str, str]] = [
    ("you should", 10, "tone", "major"),
    ("pathetic", 20, "tone", "critical"),
    ("you failed", 15, "tone", "major"),
    ("death", 20, "contradiction", "critical"),
    ("die", 20, "contradiction", "critical"),
    ("kill", 15, "contradiction", "major"),
    ("fireball", 10, "magic_system", "minor"),
    ("lightning bolt", 10, "magic_system", "minor"),
]
UNKNOWN_NPC_PENALTY = 15


class LoreScorer(Protocol):
    async def score(self, content, character: Character) -> LoreValidation:
        ...


class RuleBasedLoreScorer:
    """Deterministic lore scoring from forbidden phrases and known NPCs"""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    async def score(self, content, character: Character) -> LoreValidation:
        return self.evaluate(content)

    def evaluate(self, content) -> LoreValidation:
        text = content.full_text().lower()
        score = 100
        violations: List[LoreViolation] = []

        for phrase, penalty, violation_type, severity in FORBIDDEN_PHRASES:
            if re.search(rf"\b{re.escape(phrase)}\b", text):
                score -= penalty
                violations.append(
                    LoreViolation(
                        type=violation_type,
                        severity=severity,
                        description=f'Contains forbidden phrase: "{phrase}"',
                        location="content",
                    )
                )

        npc = getattr(content, "npc_involved", None)
        known = [name.lower() for name in known_npc_names()]
        if npc and npc.lower() not in known:
            score -= UNKNOWN_NPC_PENALTY
            violations.append(
                LoreViolation(
                    type="unknown_reference",
                    severity="major",
                    description=f'References unknown NPC: "{npc}"',
                    location="npc_involved",
                )
            )

        score = max(0, score)
        passed = score >= self.config.lore_pass_score
        return LoreValidation(
            score=score,
            passed=passed,
            violations=violations,
            suggestions=[
                "Review content against the world lore for tone and consistency"
            ]
            if violations
            else [],
            strengths=["No major violations detected"] if passed else [],
            is_fallback=True,
        )


class Lorekeeper:
    """Provider-judged lore scoring with a rule-based fallback"""

    def __init__(
        self,
        client: GenerationClient,
        config: Optional[Settings] = None,
        fallback: Optional[RuleBasedLoreScorer] = None,
    ):
        self.client = client
        self.config = config or default_settings
        self.fallback = fallback or RuleBasedLoreScorer(self.config)

    async def score(self, content, character: Character) -> LoreValidation:
        request = GenerationRequest(
            system_context=LOREKEEPER_SYSTEM.format(
                lore=lore_excerpt(), pass_score=self.config.lore_pass_score
            ),
            messages=[
                ChatMessage(
                    role="user",
                    text=LOREKEEPER_USER.format(
                        name=character.name or "Unknown",
                        character_class=character.character_class or "Adventurer",
                        content=self._describe(content),
                    ),
                )
            ],
            model=self.config.model_for("lorekeeper"),
            max_tokens=512,
            temperature=0.2,
        )
        try:
            response = await self.client.generate(
                request, use_cache=False, agent="lorekeeper"
            )
        except GenerationProviderError as e:
            logger.warning(f"[Lorekeeper] Judgment unavailable, using rules: {e}")
            return self.fallback.evaluate(content)

        parsed = response.parse(LoreValidation)
        if isinstance(parsed, Err):
            logger.warning(f"[Lorekeeper] Judgment malformed, using rules: {parsed}")
            return self.fallback.evaluate(content)

        judgment = parsed.value
        # The pass flag is derived from the score, not trusted from the provider
        judgment = judgment.model_copy(
            update={
                "passed": judgment.score >= self.config.lore_pass_score,
                "is_fallback": False,
            }
        )
        logger.info(
            f"[Lorekeeper] Score {judgment.score}/100 "
            f"({len(judgment.violations)} violations)",
            extra={"component": "Lorekeeper", "score": judgment.score},
        )
        return judgment

    @staticmethod
    def _describe(content) -> str:
        lines = [f"Title: {getattr(content, 'title', '')}"]
        npc = getattr(content, "npc_involved", None)
        if npc:
            lines.append(f"NPC: {npc}")
        lines.append(content.full_text())
        return "\n".join(lines)
