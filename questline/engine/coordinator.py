"""
Story Coordinator: decides whether a character needs new content and what kind.

The provider proposes a decision; anything it returns that fails strict
parsing is replaced by a deterministic rule, so ``decide`` always yields a
usable Decision.
"""

from typing import Any, Dict, Optional

from questline.config import Settings, settings as default_settings
from questline.engine.generation_client import GenerationClient
from questline.errors import GenerationProviderError
from questline.lore import lore_excerpt, pillar_name
from questline.prompts import COORDINATOR_SYSTEM, COORDINATOR_USER
from questline.schemas import (
    ChatMessage,
    Character,
    Decision,
    Err,
    GenerationRequest,
    Ok,
    Result,
)
from questline.utils.logger import get_logger

logger = get_logger(__name__)

GENERIC_THEME = "Personal growth and adventure"


def stat_gap(character: Character) -> float:
    """Mean stat value minus the lowest stat value."""
    stats = character.full_stats()
    mean = sum(stats.values()) / len(stats)
    return mean - min(stats.values())


class StoryCoordinator:
    """Decides when and what content a character should be offered"""

    def __init__(self, client: GenerationClient, config: Optional[Settings] = None):
        self.client = client
        self.config = config or default_settings

    async def decide(self, character: Character, active_count: int) -> Decision:
        """
        Decide whether to offer new content. Never raises.

        At or above the active-content ceiling no provider call is made.
        """
        if active_count >= self.config.active_content_ceiling:
            return self.fallback_decision(character, active_count)

        result = await self.propose(character, active_count)
        if isinstance(result, Err):
            logger.warning(
                f"[StoryCoordinator] Using rule-based decision for {character.id}: "
                f"{result}"
            )
            return self.fallback_decision(character, active_count)

        decision = result.value
        logger.info(
            f"[StoryCoordinator] {character.id}: needs_content={decision.needs_content} "
            f"type={decision.content_type} theme={decision.theme!r}",
            extra={"component": "StoryCoordinator", "character_id": character.id},
        )
        return decision

    async def propose(self, character: Character, active_count: int) -> Result:
        """Ask the provider for a decision and parse it strictly."""
        stats = ", ".join(f"{s.value} {v}" for s, v in character.full_stats().items())
        request = GenerationRequest(
            system_context=COORDINATOR_SYSTEM.format(
                ceiling=self.config.active_content_ceiling, context=lore_excerpt()
            ),
            messages=[
                ChatMessage(
                    role="user",
                    text=COORDINATOR_USER.format(
                        name=character.name or "Unknown",
                        level=character.level,
                        character_class=character.character_class or "Adventurer",
                        stats=stats,
                        active_count=active_count,
                    ),
                )
            ],
            model=self.config.model_for("coordinator"),
            max_tokens=512,
            temperature=0.5,
        )
        try:
            response = await self.client.generate(
                request, use_cache=True, agent="coordinator"
            )
        except GenerationProviderError as e:
            return Err(e)

        parsed = response.parse(Decision)
        if isinstance(parsed, Err):
            return parsed
        return Ok(parsed.value.model_copy(update={"is_fallback": False}))

    def fallback_decision(self, character: Character, active_count: int) -> Decision:
        """Deterministic decision from active count and stat balance."""
        if active_count >= self.config.active_content_ceiling:
            return Decision(
                needs_content=False,
                reasoning=f"Character already has {active_count} active quests",
                is_fallback=True,
            )

        lowest = character.lowest_stat()
        if stat_gap(character) >= self.config.stat_imbalance_threshold:
            return Decision(
                needs_content=True,
                content_type="corrective",
                theme=f"Restoring the {pillar_name(lowest.value)}",
                difficulty="medium",
                target_stat=lowest,
                reasoning=f"{lowest.value} is significantly lower than other stats",
                is_fallback=True,
            )

        return Decision(
            needs_content=True,
            content_type="side",
            theme=GENERIC_THEME,
            difficulty="medium",
            reasoning="Character is progressing evenly; offer a side adventure",
            is_fallback=True,
        )

    def analyze_progression(self, character: Character) -> Dict[str, Any]:
        """Summary of stat balance used by tooling and logs."""
        gap = stat_gap(character)
        return {
            "level": character.level,
            "balance": "imbalanced"
            if gap >= self.config.stat_imbalance_threshold
            else "balanced",
            "highest_stat": character.highest_stat().value,
            "lowest_stat": character.lowest_stat().value,
            "gap": round(gap, 2),
        }
