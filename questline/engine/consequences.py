"""
Consequence Engine: narrates what a completed quest changed in the world.
"""

from typing import Optional, Tuple

from questline.config import Settings, settings as default_settings
from questline.engine.context import GenerationContext
from questline.engine.generation_client import GenerationClient
from questline.engine.lorekeeper import LoreScorer
from questline.engine.policy import Verdict
from questline.engine.validation import repetition_score
from questline.errors import GenerationProviderError, SchemaValidationError
from questline.lore import pillar_name
from questline.prompts import CONSEQUENCE_SYSTEM, CONSEQUENCE_USER
from questline.schemas import (
    ChatMessage,
    Character,
    Consequence,
    Err,
    GenerationRequest,
    LoreValidation,
    Ok,
    PersistedContent,
    Result,
)
from questline.utils.logger import get_logger

logger = get_logger(__name__)

MIN_NARRATIVE_WORDS = 50
MAX_NARRATIVE_WORDS = 300


class ConsequenceEngine:
    """Generates quest outcome narratives"""

    def __init__(self, client: GenerationClient, config: Optional[Settings] = None):
        self.client = client
        self.config = config or default_settings

    async def generate(
        self,
        content: PersistedContent,
        character: Character,
        context: GenerationContext,
    ) -> Result:
        objectives = "\n".join(f"- {o.description}" for o in content.objectives)
        request = GenerationRequest(
            system_context=CONSEQUENCE_SYSTEM.format(context=context.render()),
            messages=[
                ChatMessage(
                    role="user",
                    text=CONSEQUENCE_USER.format(
                        name=character.name or "The adventurer",
                        title=content.title,
                        description=content.description,
                        objectives=objectives,
                    ),
                )
            ],
            model=self.config.model_for("consequence"),
            max_tokens=768,
            temperature=0.7,
        )
        try:
            response = await self.client.generate(
                request, use_cache=False, agent="consequence"
            )
        except GenerationProviderError as e:
            return Err(e)

        parsed = response.parse(Consequence)
        if isinstance(parsed, Err):
            return parsed

        consequence = parsed.value.model_copy(update={"is_fallback": False})
        words = len(consequence.narrative_text.split())
        if words < MIN_NARRATIVE_WORDS or words > MAX_NARRATIVE_WORDS:
            return Err(
                SchemaValidationError(
                    f"Narrative has {words} words "
                    f"(expected {MIN_NARRATIVE_WORDS}-{MAX_NARRATIVE_WORDS})",
                    response.content,
                )
            )
        return Ok(consequence)

    def fallback_outcome(
        self, content: PersistedContent, character: Character
    ) -> Consequence:
        stat = (
            content.objectives[0].reward_stat.value
            if content.objectives
            else character.lowest_stat().value
        )
        return Consequence(
            narrative_text=(
                f"You've completed {content.title}, {character.name or 'adventurer'}. "
                "Through dedication and effort, you've grown stronger in the "
                f"{pillar_name(stat)}. The citizens of Vitalia take notice of your "
                "progress. The path ahead is clearer now, and new opportunities await."
            ),
            is_fallback=True,
        )

    async def evaluate(
        self, consequence: Consequence, character: Character, lore: LoreScorer
    ) -> Tuple[Verdict, LoreValidation]:
        """Grade a narrative by lore consistency and repetition."""
        judgment = await lore.score(consequence, character)
        repetitive = (
            repetition_score(consequence.narrative_text)
            > self.config.repetition_threshold
        )
        if judgment.passed and not repetitive:
            return Verdict.PASS, judgment
        return Verdict.REVISE, judgment
