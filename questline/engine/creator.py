"""
Quest Creator: turns a Decision plus assembled context into a quest.

``generate`` returns a Result so the retry policy can decide what to do with
a bad response. ``fallback_template`` and ``from_template`` never touch the
network.
"""

from typing import Dict, List, Optional

from questline.config import Settings, settings as default_settings
from questline.engine.context import GenerationContext
from questline.engine.generation_client import GenerationClient
from questline.errors import (
    ContentNotFoundError,
    GenerationProviderError,
    SchemaValidationError,
)
from questline.lore import pillar_activity, pillar_name
from questline.prompts import CREATOR_SYSTEM, CREATOR_USER
from questline.schemas import (
    ChatMessage,
    Character,
    ContentMetadata,
    Decision,
    Err,
    GeneratedContent,
    GenerationRequest,
    Objective,
    Ok,
    Result,
    structural_issues,
)
from questline.templates import QuestTemplate, load_templates
from questline.utils.logger import get_logger

logger = get_logger(__name__)

FALLBACK_XP = {"easy": 15, "medium": 20, "hard": 30}


class QuestCreator:
    """Generates quests from decisions"""

    def __init__(
        self,
        client: GenerationClient,
        config: Optional[Settings] = None,
        templates: Optional[Dict[str, QuestTemplate]] = None,
    ):
        self.client = client
        self.config = config or default_settings
        self.templates = templates if templates is not None else load_templates()

    async def generate(
        self, decision: Decision, character: Character, context: GenerationContext
    ) -> Result:
        """
        Generate one quest.

        Returns:
            Ok(GeneratedContent), or Err(GenerationProviderError) when the
            provider fails, or Err(SchemaValidationError) when the response
            is malformed or structurally invalid
        """
        target = decision.target_stat.value if decision.target_stat else "any"
        request = GenerationRequest(
            system_context=CREATOR_SYSTEM.format(context=context.render()),
            messages=[
                ChatMessage(
                    role="user",
                    text=CREATOR_USER.format(
                        difficulty=decision.difficulty or "medium",
                        content_type=decision.content_type or "side",
                        theme=decision.theme or "",
                        target_stat=target,
                        reasoning=decision.reasoning,
                    ),
                )
            ],
            model=self.config.model_for("creator"),
            max_tokens=1024,
            temperature=0.8,
        )
        try:
            response = await self.client.generate(
                request, use_cache=False, agent="creator"
            )
        except GenerationProviderError as e:
            return Err(e)

        parsed = response.parse(GeneratedContent)
        if isinstance(parsed, Err):
            return parsed

        content = parsed.value.model_copy(
            update={
                "content_type": decision.content_type or "side",
                "difficulty": decision.difficulty or "medium",
                "theme": decision.theme,
                "metadata": ContentMetadata(
                    is_fallback=False,
                    model=response.model,
                    latency_ms=response.latency_ms,
                    cost=response.cost,
                    cached=response.cached,
                    decision_reasoning=decision.reasoning,
                ),
            }
        )
        issues = structural_issues(content)
        if issues:
            logger.warning(f"[QuestCreator] Structurally invalid quest: {issues}")
            return Err(
                SchemaValidationError(
                    "Generated quest failed structural checks: " + "; ".join(issues),
                    response.content,
                )
            )

        logger.info(
            f"[QuestCreator] Generated '{content.title}' "
            f"({len(content.objectives)} objectives)",
            extra={"component": "QuestCreator", "character_id": character.id},
        )
        return Ok(content)

    def fallback_template(
        self, decision: Decision, character: Character
    ) -> GeneratedContent:
        stat = decision.target_stat or character.lowest_stat()
        pillar = pillar_name(stat.value)
        activity = pillar_activity(stat.value)
        difficulty = decision.difficulty or "medium"
        return GeneratedContent(
            title=f"Rediscover the {pillar}",
            description=(
                f"You sense a weakness in your connection to the {pillar}. "
                "The kingdom needs you to be strong in all the ancient ways. "
                "Take time to strengthen this pillar through dedicated practice."
            ),
            objectives=[
                Objective(
                    description=f"Complete {activity} to restore your connection",
                    goal_mapping=activity,
                    reward_stat=stat.value,
                    reward_xp=FALLBACK_XP[difficulty],
                )
            ],
            content_type=decision.content_type or "corrective",
            difficulty=difficulty,
            theme=decision.theme,
            estimated_duration="1 day",
            metadata=ContentMetadata(
                is_fallback=True, decision_reasoning=decision.reasoning
            ),
        )

    def from_template(self, template_name: str) -> GeneratedContent:
        """
        Build a quest from a handwritten template.

        Raises:
            ContentNotFoundError: no template with that name
        """
        template = self.templates.get(template_name)
        if template is None:
            raise ContentNotFoundError(f"Quest template {template_name} not found")
        return template.to_content()

    def list_templates(self, stat: Optional[str] = None) -> List[QuestTemplate]:
        """Templates sorted by name, optionally only those rewarding ``stat``"""
        templates = sorted(self.templates.values(), key=lambda t: t.template_name)
        if stat:
            templates = [t for t in templates if stat.upper() in t.reward_stats()]
        return templates
