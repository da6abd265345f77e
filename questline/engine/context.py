"""
Context assembly for generation requests.

Bundles a character snapshot, the canonical lore excerpt, the most relevant
memories, the rolling story-so-far and current world-state flags into a
bounded context object.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from questline.config import Settings, settings as default_settings
from questline.db.manager import DatabaseManager
from questline.engine.memory import MemoryManager
from questline.lore import LORE_VERSION, lore_excerpt, pillar_name
from questline.schemas import Character, MemoryRecord
from questline.utils.logger import get_logger

logger = get_logger(__name__)


class GenerationContext(BaseModel):
    """Everything a generator may see about the character and the world"""

    character: Character
    content_type: str
    lore: str
    lore_version: str = LORE_VERSION
    memories: List[MemoryRecord] = Field(default_factory=list)
    world_state: Optional[Dict[str, Any]] = None
    narrative_summary: Optional[str] = None

    def memory_text(self) -> str:
        return "\n".join(m.content for m in self.memories)

    def render(self) -> str:
        """Prompt-ready text: lore, character, story so far, memory and world state."""
        character = self.character
        stats = ", ".join(f"{s.value} {v}" for s, v in character.full_stats().items())
        sections = [
            self.lore,
            "",
            "# Character",
            f"Name: {character.name or 'Unknown'}",
            f"Class: {character.character_class or 'Unknown'}",
            f"Level: {character.level}",
            f"Stats: {stats}",
            f"Weakest pillar: {pillar_name(character.lowest_stat().value)}",
        ]
        if self.narrative_summary:
            sections.extend(["", "# Story so far", self.narrative_summary])
        if self.memories:
            sections.append("")
            sections.append("# What the character remembers")
            sections.extend(f"- ({m.tier}) {m.content}" for m in self.memories)
        if self.world_state:
            sections.append("")
            sections.append("# World state")
            locations = self.world_state.get("unlocked_locations") or []
            if locations:
                sections.append("Unlocked locations: " + ", ".join(locations))
            flags = self.world_state.get("story_flags") or {}
            if flags:
                sections.append(
                    "Story flags: " + ", ".join(f"{k}={v}" for k, v in flags.items())
                )
            relationships = self.world_state.get("npc_relationships") or {}
            for npc, state in relationships.items():
                sections.append(f"{npc}: {state}")
        return "\n".join(sections)

    def approximate_size(self) -> int:
        return len(self.render())


class ContextAssembler:
    """Builds GenerationContext objects; never raises on retrieval failure"""

    def __init__(
        self,
        memory: MemoryManager,
        db: DatabaseManager,
        config: Optional[Settings] = None,
    ):
        self.memory = memory
        self.db = db
        self.config = config or default_settings

    def assemble(
        self,
        character: Character,
        content_type: str,
        query: Optional[str] = None,
        theme: Optional[str] = None,
    ) -> GenerationContext:
        query = query or self._default_query(character, content_type, theme)
        limit = self.config.max_context_events

        try:
            memories = self.memory.retrieve_relevant(character.id, query, k=limit)[
                :limit
            ]
        except Exception as e:
            logger.warning(
                f"[ContextAssembler] Memory retrieval failed for {character.id}, "
                f"continuing without memories: {e}"
            )
            memories = []

        try:
            world_state = self.db.get_world_state(character.id)
        except Exception as e:
            logger.warning(
                f"[ContextAssembler] World state unavailable for {character.id}: {e}"
            )
            world_state = None

        try:
            narrative_summary = self.memory.get_narrative_summary(character.id)
        except Exception as e:
            logger.warning(
                f"[ContextAssembler] Narrative summary unavailable for {character.id}: {e}"
            )
            narrative_summary = None

        context = GenerationContext(
            character=character,
            content_type=content_type,
            lore=lore_excerpt(),
            memories=memories,
            world_state=world_state,
            narrative_summary=narrative_summary,
        )
        logger.debug(
            f"[ContextAssembler] Context for {character.id}: {len(memories)} memories, "
            f"{context.approximate_size()} chars"
        )
        return context

    @staticmethod
    def _default_query(
        character: Character, content_type: str, theme: Optional[str]
    ) -> str:
        weakest = pillar_name(character.lowest_stat().value)
        parts = [content_type, "quest", theme or "", weakest, character.name]
        return " ".join(p for p in parts if p)
