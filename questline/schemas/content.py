"""
Generated content schema definitions (quests and their consequences)
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .character import StatName
from .decision import ContentType, Difficulty

MAX_TITLE_CHARS = 100
MIN_DESCRIPTION_WORDS = 10
MAX_DESCRIPTION_WORDS = 100
MIN_OBJECTIVES = 1
MAX_OBJECTIVES = 5

ContentStatus = Literal["available", "active", "completed", "abandoned", "expired"]

VALID_STATS = {stat.value for stat in StatName}


class Objective(BaseModel):
    """A single step of a quest"""

    description: str = Field(default="", description="What the character must do")
    goal_mapping: Optional[str] = Field(
        default=None, description="Real-world activity this objective maps to"
    )
    reward_stat: str = Field(default="", description="Stat awarded on completion")
    reward_xp: int = Field(default=0, description="XP awarded on completion")


class QuestEffects(BaseModel):
    """World-state effects applied when a quest completes"""

    set_quality: Dict[str, int] = Field(
        default_factory=dict, description="Story flags to set, e.g. {'met_elder': 1}"
    )
    unlock_location: Optional[str] = Field(default=None)
    npc_relationship: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Relationship updates keyed by NPC name",
    )

    def is_empty(self) -> bool:
        return not (self.set_quality or self.unlock_location or self.npc_relationship)


class ContentMetadata(BaseModel):
    """Provenance of a piece of generated content"""

    is_fallback: bool = Field(default=False)
    model: Optional[str] = Field(default=None)
    latency_ms: float = Field(default=0.0)
    cost: float = Field(default=0.0)
    cached: bool = Field(default=False)
    attempts: int = Field(default=0)
    decision_reasoning: Optional[str] = Field(default=None)
    template: Optional[str] = Field(default=None, description="Source template name")


class GeneratedContent(BaseModel):
    """A quest as produced by the generator, before persistence"""

    title: str = Field(default="")
    description: str = Field(default="")
    objectives: List[Objective] = Field(default_factory=list)
    content_type: ContentType = Field(default="side")
    difficulty: Difficulty = Field(default="medium")
    theme: Optional[str] = Field(default=None)
    npc_involved: Optional[str] = Field(default=None)
    estimated_duration: str = Field(default="")
    effects: QuestEffects = Field(default_factory=QuestEffects)
    metadata: ContentMetadata = Field(default_factory=ContentMetadata)

    def full_text(self) -> str:
        """Title, description and objectives as one block of prose."""
        parts = [self.title, self.description]
        parts.extend(o.description for o in self.objectives)
        return "\n".join(p for p in parts if p)


def structural_issues(content: GeneratedContent) -> List[str]:
    """
    Structural problems with generated content.

    Shared by the generator (which rejects on any issue) and Tier 2
    validation (which penalises each issue).
    """
    issues: List[str] = []

    if not content.title.strip():
        issues.append("Missing title")
    elif len(content.title) > MAX_TITLE_CHARS:
        issues.append(f"Title longer than {MAX_TITLE_CHARS} characters")

    word_count = len(content.description.split())
    if word_count < MIN_DESCRIPTION_WORDS or word_count > MAX_DESCRIPTION_WORDS:
        issues.append(
            f"Description has {word_count} words "
            f"(expected {MIN_DESCRIPTION_WORDS}-{MAX_DESCRIPTION_WORDS})"
        )

    count = len(content.objectives)
    if count < MIN_OBJECTIVES or count > MAX_OBJECTIVES:
        issues.append(
            f"Expected {MIN_OBJECTIVES}-{MAX_OBJECTIVES} objectives, got {count}"
        )

    for i, objective in enumerate(content.objectives, start=1):
        if not objective.description.strip():
            issues.append(f"Objective {i} has no description")
        if objective.reward_stat not in VALID_STATS:
            issues.append(
                f"Objective {i} has invalid reward stat '{objective.reward_stat}'"
            )
        if objective.reward_xp < 1:
            issues.append(f"Objective {i} has reward XP below 1")

    if not content.estimated_duration.strip():
        issues.append("Missing estimated duration")

    return issues


class PersistedObjective(BaseModel):
    id: int
    order_index: int
    description: str
    goal_mapping: Optional[str] = None
    reward_stat: StatName
    reward_xp: int
    completed: bool = False
    completed_at: Optional[datetime] = None


class ContentProgress(BaseModel):
    completed: int = 0
    total: int = 0
    percentage: int = 0


class PersistedContent(BaseModel):
    """A stored quest with lifecycle state"""

    id: str
    character_id: str
    title: str
    description: str
    content_type: ContentType
    difficulty: Difficulty
    theme: Optional[str] = None
    npc_involved: Optional[str] = None
    estimated_duration: str = ""
    status: ContentStatus = "available"
    validation_score: Optional[float] = None
    is_fallback: bool = False
    template: Optional[str] = None
    effects: QuestEffects = Field(default_factory=QuestEffects)
    objectives: List[PersistedObjective] = Field(default_factory=list)
    progress: ContentProgress = Field(default_factory=ContentProgress)
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class Consequence(BaseModel):
    """Narrative outcome of a completed quest"""

    narrative_text: str = Field(default="")
    npc_interactions: List[Dict[str, Any]] = Field(default_factory=list)
    world_state_changes: List[Dict[str, Any]] = Field(default_factory=list)
    future_plot_hooks: List[str] = Field(default_factory=list)
    is_fallback: bool = Field(default=False)

    def full_text(self) -> str:
        return self.narrative_text
