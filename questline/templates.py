"""
Handwritten quest templates.

Templates are offered without any provider call: tutorials, seasonal events
and hand-tuned quests for each pillar. Extra templates can be supplied as a
JSON list of template objects (``quest_templates_path``); a file entry
replaces the built-in template of the same name.
"""

import json
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from questline.schemas import (
    ContentMetadata,
    GeneratedContent,
    Objective,
    QuestEffects,
    structural_issues,
)
from questline.schemas.decision import ContentType, Difficulty


class QuestTemplate(BaseModel):
    """A handwritten quest that can be offered as-is"""

    template_name: str = Field(..., min_length=1)
    title: str
    description: str
    content_type: ContentType = Field(default="side")
    difficulty: Difficulty = Field(default="medium")
    npc_involved: Optional[str] = Field(default=None)
    theme: Optional[str] = Field(default=None)
    estimated_duration: str = Field(default="1 day")
    objectives: List[Objective] = Field(default_factory=list)
    effects: QuestEffects = Field(default_factory=QuestEffects)

    def to_content(self) -> GeneratedContent:
        return GeneratedContent(
            title=self.title,
            description=self.description,
            objectives=[o.model_copy() for o in self.objectives],
            content_type=self.content_type,
            difficulty=self.difficulty,
            theme=self.theme,
            npc_involved=self.npc_involved,
            estimated_duration=self.estimated_duration,
            effects=self.effects.model_copy(deep=True),
            metadata=ContentMetadata(template=self.template_name),
        )

    def reward_stats(self) -> List[str]:
        return [o.reward_stat for o in self.objectives]


BUILTIN_TEMPLATES = [
    {
        "template_name": "tutorial_first_steps",
        "title": "First Steps in Haven Village",
        "description": (
            "Elder Thorne waits at the edge of Haven Village. Before the Six "
            "Pillars reveal themselves, he wants to see you commit to one small "
            "act of discipline."
        ),
        "content_type": "main",
        "difficulty": "easy",
        "npc_involved": "Elder Thorne",
        "theme": "beginnings",
        "estimated_duration": "1 day",
        "objectives": [
            {
                "description": "Walk the village loop with Elder Thorne",
                "goal_mapping": "walk",
                "reward_stat": "CON",
                "reward_xp": 10,
            },
            {
                "description": "Sit with the Elder and set your first intention",
                "goal_mapping": "meditation",
                "reward_stat": "WIS",
                "reward_xp": 10,
            },
        ],
        "effects": {
            "set_quality": {"tutorial_complete": 1},
            "npc_relationship": {"Elder Thorne": {"trust": "growing"}},
        },
    },
    {
        "template_name": "str_quarry_stones",
        "title": "The Fallen Marker Stones",
        "description": (
            "Storms toppled the old marker stones on the quarry road. Haven "
            "Village needs strong arms to raise them before travelers lose "
            "their way."
        ),
        "difficulty": "medium",
        "theme": "restoration",
        "estimated_duration": "2-3 days",
        "objectives": [
            {
                "description": "Raise the marker stones along the quarry road",
                "goal_mapping": "strength_training",
                "reward_stat": "STR",
                "reward_xp": 25,
            }
        ],
        "effects": {"set_quality": {"quarry_restored": 1}},
    },
    {
        "template_name": "dex_woodland_courier",
        "title": "The Whispering Woods Courier",
        "description": (
            "A message for Lady Seraphine must cross the Whispering Woods "
            "before dusk. Only quick feet and a nimble body can keep to the "
            "narrow trails."
        ),
        "difficulty": "medium",
        "npc_involved": "Lady Seraphine",
        "theme": "agility",
        "estimated_duration": "1-2 days",
        "objectives": [
            {
                "description": "Run the woodland trail with the sealed message",
                "goal_mapping": "cardio",
                "reward_stat": "DEX",
                "reward_xp": 25,
            }
        ],
    },
    {
        "template_name": "con_peak_vigil",
        "title": "Vigil Beneath the Forgotten Peaks",
        "description": (
            "Travelers report lights moving on the Forgotten Peaks. Someone "
            "must keep a long vigil at the foothills, rested and steady until "
            "dawn."
        ),
        "difficulty": "hard",
        "theme": "endurance",
        "estimated_duration": "3-4 days",
        "objectives": [
            {
                "description": "Complete a long endurance session at the foothills",
                "goal_mapping": "endurance_training",
                "reward_stat": "CON",
                "reward_xp": 35,
            },
            {
                "description": "Rest fully before the vigil ends",
                "goal_mapping": "sleep",
                "reward_stat": "CON",
                "reward_xp": 15,
            },
        ],
    },
    {
        "template_name": "int_city_archive",
        "title": "The Vitalia City Archive",
        "description": (
            "Scrolls about the Pillar of Clarity have surfaced in the Vitalia "
            "City archive. The guild needs a patient reader to make sense of "
            "them."
        ),
        "difficulty": "easy",
        "npc_involved": "Lady Seraphine",
        "theme": "knowledge",
        "estimated_duration": "1-2 days",
        "objectives": [
            {
                "description": "Study the recovered scrolls in the archive",
                "goal_mapping": "reading",
                "reward_stat": "INT",
                "reward_xp": 15,
            }
        ],
    },
    {
        "template_name": "wis_sage_riddle",
        "title": "The Sage's Quiet Riddle",
        "description": (
            "The Forgotten Sage has left a riddle carved beside the Mirror "
            "Lakes. Its answer only comes to those who sit still long enough "
            "to hear it."
        ),
        "difficulty": "medium",
        "npc_involved": "The Forgotten Sage",
        "theme": "reflection",
        "estimated_duration": "1-2 days",
        "objectives": [
            {
                "description": "Meditate by the lakeshore until the riddle resolves",
                "goal_mapping": "meditation",
                "reward_stat": "WIS",
                "reward_xp": 20,
            }
        ],
    },
    {
        "template_name": "cha_guild_gathering",
        "title": "A Gathering at the Guild",
        "description": (
            "Lady Seraphine is hosting the adventurers of Vitalia City and "
            "wants every newcomer to be welcomed by someone who has walked the "
            "same road."
        ),
        "difficulty": "easy",
        "npc_involved": "Lady Seraphine",
        "theme": "community",
        "estimated_duration": "1 day",
        "objectives": [
            {
                "description": "Reach out to a friend and share your progress",
                "goal_mapping": "social_connection",
                "reward_stat": "CHA",
                "reward_xp": 15,
            }
        ],
        "effects": {
            "npc_relationship": {"Lady Seraphine": {"standing": "welcomed"}}
        },
    },
]


def load_templates(path: Optional[str] = None) -> Dict[str, QuestTemplate]:
    """
    Built-in templates plus those defined in a JSON file.

    Raises:
        ValueError: the file is not a list, or a template is malformed or
            fails the same structural checks generated quests must pass
    """
    entries = list(BUILTIN_TEMPLATES)
    if path:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a JSON list of quest templates")
        entries.extend(data)

    templates: Dict[str, QuestTemplate] = {}
    for entry in entries:
        template = QuestTemplate.model_validate(entry)
        issues = structural_issues(template.to_content())
        if issues:
            raise ValueError(
                f"Template '{template.template_name}' is invalid: {'; '.join(issues)}"
            )
        templates[template.template_name] = template
    return templates
