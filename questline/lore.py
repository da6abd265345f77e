"""
Canonical lore for the Kingdom of Vitalia.

Read-only ground truth that generated content is checked against. Bump
LORE_VERSION whenever an entry changes so stored validation scores can be
traced back to the lore they were judged against.
"""

from typing import Any, Dict, List

LORE_VERSION = "1.0.0"

WORLD_BIBLE: Dict[str, Any] = {
    "setting": {
        "name": "The Kingdom of Vitalia",
        "description": (
            "A fantasy realm where citizens have lost connection to ancient practices "
            "of body, mind, and spirit. A dark malaise spreads across the land. The old "
            "heroes spoke of the Six Pillars that kept the kingdom strong, but that "
            "knowledge has faded. You are a novice adventurer who has discovered hints "
            "of this lost wisdom."
        ),
        "tone": (
            "earnest but not preachy, challenges feel epic but achievable, light humor "
            "welcome, acknowledge struggle without being dark"
        ),
        "forbidden_tones": [
            "shame or guilt about wellness failures",
            "toxic positivity",
            "patronizing language",
            "sarcasm about player effort",
        ],
    },
    "six_pillars": {
        "STR": {
            "name": "Pillar of Might",
            "description": "Physical power, discipline of the body",
            "activity": "strength training",
        },
        "DEX": {
            "name": "Pillar of Grace",
            "description": "Agility, flexibility, fluid movement",
            "activity": "cardio or flexibility work",
        },
        "CON": {
            "name": "Pillar of Endurance",
            "description": "Stamina, nourishment, vitality",
            "activity": "endurance training",
        },
        "INT": {
            "name": "Pillar of Clarity",
            "description": "Mental acuity, learning, focus",
            "activity": "reading or learning",
        },
        "WIS": {
            "name": "Pillar of Serenity",
            "description": "Inner peace, reflection, balance",
            "activity": "meditation or mindfulness",
        },
        "CHA": {
            "name": "Pillar of Radiance",
            "description": "Self-love, connection, confidence",
            "activity": "social connection or self-care",
        },
    },
    "core_rules": [
        "The Six Pillars are real magical forces that powered ancient civilization",
        "Individual growth in the pillars manifests as both personal wellness and magical power",
        "Balance across pillars is more powerful than mastery of one",
        "The malaise is a real magical effect caused by society abandoning the pillars",
        "Magic manifests as enhanced capability, not flashy combat spells",
        "Death doesn't exist in Vitalia; failed quests have consequences but not character death",
        "NPCs remember player actions; relationships persist and evolve",
        "Time moves forward; events have lasting consequences",
    ],
    "magic_system_constraints": [
        "No flashy combat spells",
        "Magic enhances natural abilities, doesn't replace them",
        "All magic is tied to the Six Pillars",
        "Magic requires practice and discipline, not innate talent",
    ],
    "locations": {
        "haven_village": {
            "name": "Haven Village",
            "description": "Starting location, safe hub for novice adventurers",
            "unlocked_by_default": True,
        },
        "elder_thorne_hermitage": {
            "name": "Elder Thorne's Hermitage",
            "description": "Where adventurers first learn about the Six Pillars",
            "unlocked_by_default": False,
        },
        "vitalia_city": {
            "name": "Vitalia City",
            "description": "Main hub, Lady Seraphine's guild headquarters",
            "unlocked_by_default": False,
        },
        "forgotten_peaks": {
            "name": "The Forgotten Peaks",
            "description": "Mountain region for wisdom training and meditation",
            "unlocked_by_default": False,
        },
        "whispering_woods": {
            "name": "The Whispering Woods",
            "description": "Forest area for endurance and constitution challenges",
            "unlocked_by_default": False,
        },
        "mirror_lakes": {
            "name": "The Mirror Lakes",
            "description": "Reflective waters for charisma and self-discovery",
            "unlocked_by_default": False,
        },
    },
    "npcs": {
        "elder_thorne": {
            "name": "Elder Thorne",
            "role": "Mentor who introduces adventurers to the Six Pillars",
            "personality": "Gruff but caring, patient teacher",
            "voice": "Short sentences, direct, occasional dry humor",
            "never_does": [
                "Gives excessive exposition dumps",
                "Speaks in flowery language",
            ],
            "always_does": [
                "Challenges the player to grow",
                "References past player achievements",
            ],
        },
        "lady_seraphine": {
            "name": "Lady Seraphine",
            "role": "Guild master and main quest giver",
            "personality": "Charismatic, strategic, encouraging but demanding",
            "voice": "Eloquent, encouraging, occasional playful teasing",
            "never_does": [
                "Speaks condescendingly",
                "Forgets past missions or player choices",
            ],
            "always_does": [
                "Notes the player's stat imbalances",
                "Encourages balanced growth",
            ],
        },
        "forgotten_sage": {
            "name": "The Forgotten Sage",
            "role": "Wisdom guide who appears when mental pillars are neglected",
            "personality": "Mysterious, patient, speaks in riddles",
            "voice": "Poetic, thoughtful, philosophical",
            "never_does": [
                "Forces decisions on the player",
                "Speaks directly or plainly",
            ],
            "always_does": [
                "Speaks in questions and riddles",
                "Fades mysteriously",
            ],
        },
    },
}


def pillar_name(stat: str) -> str:
    return WORLD_BIBLE["six_pillars"][stat]["name"]


def pillar_activity(stat: str) -> str:
    return WORLD_BIBLE["six_pillars"][stat]["activity"]


def known_npc_names() -> List[str]:
    return [npc["name"] for npc in WORLD_BIBLE["npcs"].values()]


def known_location_names() -> List[str]:
    return [loc["name"] for loc in WORLD_BIBLE["locations"].values()]


def lore_excerpt() -> str:
    """Compact text rendering of the lore for prompt context."""
    setting = WORLD_BIBLE["setting"]
    lines = [
        f"# {setting['name']} (lore v{LORE_VERSION})",
        setting["description"],
        f"Tone: {setting['tone']}",
        "Forbidden tones: " + "; ".join(setting["forbidden_tones"]),
        "",
        "## The Six Pillars",
    ]
    for stat, pillar in WORLD_BIBLE["six_pillars"].items():
        lines.append(f"- {stat}: {pillar['name']}: {pillar['description']}")
    lines.append("")
    lines.append("## Core Rules")
    lines.extend(f"- {rule}" for rule in WORLD_BIBLE["core_rules"])
    lines.append("")
    lines.append("## Magic Constraints")
    lines.extend(f"- {rule}" for rule in WORLD_BIBLE["magic_system_constraints"])
    lines.append("")
    lines.append("## Locations")
    lines.extend(f"- {name}" for name in known_location_names())
    lines.append("")
    lines.append("## NPCs")
    for npc in WORLD_BIBLE["npcs"].values():
        lines.append(
            f"- {npc['name']} ({npc['role']}). Voice: {npc['voice']}. "
            f"Never: {'; '.join(npc['never_does'])}"
        )
    return "\n".join(lines)
