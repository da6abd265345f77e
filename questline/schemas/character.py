"""
Character schema definitions
"""

from enum import Enum
from typing import Dict, List, Tuple

from pydantic import BaseModel, Field

DEFAULT_STAT_VALUE = 10


class StatName(str, Enum):
    """The six pillar stats"""

    STR = "STR"
    DEX = "DEX"
    CON = "CON"
    INT = "INT"
    WIS = "WIS"
    CHA = "CHA"


class Character(BaseModel):
    """A player character as read from persistence"""

    id: str = Field(..., description="Unique character identifier")
    name: str = Field(default="", description="Character name")
    character_class: str = Field(default="", description="Character class")
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    gold: int = Field(default=0, ge=0)
    stats: Dict[StatName, int] = Field(
        default_factory=dict, description="Stat values keyed by stat name"
    )

    def stat(self, name: StatName) -> int:
        """Stat value, defaulting missing stats to the baseline."""
        return self.stats.get(name, DEFAULT_STAT_VALUE)

    def full_stats(self) -> Dict[StatName, int]:
        return {name: self.stat(name) for name in StatName}

    def ranked_stats(self) -> List[Tuple[StatName, int]]:
        """Stats ordered highest first; ties keep canonical order."""
        return sorted(self.full_stats().items(), key=lambda item: -item[1])

    def lowest_stat(self) -> StatName:
        return min(self.full_stats().items(), key=lambda item: item[1])[0]

    def highest_stat(self) -> StatName:
        return self.ranked_stats()[0][0]
