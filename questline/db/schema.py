"""
Database schema definitions using SQLAlchemy.

Characters, their quests (with objectives and a progress tracker), the
narrative event log that doubles as working memory, compressed episodes,
long-term facts and per-character world state all live in one SQLite file.
"""

# mypy: ignore-errors

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores datetimes without zone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CharacterRow(Base):
    """
    Character table.

    Attributes:
        id: Character identifier
        stats: Stat values keyed by stat name, as JSON
    """

    __tablename__ = "characters"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, default="")
    character_class = Column(String, nullable=False, default="")
    level = Column(Integer, nullable=False, default=1)
    xp = Column(Integer, nullable=False, default=0)
    gold = Column(Integer, nullable=False, default=0)
    stats = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class QuestRow(Base):
    """
    Quest table storing generated content and its lifecycle status.

    Attributes:
        status: available, active, completed, abandoned or expired
        validation_score: Final Tier 3 score the content was accepted with
        generation_metadata: Provider, cost and fallback provenance as JSON
    """

    __tablename__ = "quests"

    id = Column(String, primary_key=True)
    character_id = Column(String, ForeignKey("characters.id"), nullable=False)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    content_type = Column(String, nullable=False)
    difficulty = Column(String, nullable=False)
    theme = Column(String, nullable=True)
    npc_involved = Column(String, nullable=True)
    estimated_duration = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default="available")
    validation_score = Column(Float, nullable=True)
    is_fallback = Column(Boolean, nullable=False, default=False)
    effects = Column(JSON, nullable=False, default=dict)
    generation_metadata = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_quests_character_status", "character_id", "status"),)


class QuestObjectiveRow(Base):
    __tablename__ = "quest_objectives"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quest_id = Column(String, ForeignKey("quests.id"), nullable=False, index=True)
    order_index = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    goal_mapping = Column(String, nullable=True)
    reward_stat = Column(String(3), nullable=False)
    reward_xp = Column(Integer, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)


class QuestProgressRow(Base):
    """Progress tracker for a quest, recounted from its objectives on each completion"""

    __tablename__ = "quest_progress"

    quest_id = Column(String, ForeignKey("quests.id"), primary_key=True)
    objectives_completed = Column(Integer, nullable=False, default=0)
    total_objectives = Column(Integer, nullable=False)
    percentage = Column(Integer, nullable=False, default=0)


class EpisodeRow(Base):
    __tablename__ = "episodes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    character_id = Column(String, nullable=False, index=True)
    summary = Column(Text, nullable=False)
    key_events = Column(JSON, nullable=False, default=list)
    participants = Column(JSON, nullable=False, default=list)
    stat_change_totals = Column(JSON, nullable=False, default=dict)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    source_event_count = Column(Integer, nullable=False)
    is_fallback = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class NarrativeEventRow(Base):
    """
    Narrative event log (working memory).

    Rows are never deleted; ``episode_id`` is set once the event has been
    folded into an episode.
    """

    __tablename__ = "narrative_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    character_id = Column(String, nullable=False)
    event_type = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    participants = Column(JSON, nullable=False, default=list)
    stat_changes = Column(JSON, nullable=False, default=dict)
    content_id = Column(String, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=True)

    __table_args__ = (
        Index("ix_events_character_time", "character_id", "timestamp"),
    )


class LongTermFactRow(Base):
    __tablename__ = "long_term_facts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    character_id = Column(String, nullable=False, index=True)
    fact = Column(Text, nullable=False)
    importance_score = Column(Float, nullable=False, default=0.8)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_accessed_at = Column(DateTime, nullable=True)

    __table_args__ = (UniqueConstraint("character_id", "fact"),)


class WorldStateRow(Base):
    """Per-character world state mutated by completed quests"""

    __tablename__ = "world_state"

    character_id = Column(String, primary_key=True)
    npc_relationships = Column(JSON, nullable=False, default=dict)
    unlocked_locations = Column(JSON, nullable=False, default=list)
    story_flags = Column(JSON, nullable=False, default=dict)
    narrative_summary = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
