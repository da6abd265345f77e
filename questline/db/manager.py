"""
Database manager for Questline.

This module provides a high-level interface for database operations. Writes
that must land together (storing a quest with its objectives, progress and
event; completing an objective) run inside ``transaction()`` and pass the
session to the repository methods below.
"""

import os
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import create_engine, desc, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from questline.db.schema import (
    Base,
    CharacterRow,
    EpisodeRow,
    LongTermFactRow,
    NarrativeEventRow,
    QuestObjectiveRow,
    QuestProgressRow,
    QuestRow,
    WorldStateRow,
    utcnow,
)
from questline.errors import (
    ContentNotFoundError,
    InvalidTransitionError,
    PersistenceError,
    QuestlineError,
)
from questline.schemas import (
    Character,
    ContentProgress,
    Episode,
    EventInput,
    GeneratedContent,
    LongTermFact,
    PersistedContent,
    PersistedObjective,
    QuestEffects,
    WorkingEvent,
)
from questline.utils.logger import get_logger

logger = get_logger(__name__)

ACTIVE_STATUSES = ("available", "active")


class DatabaseManager:
    """
    Manages persistence for characters, quests and memory.

    Attributes:
        db_path: Path to the SQLite database file (":memory:" for tests)
        engine: SQLAlchemy engine for database connections
        SessionLocal: Factory for creating database sessions
    """

    def __init__(self, db_path: str = "data/questline.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file (created if doesn't exist)
        """
        self.db_path = db_path

        if db_path == ":memory:":
            self.engine = create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            directory = os.path.dirname(db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self.engine = create_engine(
                f"sqlite:///{db_path}",
                echo=False,  # Set to True for SQL debugging
                connect_args={"check_same_thread": False},
            )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info(f"Database initialized at {db_path}")

    @contextmanager
    def transaction(self) -> Iterator[DBSession]:
        """
        Run a unit of work atomically.

        Commits on success. On any failure rolls back; SQLAlchemy errors are
        re-raised as PersistenceError, engine errors propagate unchanged.
        """
        db: DBSession = self.SessionLocal()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Transaction rolled back: {e}")
            raise PersistenceError(str(e)) from e
        except QuestlineError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Transaction rolled back: {e}")
            raise PersistenceError(str(e)) from e
        finally:
            db.close()

    # ==================== Character Operations ====================

    def save_character(self, character: Character) -> Character:
        """Insert or update a character."""
        with self.transaction() as db:
            row = db.get(CharacterRow, character.id)
            stats = {k.value: v for k, v in character.stats.items()}
            if row is None:
                row = CharacterRow(id=character.id)
                db.add(row)
            row.name = character.name
            row.character_class = character.character_class
            row.level = character.level
            row.xp = character.xp
            row.gold = character.gold
            row.stats = stats
        logger.debug(f"Saved character {character.id}")
        return character

    def get_character(self, character_id: str) -> Optional[Character]:
        db: DBSession = self.SessionLocal()
        try:
            row = db.get(CharacterRow, character_id)
            return self._character_from_row(row) if row else None
        finally:
            db.close()

    def award_progress(
        self, db: DBSession, character_id: str, stat: str, xp: int, gold: int = 0
    ) -> None:
        """Add +1 to a stat plus XP/gold, inside the caller's transaction."""
        row = db.get(CharacterRow, character_id)
        if row is None:
            raise ContentNotFoundError(f"Character {character_id} not found")
        stats = dict(row.stats or {})
        stats[stat] = stats.get(stat, 10) + 1
        row.stats = stats
        row.xp = (row.xp or 0) + xp
        row.gold = (row.gold or 0) + gold

    @staticmethod
    def _character_from_row(row: CharacterRow) -> Character:
        return Character(
            id=row.id,
            name=row.name or "",
            character_class=row.character_class or "",
            level=row.level or 1,
            xp=row.xp or 0,
            gold=row.gold or 0,
            stats=row.stats or {},
        )

    # ==================== Quest Operations ====================

    def count_active_content(
        self, character_id: str, now: Optional[datetime] = None
    ) -> int:
        """Count available and active content, ignoring never-started content past expiry."""
        now = now or utcnow()
        db: DBSession = self.SessionLocal()
        try:
            return (
                db.query(QuestRow)
                .filter(
                    QuestRow.character_id == character_id,
                    QuestRow.status.in_(ACTIVE_STATUSES),
                    or_(
                        QuestRow.status == "active",
                        QuestRow.expires_at.is_(None),
                        QuestRow.expires_at >= now,
                    ),
                )
                .count()
            )
        finally:
            db.close()

    @staticmethod
    def is_stale(row: QuestRow, now: datetime) -> bool:
        """Never-started content past its expiry time."""
        return (
            row.status == "available"
            and row.expires_at is not None
            and row.expires_at < now
        )

    def insert_content(
        self,
        db: DBSession,
        character_id: str,
        content: GeneratedContent,
        validation_score: float,
        expires_at: datetime,
    ) -> str:
        """Insert a quest row; returns its new id."""
        quest_id = str(uuid.uuid4())
        db.add(
            QuestRow(
                id=quest_id,
                character_id=character_id,
                title=content.title,
                description=content.description,
                content_type=content.content_type,
                difficulty=content.difficulty,
                theme=content.theme,
                npc_involved=content.npc_involved,
                estimated_duration=content.estimated_duration,
                status="available",
                validation_score=validation_score,
                is_fallback=content.metadata.is_fallback,
                effects=content.effects.model_dump(),
                generation_metadata=content.metadata.model_dump(),
                created_at=utcnow(),
                expires_at=expires_at,
            )
        )
        return quest_id

    def insert_objectives(
        self, db: DBSession, quest_id: str, content: GeneratedContent
    ) -> int:
        for index, objective in enumerate(content.objectives):
            db.add(
                QuestObjectiveRow(
                    quest_id=quest_id,
                    order_index=index,
                    description=objective.description,
                    goal_mapping=objective.goal_mapping,
                    reward_stat=objective.reward_stat,
                    reward_xp=objective.reward_xp,
                    completed=False,
                )
            )
        return len(content.objectives)

    def init_progress(self, db: DBSession, quest_id: str, total: int) -> None:
        db.add(
            QuestProgressRow(
                quest_id=quest_id,
                objectives_completed=0,
                total_objectives=total,
                percentage=0,
            )
        )

    def get_quest_row(self, db: DBSession, quest_id: str) -> QuestRow:
        row = db.get(QuestRow, quest_id)
        if row is None:
            raise ContentNotFoundError(f"Content {quest_id} not found")
        return row

    def get_objective_row(
        self, db: DBSession, quest_id: str, objective_id: int
    ) -> QuestObjectiveRow:
        row = (
            db.query(QuestObjectiveRow)
            .filter(
                QuestObjectiveRow.id == objective_id,
                QuestObjectiveRow.quest_id == quest_id,
            )
            .first()
        )
        if row is None:
            raise ContentNotFoundError(
                f"Objective {objective_id} not found on content {quest_id}"
            )
        return row

    def claim_objective(
        self, db: DBSession, quest_id: str, objective_id: int, now: datetime
    ) -> QuestObjectiveRow:
        """
        Mark an objective completed unless it already is.

        The UPDATE only matches an uncompleted row, so when two writers
        complete the same objective exactly one of them claims it.

        Raises:
            ContentNotFoundError: no such objective on this quest
            InvalidTransitionError: the objective was already completed
        """
        claimed = (
            db.query(QuestObjectiveRow)
            .filter(
                QuestObjectiveRow.id == objective_id,
                QuestObjectiveRow.quest_id == quest_id,
                QuestObjectiveRow.completed.is_(False),
            )
            .update(
                {
                    QuestObjectiveRow.completed: True,
                    QuestObjectiveRow.completed_at: now,
                },
                synchronize_session="fetch",
            )
        )
        objective = self.get_objective_row(db, quest_id, objective_id)
        if not claimed:
            raise InvalidTransitionError(
                quest_id, f"objective {objective_id} completed", "completed"
            )
        return objective

    def recompute_progress(self, db: DBSession, quest_id: str) -> ContentProgress:
        """Recount completed objectives and update the tracker."""
        objectives = (
            db.query(QuestObjectiveRow)
            .filter(QuestObjectiveRow.quest_id == quest_id)
            .all()
        )
        total = len(objectives)
        completed = sum(1 for o in objectives if o.completed)
        percentage = round(completed / total * 100) if total else 0

        progress = db.get(QuestProgressRow, quest_id)
        if progress is None:
            raise ContentNotFoundError(f"No progress tracker for content {quest_id}")
        progress.objectives_completed = completed
        progress.total_objectives = total
        progress.percentage = percentage
        db.flush()
        return ContentProgress(completed=completed, total=total, percentage=percentage)

    def get_content(self, quest_id: str) -> Optional[PersistedContent]:
        db: DBSession = self.SessionLocal()
        try:
            row = db.get(QuestRow, quest_id)
            return self._content_from_row(db, row) if row else None
        finally:
            db.close()

    def list_content(
        self, character_id: str, status: Optional[str] = None, limit: int = 50
    ) -> List[PersistedContent]:
        """List a character's content, most recent first."""
        db: DBSession = self.SessionLocal()
        try:
            query = db.query(QuestRow).filter(QuestRow.character_id == character_id)
            if status:
                query = query.filter(QuestRow.status == status)
            rows = query.order_by(desc(QuestRow.created_at)).limit(limit).all()
            return [self._content_from_row(db, row) for row in rows]
        finally:
            db.close()

    def expire_content(self, now: datetime) -> List[str]:
        """Mark never-started content past its expiry as expired."""
        with self.transaction() as db:
            rows = (
                db.query(QuestRow)
                .filter(
                    QuestRow.status == "available",
                    QuestRow.expires_at.isnot(None),
                    QuestRow.expires_at < now,
                )
                .all()
            )
            for row in rows:
                row.status = "expired"
            return [row.id for row in rows]

    def _content_from_row(self, db: DBSession, row: QuestRow) -> PersistedContent:
        objectives = (
            db.query(QuestObjectiveRow)
            .filter(QuestObjectiveRow.quest_id == row.id)
            .order_by(QuestObjectiveRow.order_index)
            .all()
        )
        progress = db.get(QuestProgressRow, row.id)
        return PersistedContent(
            id=row.id,
            character_id=row.character_id,
            title=row.title,
            description=row.description,
            content_type=row.content_type,
            difficulty=row.difficulty,
            theme=row.theme,
            npc_involved=row.npc_involved,
            estimated_duration=row.estimated_duration or "",
            status=row.status,
            validation_score=row.validation_score,
            is_fallback=bool(row.is_fallback),
            template=(row.generation_metadata or {}).get("template"),
            effects=QuestEffects.model_validate(row.effects or {}),
            objectives=[
                PersistedObjective(
                    id=o.id,
                    order_index=o.order_index,
                    description=o.description,
                    goal_mapping=o.goal_mapping,
                    reward_stat=o.reward_stat,
                    reward_xp=o.reward_xp,
                    completed=bool(o.completed),
                    completed_at=o.completed_at,
                )
                for o in objectives
            ],
            progress=ContentProgress(
                completed=progress.objectives_completed if progress else 0,
                total=progress.total_objectives if progress else len(objectives),
                percentage=progress.percentage if progress else 0,
            ),
            created_at=row.created_at,
            started_at=row.started_at,
            completed_at=row.completed_at,
            expires_at=row.expires_at,
        )

    # ==================== Narrative Event Operations ====================

    def add_event(
        self, db: DBSession, character_id: str, event: EventInput
    ) -> WorkingEvent:
        """Append an event inside the caller's transaction."""
        row = NarrativeEventRow(
            character_id=character_id,
            event_type=event.event_type,
            description=event.description,
            participants=list(event.participants),
            stat_changes=dict(event.stat_changes),
            content_id=event.content_id,
            timestamp=event.timestamp or utcnow(),
        )
        db.add(row)
        db.flush()
        return self._event_from_row(row)

    def recent_events(self, character_id: str, limit: int) -> List[WorkingEvent]:
        """Most-recent-first slice of the event log."""
        if limit <= 0:
            return []
        db: DBSession = self.SessionLocal()
        try:
            rows = (
                db.query(NarrativeEventRow)
                .filter(NarrativeEventRow.character_id == character_id)
                .order_by(desc(NarrativeEventRow.timestamp), desc(NarrativeEventRow.id))
                .limit(limit)
                .all()
            )
            return [self._event_from_row(r) for r in rows]
        finally:
            db.close()

    def all_events(self, character_id: str) -> List[WorkingEvent]:
        db: DBSession = self.SessionLocal()
        try:
            rows = (
                db.query(NarrativeEventRow)
                .filter(NarrativeEventRow.character_id == character_id)
                .order_by(NarrativeEventRow.timestamp, NarrativeEventRow.id)
                .all()
            )
            return [self._event_from_row(r) for r in rows]
        finally:
            db.close()

    def uncompressed_events_before(
        self, character_id: str, cutoff: datetime, limit: int
    ) -> List[WorkingEvent]:
        """Oldest-first uncompressed events older than ``cutoff``."""
        db: DBSession = self.SessionLocal()
        try:
            rows = (
                db.query(NarrativeEventRow)
                .filter(
                    NarrativeEventRow.character_id == character_id,
                    NarrativeEventRow.episode_id.is_(None),
                    NarrativeEventRow.timestamp < cutoff,
                )
                .order_by(NarrativeEventRow.timestamp, NarrativeEventRow.id)
                .limit(limit)
                .all()
            )
            return [self._event_from_row(r) for r in rows]
        finally:
            db.close()

    def characters_with_events_before(self, cutoff: datetime) -> List[str]:
        db: DBSession = self.SessionLocal()
        try:
            rows = (
                db.query(NarrativeEventRow.character_id)
                .filter(
                    NarrativeEventRow.episode_id.is_(None),
                    NarrativeEventRow.timestamp < cutoff,
                )
                .distinct()
                .order_by(NarrativeEventRow.character_id)
                .all()
            )
            return [r[0] for r in rows]
        finally:
            db.close()

    @staticmethod
    def _event_from_row(row: NarrativeEventRow) -> WorkingEvent:
        return WorkingEvent(
            id=row.id,
            character_id=row.character_id,
            event_type=row.event_type,
            description=row.description,
            participants=row.participants or [],
            stat_changes=row.stat_changes or {},
            content_id=row.content_id,
            timestamp=row.timestamp,
            episode_id=row.episode_id,
        )

    # ==================== Episode Operations ====================

    def insert_episode(
        self, db: DBSession, episode_fields: Dict[str, Any], event_ids: List[int]
    ) -> Episode:
        """Store an episode and link its source events to it."""
        row = EpisodeRow(**episode_fields)
        db.add(row)
        db.flush()
        linked = (
            db.query(NarrativeEventRow)
            .filter(
                NarrativeEventRow.id.in_(event_ids),
                NarrativeEventRow.episode_id.is_(None),
            )
            .update({NarrativeEventRow.episode_id: row.id}, synchronize_session=False)
        )
        if linked != len(event_ids):
            raise PersistenceError(
                f"Expected to link {len(event_ids)} events, linked {linked}"
            )
        return self._episode_from_row(row)

    def list_episodes(self, character_id: str, limit: int = 20) -> List[Episode]:
        """Episodes, most recent period first."""
        db: DBSession = self.SessionLocal()
        try:
            rows = (
                db.query(EpisodeRow)
                .filter(EpisodeRow.character_id == character_id)
                .order_by(desc(EpisodeRow.period_end))
                .limit(limit)
                .all()
            )
            return [self._episode_from_row(r) for r in rows]
        finally:
            db.close()

    @staticmethod
    def _episode_from_row(row: EpisodeRow) -> Episode:
        return Episode(
            id=row.id,
            character_id=row.character_id,
            summary=row.summary,
            key_events=row.key_events or [],
            participants=row.participants or [],
            stat_change_totals=row.stat_change_totals or {},
            period_start=row.period_start,
            period_end=row.period_end,
            source_event_count=row.source_event_count,
            is_fallback=bool(row.is_fallback),
            created_at=row.created_at,
        )

    # ==================== Long-term Fact Operations ====================

    def upsert_fact(
        self, character_id: str, fact: str, importance: float
    ) -> LongTermFact:
        """Insert a fact, or raise an existing one's importance to ``importance``."""
        with self.transaction() as db:
            row = (
                db.query(LongTermFactRow)
                .filter(
                    LongTermFactRow.character_id == character_id,
                    LongTermFactRow.fact == fact,
                )
                .first()
            )
            if row is None:
                row = LongTermFactRow(
                    character_id=character_id,
                    fact=fact,
                    importance_score=importance,
                    created_at=utcnow(),
                )
                db.add(row)
            else:
                row.importance_score = max(row.importance_score, importance)
            db.flush()
            return self._fact_from_row(row)

    def reinforce_fact(self, fact_id: int, boost: float) -> LongTermFact:
        with self.transaction() as db:
            row = db.get(LongTermFactRow, fact_id)
            if row is None:
                raise ContentNotFoundError(f"Fact {fact_id} not found")
            row.importance_score = min(1.0, row.importance_score + boost)
            row.last_accessed_at = utcnow()
            db.flush()
            return self._fact_from_row(row)

    def list_facts(self, character_id: str, limit: int = 20) -> List[LongTermFact]:
        """Facts, most important first."""
        db: DBSession = self.SessionLocal()
        try:
            rows = (
                db.query(LongTermFactRow)
                .filter(LongTermFactRow.character_id == character_id)
                .order_by(
                    desc(LongTermFactRow.importance_score),
                    desc(LongTermFactRow.created_at),
                )
                .limit(limit)
                .all()
            )
            return [self._fact_from_row(r) for r in rows]
        finally:
            db.close()

    @staticmethod
    def _fact_from_row(row: LongTermFactRow) -> LongTermFact:
        return LongTermFact(
            id=row.id,
            character_id=row.character_id,
            fact=row.fact,
            importance_score=row.importance_score,
            created_at=row.created_at,
            last_accessed_at=row.last_accessed_at,
        )

    # ==================== World State Operations ====================

    def get_world_state(self, character_id: str) -> Dict[str, Any]:
        db: DBSession = self.SessionLocal()
        try:
            row = db.get(WorldStateRow, character_id)
            if row is None:
                return {
                    "npc_relationships": {},
                    "unlocked_locations": [],
                    "story_flags": {},
                }
            return {
                "npc_relationships": row.npc_relationships or {},
                "unlocked_locations": row.unlocked_locations or [],
                "story_flags": row.story_flags or {},
            }
        finally:
            db.close()

    def apply_effects(
        self, db: DBSession, character_id: str, effects: QuestEffects
    ) -> None:
        """Apply a completed quest's declared effects to world state."""
        row = self._world_row(db, character_id)

        # JSON columns only persist on reassignment
        flags = dict(row.story_flags or {})
        flags.update(effects.set_quality)
        row.story_flags = flags

        if effects.unlock_location:
            locations = list(row.unlocked_locations or [])
            if effects.unlock_location not in locations:
                locations.append(effects.unlock_location)
            row.unlocked_locations = locations

        relationships = dict(row.npc_relationships or {})
        for npc, change in effects.npc_relationship.items():
            merged = dict(relationships.get(npc, {}))
            merged.update(change)
            relationships[npc] = merged
        row.npc_relationships = relationships

    def get_narrative_summary(self, character_id: str) -> Optional[str]:
        db: DBSession = self.SessionLocal()
        try:
            row = db.get(WorldStateRow, character_id)
            return row.narrative_summary if row else None
        finally:
            db.close()

    def store_narrative_summary(self, character_id: str, summary: str) -> None:
        with self.transaction() as db:
            self._world_row(db, character_id).narrative_summary = summary

    @staticmethod
    def _world_row(db: DBSession, character_id: str) -> WorldStateRow:
        row = db.get(WorldStateRow, character_id)
        if row is None:
            row = WorldStateRow(
                character_id=character_id,
                npc_relationships={},
                unlocked_locations=[],
                story_flags={},
            )
            db.add(row)
        return row
