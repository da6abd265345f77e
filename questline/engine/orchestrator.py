"""
Quest service: the end-to-end quest lifecycle.

Coordinates the decision maker, validation tiers, quest creator, lorekeeper
and memory for generation, then owns every lifecycle transition after a
quest is stored:

    DECIDE → TIER 1 → (generate → validate)×N → fallback → STORE

Each write (store, start, objective completion, abandon) is one database
transaction; a failure anywhere inside it leaves no partial state behind.
"""

from datetime import datetime, timedelta
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel

from questline.config import Settings, settings as default_settings
from questline.db.manager import DatabaseManager
from questline.db.schema import utcnow
from questline.engine.consequences import ConsequenceEngine
from questline.engine.context import ContextAssembler, GenerationContext
from questline.engine.coordinator import StoryCoordinator
from questline.engine.creator import QuestCreator
from questline.engine.lorekeeper import LoreScorer
from questline.engine.memory import MemoryManager
from questline.engine.policy import GenerationPolicy, Verdict
from questline.engine.validation import (
    PipelineInput,
    ValidationPipeline,
    expected_tone_for,
)
from questline.errors import (
    ContentNotFoundError,
    InvalidTransitionError,
    ValidationFailure,
)
from questline.schemas import (
    Character,
    Consequence,
    ContentProgress,
    Decision,
    EventInput,
    GeneratedContent,
    PersistedContent,
    PipelineResult,
    QuestEffects,
    ValidationResult,
    WorkingEvent,
)
from questline.utils.logger import get_logger

logger = get_logger(__name__)

UNAVAILABLE_REASON = "Cannot generate content right now"


class QuestGenerationResult(BaseModel):
    status: Literal["created", "not_needed", "unavailable"]
    content: Optional[PersistedContent] = None
    decision: Optional[Decision] = None
    pipeline: Optional[PipelineResult] = None
    reason: Optional[str] = None


class ObjectiveCompletion(BaseModel):
    content: PersistedContent
    progress: ContentProgress
    quest_completed: bool


class QuestService:
    """
    Orchestrates quest generation and the quest lifecycle.

    Attributes:
        db: Persistence for characters, quests and events
        coordinator: Decides whether and what to generate
        creator: Generates quests and fallback templates
        assembler: Builds generation context from memory and world state
        pipeline: Three-tier validator
        lore_scorer: Lorekeeper or rule-based lore scorer used by Tier 3
        memory: Working memory; quest events are appended and indexed here
        consequences: Narrates completed quests
    """

    def __init__(
        self,
        db: DatabaseManager,
        coordinator: StoryCoordinator,
        creator: QuestCreator,
        assembler: ContextAssembler,
        pipeline: ValidationPipeline,
        lore_scorer: LoreScorer,
        memory: MemoryManager,
        consequences: Optional[ConsequenceEngine] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.coordinator = coordinator
        self.creator = creator
        self.assembler = assembler
        self.pipeline = pipeline
        self.lore_scorer = lore_scorer
        self.memory = memory
        self.consequences = consequences
        self.config = config or default_settings

    # ==================== Generation ====================

    async def generate_quest(
        self, character_id: str, now: Optional[datetime] = None
    ) -> QuestGenerationResult:
        """
        Decide, validate, generate and store one quest for a character.

        Returns:
            QuestGenerationResult with status ``created`` (content stored),
            ``not_needed`` (no provider generation happened) or
            ``unavailable`` (input failed Tier 1; nothing stored)

        Raises:
            ContentNotFoundError: unknown character
            PersistenceError: the store transaction failed and was rolled back
        """
        now = now or utcnow()
        character = self._require_character(character_id)
        active_count = self.db.count_active_content(character_id, now)

        decision = await self.coordinator.decide(character, active_count)
        if not decision.needs_content:
            logger.info(
                f"[QuestService] No content needed for {character_id}: "
                f"{decision.reasoning}"
            )
            return QuestGenerationResult(
                status="not_needed", decision=decision, reason=decision.reasoning
            )

        context = self.assembler.assemble(
            character, decision.content_type, theme=decision.theme
        )
        tier1 = self.pipeline.validate_pre_generation(
            PipelineInput(character=character, decision=decision, context=context)
        )
        try:
            self._require_pass(tier1)
        except ValidationFailure as e:
            logger.warning(f"[QuestService] {character_id}: {e}")
            return QuestGenerationResult(
                status="unavailable",
                decision=decision,
                pipeline=PipelineResult(
                    passed=False,
                    failed_tier=e.tier,
                    reason="; ".join(e.issues),
                    tiers=[tier1],
                ),
                reason=UNAVAILABLE_REASON,
            )

        tone = expected_tone_for(decision)

        async def generate():
            return await self.creator.generate(decision, character, context)

        async def evaluate(content: GeneratedContent) -> Tuple[Verdict, PipelineResult]:
            return await self._evaluate(content, character, context, tone)

        policy = GenerationPolicy(
            generate,
            evaluate,
            lambda: self.creator.fallback_template(decision, character),
            max_attempts=self.config.max_generation_attempts,
            name="quest",
        )
        outcome = await policy.run()

        content: GeneratedContent = outcome.value
        content = content.model_copy(
            update={
                "metadata": content.metadata.model_copy(
                    update={"attempts": outcome.attempts}
                )
            }
        )
        evaluation: Optional[PipelineResult] = outcome.evaluation
        tiers = [tier1] + (evaluation.tiers if evaluation else [])
        pipeline = PipelineResult(
            passed=bool(evaluation and evaluation.passed),
            failed_tier=evaluation.failed_tier if evaluation else None,
            reason=evaluation.reason if evaluation else None,
            tiers=tiers,
        )

        stored = self._store(character_id, content, pipeline.overall_score, now)
        logger.info(
            f"[QuestService] Created '{stored.title}' for {character_id} "
            f"(score {pipeline.overall_score:.2f}, attempts {outcome.attempts}, "
            f"fallback {outcome.used_fallback})",
            extra={
                "component": "QuestService",
                "character_id": character_id,
                "content_id": stored.id,
            },
        )
        return QuestGenerationResult(
            status="created", content=stored, decision=decision, pipeline=pipeline
        )

    def generate_from_template(
        self, character_id: str, template_name: str, now: Optional[datetime] = None
    ) -> QuestGenerationResult:
        """
        Offer a handwritten template quest, bypassing the coordinator and
        validation tiers.

        Raises:
            ContentNotFoundError: unknown character or template
        """
        now = now or utcnow()
        self._require_character(character_id)
        content = self.creator.from_template(template_name)
        stored = self._store(character_id, content, 1.0, now)
        logger.info(
            f"[QuestService] Offered template '{template_name}' to {character_id}",
            extra={
                "component": "QuestService",
                "character_id": character_id,
                "content_id": stored.id,
            },
        )
        return QuestGenerationResult(
            status="created", content=stored, reason=f"Template quest: {template_name}"
        )

    @staticmethod
    def _require_pass(result: ValidationResult) -> None:
        if not result.passed:
            raise ValidationFailure(
                result.tier, result.issues or [f"Score {result.score:.2f} too low"]
            )

    async def _evaluate(
        self,
        content: GeneratedContent,
        character: Character,
        context: GenerationContext,
        tone: str,
    ) -> Tuple[Verdict, PipelineResult]:
        tier2 = self.pipeline.validate_generation(content)
        if not tier2.revisable:
            return Verdict.REJECT, PipelineResult(
                passed=False,
                failed_tier=2,
                reason="; ".join(tier2.issues) or "Tier 2 score below revisable floor",
                tiers=[tier2],
            )
        lore = await self.lore_scorer.score(content, character)
        result = self.pipeline.evaluate_content(content, context, lore, tone)
        return (Verdict.PASS if result.passed else Verdict.REVISE), result

    def _store(
        self,
        character_id: str,
        content: GeneratedContent,
        validation_score: float,
        now: datetime,
    ) -> PersistedContent:
        expires_at = now + timedelta(days=self.config.content_expiry_days)
        with self.db.transaction() as session:
            content_id = self.db.insert_content(
                session, character_id, content, validation_score, expires_at
            )
            total = self.db.insert_objectives(session, content_id, content)
            self.db.init_progress(session, content_id, total)
            event = self.db.add_event(
                session,
                character_id,
                EventInput(
                    event_type="quest_offered",
                    description=f'A new quest is offered: "{content.title}"',
                    participants=[content.npc_involved] if content.npc_involved else [],
                    content_id=content_id,
                    timestamp=now,
                ),
            )
        self.memory.index_event(event)
        return self._require_content(content_id)

    # ==================== Lifecycle ====================

    def start(self, content_id: str, now: Optional[datetime] = None) -> PersistedContent:
        """
        Move content from available to active.

        Content past its expiry is marked expired instead, and the start is
        refused with InvalidTransitionError.
        """
        now = now or utcnow()
        if self._expire_if_stale(content_id, now):
            raise InvalidTransitionError(content_id, "expired", "active")
        with self.db.transaction() as session:
            row = self.db.get_quest_row(session, content_id)
            if row.status != "available":
                raise InvalidTransitionError(content_id, row.status, "active")
            row.status = "active"
            row.started_at = now
            event = self._record(
                session,
                row.character_id,
                "quest_started",
                f'You accepted the quest: "{row.title}"',
                content_id,
                now,
                participants=[row.npc_involved] if row.npc_involved else [],
            )
        self.memory.index_event(event)
        return self._require_content(content_id)

    def complete_objective(
        self, content_id: str, objective_id: int, now: Optional[datetime] = None
    ) -> ObjectiveCompletion:
        """
        Complete one objective of active content.

        Awards the objective's stat (+1) and XP, recomputes progress and, when
        the last objective completes, completes the content and applies its
        effects to world state. All of it commits together or not at all.

        Raises:
            ContentNotFoundError: unknown content or objective
            InvalidTransitionError: content not active, or objective already
                done (including by a concurrent completion)
            PersistenceError: the transaction failed and was rolled back
        """
        now = now or utcnow()
        with self.db.transaction() as session:
            row = self.db.get_quest_row(session, content_id)
            if row.status != "active":
                raise InvalidTransitionError(content_id, row.status, "completed")
            objective = self.db.claim_objective(session, content_id, objective_id, now)
            self.db.award_progress(
                session, row.character_id, objective.reward_stat, objective.reward_xp
            )
            progress = self.db.recompute_progress(session, content_id)

            finished = progress.total > 0 and progress.completed == progress.total
            if finished:
                row.status = "completed"
                row.completed_at = now
                self.db.apply_effects(
                    session,
                    row.character_id,
                    QuestEffects.model_validate(row.effects or {}),
                )
                event = self._record(
                    session,
                    row.character_id,
                    "quest_completed",
                    f'You\'ve completed the quest: "{row.title}"!',
                    content_id,
                    now,
                    participants=[row.npc_involved] if row.npc_involved else [],
                    stat_changes={objective.reward_stat: 1},
                )
            else:
                event = self._record(
                    session,
                    row.character_id,
                    "objective_completed",
                    f"Objective completed: {objective.description}",
                    content_id,
                    now,
                    stat_changes={objective.reward_stat: 1},
                )

        self.memory.index_event(event)
        logger.info(
            f"[QuestService] Objective {objective_id} of {content_id} completed "
            f"({progress.completed}/{progress.total})",
            extra={"component": "QuestService", "content_id": content_id},
        )
        return ObjectiveCompletion(
            content=self._require_content(content_id),
            progress=progress,
            quest_completed=finished,
        )

    def abandon(
        self, content_id: str, now: Optional[datetime] = None
    ) -> PersistedContent:
        now = now or utcnow()
        with self.db.transaction() as session:
            row = self.db.get_quest_row(session, content_id)
            if row.status not in ("available", "active"):
                raise InvalidTransitionError(content_id, row.status, "abandoned")
            row.status = "abandoned"
            event = self._record(
                session,
                row.character_id,
                "quest_abandoned",
                f'You set aside the quest: "{row.title}"',
                content_id,
                now,
            )
        self.memory.index_event(event)
        return self._require_content(content_id)

    def expire_stale(self, now: Optional[datetime] = None) -> List[str]:
        """Expire never-started content past its expiry time; returns ids."""
        expired = self.db.expire_content(now or utcnow())
        if expired:
            logger.info(f"[QuestService] Expired {len(expired)} stale quests")
        return expired

    def get_content(self, content_id: str) -> Optional[PersistedContent]:
        return self.db.get_content(content_id)

    def list_content(
        self, character_id: str, status: Optional[str] = None
    ) -> List[PersistedContent]:
        return self.db.list_content(character_id, status)

    # ==================== Consequences ====================

    async def narrate_completion(
        self, content_id: str, now: Optional[datetime] = None
    ) -> Consequence:
        """
        Narrate a completed quest's outcome, record it in working memory and
        fold it into the rolling story-so-far.
        """
        if self.consequences is None:
            raise RuntimeError("QuestService was built without a ConsequenceEngine")
        content = self._require_content(content_id)
        if content.status != "completed":
            raise InvalidTransitionError(content_id, content.status, "narrated")
        character = self._require_character(content.character_id)
        context = self.assembler.assemble(
            character, content.content_type, query=f"{content.title} {content.theme or ''}"
        )
        engine = self.consequences

        async def generate():
            return await engine.generate(content, character, context)

        async def evaluate(consequence: Consequence):
            return await engine.evaluate(consequence, character, self.lore_scorer)

        outcome = await GenerationPolicy(
            generate,
            evaluate,
            lambda: engine.fallback_outcome(content, character),
            max_attempts=self.config.max_generation_attempts,
            name="consequence",
        ).run()

        consequence: Consequence = outcome.value
        self.memory.append_event(
            content.character_id,
            EventInput(
                event_type="quest_outcome",
                description=consequence.narrative_text,
                participants=[
                    i["npc_name"]
                    for i in consequence.npc_interactions
                    if i.get("npc_name")
                ],
                content_id=content_id,
                timestamp=now or utcnow(),
            ),
        )
        await self.memory.update_narrative_summary(
            content.character_id, content.title, consequence.narrative_text
        )
        return consequence

    # ==================== Helpers ====================

    def _record(
        self,
        session,
        character_id: str,
        event_type: str,
        description: str,
        content_id: str,
        now: datetime,
        participants: Optional[List[str]] = None,
        stat_changes: Optional[dict] = None,
    ) -> WorkingEvent:
        return self.db.add_event(
            session,
            character_id,
            EventInput(
                event_type=event_type,
                description=description,
                participants=participants or [],
                stat_changes=stat_changes or {},
                content_id=content_id,
                timestamp=now,
            ),
        )

    def _expire_if_stale(self, content_id: str, now: datetime) -> bool:
        with self.db.transaction() as session:
            row = self.db.get_quest_row(session, content_id)
            if not self.db.is_stale(row, now):
                return False
            row.status = "expired"
        logger.info(f"[QuestService] {content_id} expired before it was started")
        return True

    def _require_character(self, character_id: str) -> Character:
        character = self.db.get_character(character_id)
        if character is None:
            raise ContentNotFoundError(f"Character {character_id} not found")
        return character

    def _require_content(self, content_id: str) -> PersistedContent:
        content = self.db.get_content(content_id)
        if content is None:
            raise ContentNotFoundError(f"Content {content_id} not found")
        return content
