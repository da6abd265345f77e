"""
Three-tier memory for characters.

- Working memory: the narrative event log, read most-recent-first.
- Episodic memory: batches of old events compressed into summaries.
- Long-term memory: promoted facts with an importance score; never expire.

A rolling story-so-far summary per character is kept alongside them and
rewritten after each completed quest.

``retrieve_relevant`` is where all three tiers meet when context is assembled
for a new generation.
"""

import asyncio
import math
import re
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from questline.config import Settings, settings as default_settings
from questline.db.manager import DatabaseManager
from questline.db.schema import utcnow
from questline.engine.generation_client import GenerationClient
from questline.engine.memory_search import SemanticMemorySearch
from questline.errors import (
    GenerationProviderError,
    MemoryCompressionError,
    PersistenceError,
)
from questline.prompts import (
    MEMORY_SUMMARY_SYSTEM,
    MEMORY_SUMMARY_USER,
    NARRATIVE_SUMMARY_SYSTEM,
    NARRATIVE_SUMMARY_USER,
)
from questline.schemas import (
    BatchCompressionReport,
    Character,
    ChatMessage,
    CompressionOutcome,
    Episode,
    EpisodeSummary,
    Err,
    EventInput,
    GenerationRequest,
    LongTermFact,
    MemoryRecord,
    Ok,
    Result,
    WorkingEvent,
)
from questline.utils.logger import get_logger

logger = get_logger(__name__)

KEY_EVENT_TYPES = ("quest_completed", "npc_interaction")
IMPORTANT_EVENT_TYPES = ("quest_completed", "npc_interaction", "level_up")
STOP_WORDS = {
    "the", "and", "for", "with", "that", "this", "from", "have", "been", "your",
}

# Composite retrieval weights
WEIGHT_RECENCY = 0.3
WEIGHT_RELEVANCE = 0.5
WEIGHT_IMPORTANCE = 0.2
RECENCY_HALF_LIFE_DAYS = 30.0
COMPRESSED_EVENT_DISCOUNT = 0.5
EPISODE_BASE_RELEVANCE = 0.6
FACT_RECENCY = 0.5
EVENT_CANDIDATE_LIMIT = 200
# Opening words kept when the rolling summary is trimmed without the provider
NARRATIVE_INTRO_WORDS = 100


def extract_keywords(text: str) -> List[str]:
    """Lowercased words longer than three characters, minus stop words."""
    words = re.sub(r"[^a-z0-9\s]", " ", text.lower()).split()
    return [w for w in words if len(w) > 3 and w not in STOP_WORDS]


def keyword_relevance(
    text: str,
    keywords: Sequence[str],
    query: str,
    participants: Sequence[str] = (),
    event_type: Optional[str] = None,
) -> float:
    """
    Keyword relevance normalized to [0, 1].

    10 points per keyword occurrence, 15 for an important event type, 25 per
    participant named in the query; 50 points saturate.
    """
    haystack = f"{text} {' '.join(participants)} {event_type or ''}".lower()
    points = sum(haystack.count(keyword) * 10 for keyword in keywords)
    if event_type in IMPORTANT_EVENT_TYPES:
        points += 15
    query_lower = query.lower()
    points += sum(25 for p in participants if p and p.lower() in query_lower)
    return min(1.0, points / 50.0)


def recency_score(timestamp: Optional[datetime], now: datetime) -> float:
    if timestamp is None:
        return 0.5
    age_days = max(0.0, (now - timestamp).total_seconds() / 86400)
    return math.exp(-age_days / RECENCY_HALF_LIFE_DAYS)


def fallback_summary(events: Sequence[WorkingEvent]) -> EpisodeSummary:
    """Deterministic episode summary used when the provider is unavailable."""
    key_events = [e.description for e in events if e.event_type in KEY_EVENT_TYPES][
        :5
    ]
    participants: List[str] = []
    for event in events:
        for participant in event.participants:
            if participant not in participants:
                participants.append(participant)
    stat_changes: Dict[str, int] = {}
    for event in events:
        for stat, delta in event.stat_changes.items():
            stat_changes[stat] = stat_changes.get(stat, 0) + delta

    summary = (
        f"During this period, the character completed {len(events)} activities. "
        f"Key milestones included {len(key_events)} significant events. "
        f"Interactions with {len(participants)} NPCs were recorded."
    )
    return EpisodeSummary(
        summary=summary,
        key_events=key_events,
        participants=participants,
        stat_changes=stat_changes,
    )


def default_narrative_summary(character: Optional[Character]) -> str:
    if character is None:
        return "A new adventurer begins their journey."
    return (
        f"{character.name}, a {character.character_class}, has recently begun "
        "their journey. Through discipline and dedication, they seek to unlock "
        "their true potential. Each step toward wellness brings a glimmer of "
        "power, as personal growth manifests as strength in this world. The path "
        f"ahead is unclear, but {character.name} is determined to see where it leads."
    )


def trim_narrative_summary(text: str, max_words: int) -> str:
    """Keep the opening and the most recent part of an over-long summary."""
    words = text.split()
    if len(words) <= max_words:
        return text
    intro = min(NARRATIVE_INTRO_WORDS, max_words // 5)
    return (
        " ".join(words[:intro])
        + "\n\n...\n\n"
        + " ".join(words[len(words) - (max_words - intro):])
    )


class MemoryManager:
    """Owns the working, episodic and long-term memory tiers"""

    def __init__(
        self,
        db: DatabaseManager,
        client: Optional[GenerationClient] = None,
        search: Optional[SemanticMemorySearch] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.client = client
        self.search = search
        self.config = config or default_settings
        self._locks: Dict[str, asyncio.Lock] = {}

    # ==================== Working memory ====================

    def append_event(self, character_id: str, event: EventInput) -> WorkingEvent:
        """Append an event to the character's working memory."""
        with self.db.transaction() as session:
            stored = self.db.add_event(session, character_id, event)
        self.index_event(stored)
        return stored

    def index_event(self, event: WorkingEvent) -> None:
        if self.search is None:
            return
        self.search.add_memory(
            f"event:{event.id}",
            event.description,
            {
                "character_id": event.character_id,
                "tier": "working",
                "event_type": event.event_type,
            },
        )

    def get_working_memory(
        self, character_id: str, limit: Optional[int] = None
    ) -> List[WorkingEvent]:
        """
        Most recent events, most-recent-first.

        Raises:
            ValueError: if limit is negative
        """
        if limit is None:
            limit = self.config.working_memory_limit
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        return self.db.recent_events(character_id, limit)

    # ==================== Episodic memory ====================

    def _lock_for(self, character_id: str) -> asyncio.Lock:
        return self._locks.setdefault(character_id, asyncio.Lock())

    async def compress(
        self, character_id: str, now: Optional[datetime] = None
    ) -> Result:
        """
        Fold a batch of old working-memory events into one episode.

        Returns:
            Ok(None) when fewer than the minimum batch of eligible events exist
            (nothing is written), Ok(Episode) on success, or
            Err(MemoryCompressionError) when the episode could not be stored.
        """
        async with self._lock_for(character_id):
            now = now or utcnow()
            cutoff = now - timedelta(days=self.config.compression_age_days)
            events = self.db.uncompressed_events_before(
                character_id, cutoff, self.config.compression_max_batch
            )
            if len(events) < self.config.compression_min_batch:
                logger.debug(
                    f"[MemoryManager] {character_id}: {len(events)} eligible events, "
                    f"below batch minimum {self.config.compression_min_batch}"
                )
                return Ok(None)

            summary, is_fallback = await self._summarize(character_id, events)
            fields = {
                "character_id": character_id,
                "summary": summary.summary,
                "key_events": summary.key_events,
                "participants": summary.participants,
                "stat_change_totals": summary.stat_changes,
                "period_start": events[0].timestamp,
                "period_end": events[-1].timestamp,
                "source_event_count": len(events),
                "is_fallback": is_fallback,
                "created_at": now,
            }
            try:
                with self.db.transaction() as session:
                    episode = self.db.insert_episode(
                        session, fields, [e.id for e in events]
                    )
            except PersistenceError as e:
                logger.error(f"[MemoryManager] Failed to store episode: {e}")
                return Err(MemoryCompressionError(character_id, str(e)))

            logger.info(
                f"[MemoryManager] Compressed {len(events)} events into episode "
                f"{episode.id} for {character_id} (fallback={is_fallback})",
                extra={"component": "MemoryManager", "character_id": character_id},
            )
            if self.search is not None:
                self.search.add_memory(
                    f"episode:{episode.id}",
                    episode.summary,
                    {"character_id": character_id, "tier": "episodic"},
                )
            return Ok(episode)

    async def _summarize(
        self, character_id: str, events: Sequence[WorkingEvent]
    ) -> Tuple[EpisodeSummary, bool]:
        if self.client is None:
            return fallback_summary(events), True

        character = self.db.get_character(character_id)
        event_lines = "\n".join(
            f"- [{e.timestamp:%Y-%m-%d}] {e.event_type}: {e.description}"
            + (f" (with {', '.join(e.participants)})" if e.participants else "")
            for e in events
        )
        request = GenerationRequest(
            system_context=MEMORY_SUMMARY_SYSTEM.format(
                max_words=self.config.episode_summary_max_words
            ),
            messages=[
                ChatMessage(
                    role="user",
                    text=MEMORY_SUMMARY_USER.format(
                        name=character.name if character else "the adventurer",
                        period_start=f"{events[0].timestamp:%Y-%m-%d}",
                        period_end=f"{events[-1].timestamp:%Y-%m-%d}",
                        events=event_lines,
                    ),
                )
            ],
            model=self.config.model_for("memory"),
            max_tokens=512,
            temperature=0.3,
        )
        try:
            response = await self.client.generate(
                request, use_cache=False, agent="memory"
            )
        except GenerationProviderError as e:
            logger.warning(f"[MemoryManager] Summary generation failed, using rules: {e}")
            return fallback_summary(events), True

        parsed = response.parse(EpisodeSummary)
        if isinstance(parsed, Err):
            logger.warning(f"[MemoryManager] Summary unparseable, using rules: {parsed}")
            return fallback_summary(events), True

        summary = parsed.value
        words = summary.summary.split()
        if len(words) > self.config.episode_summary_max_words:
            summary = summary.model_copy(
                update={
                    "summary": " ".join(words[: self.config.episode_summary_max_words])
                }
            )
        return summary, False

    def get_episodes(self, character_id: str, limit: int = 20) -> List[Episode]:
        return self.db.list_episodes(character_id, limit)

    async def batch_compress(
        self,
        character_ids: Optional[List[str]] = None,
        now: Optional[datetime] = None,
    ) -> BatchCompressionReport:
        """
        Compress every character that has eligible old events.

        Characters run through a bounded worker pool (one at a time by
        default) with a fixed delay after each. A failure for one character
        is logged and reported under ``failed``; the batch continues.
        Characters with nothing to compress appear nowhere in the report.
        """
        now = now or utcnow()
        if character_ids is None:
            cutoff = now - timedelta(days=self.config.compression_age_days)
            character_ids = self.db.characters_with_events_before(cutoff)

        logger.info(f"[MemoryManager] Batch processing {len(character_ids)} characters")
        semaphore = asyncio.Semaphore(max(1, self.config.compression_concurrency))
        delay = self.config.compression_delay_seconds
        report = BatchCompressionReport()

        async def run(position: int, character_id: str) -> None:
            async with semaphore:
                try:
                    result = await self.compress(character_id, now)
                except Exception as e:
                    logger.error(
                        f"[MemoryManager] Compression crashed for {character_id}: {e}"
                    )
                    result = Err(MemoryCompressionError(character_id, str(e)))
                finally:
                    if delay > 0 and position < len(character_ids) - 1:
                        await asyncio.sleep(delay)

            if isinstance(result, Err):
                logger.error(f"[MemoryManager] Failed for {character_id}: {result.error}")
                report.failed[character_id] = str(result.error)
            elif result.value is not None:
                report.results.append(
                    CompressionOutcome(character_id=character_id, episode=result.value)
                )

        await asyncio.gather(*(run(i, cid) for i, cid in enumerate(character_ids)))
        logger.info(
            f"[MemoryManager] Batch complete: {len(report.results)} compressed, "
            f"{len(report.failed)} failed"
        )
        return report

    # ==================== Narrative summary ====================

    def get_narrative_summary(self, character_id: str) -> str:
        """The rolling story-so-far, or an opening summary for a new character."""
        stored = self.db.get_narrative_summary(character_id)
        if stored:
            return stored
        return default_narrative_summary(self.db.get_character(character_id))

    async def update_narrative_summary(
        self, character_id: str, title: str, outcome: str
    ) -> str:
        """
        Fold a completed quest into the story-so-far and store it.

        The provider rewrites the summary. Without it the quest is appended to
        the current summary, which is then trimmed to the word limit.
        """
        current = self.get_narrative_summary(character_id)
        character = self.db.get_character(character_id)
        summary: Optional[str] = None
        if self.client is not None and character is not None:
            summary = await self._rewrite_summary(character, current, title, outcome)
        if summary is None:
            name = character.name if character else "The adventurer"
            level = character.level if character else 1
            summary = trim_narrative_summary(
                f'{current}\n\n{name} recently completed "{title}", growing '
                f"stronger on their journey. Current level: {level}.",
                self.config.narrative_summary_max_words,
            )
        self.db.store_narrative_summary(character_id, summary)
        logger.info(
            f"[MemoryManager] Narrative summary updated after '{title}' "
            f"({len(summary.split())} words)",
            extra={"component": "MemoryManager", "character_id": character_id},
        )
        return summary

    async def _rewrite_summary(
        self, character: Character, current: str, title: str, outcome: str
    ) -> Optional[str]:
        max_words = self.config.narrative_summary_max_words
        recent = self.db.list_content(character.id, status="completed", limit=3)
        request = GenerationRequest(
            system_context=NARRATIVE_SUMMARY_SYSTEM.format(max_words=max_words),
            messages=[
                ChatMessage(
                    role="user",
                    text=NARRATIVE_SUMMARY_USER.format(
                        name=character.name,
                        character_class=character.character_class,
                        level=character.level,
                        stats=", ".join(
                            f"{s.value} {v}" for s, v in character.full_stats().items()
                        ),
                        current_summary=current,
                        title=title,
                        outcome=outcome,
                        recent_quests="\n".join(f"- {c.title}" for c in recent)
                        or "- none",
                    ),
                )
            ],
            model=self.config.model_for("memory"),
            max_tokens=800,
            temperature=0.4,
        )
        try:
            response = await self.client.generate(
                request, use_cache=False, agent="memory"
            )
        except GenerationProviderError as e:
            logger.warning(f"[MemoryManager] Summary rewrite failed, appending: {e}")
            return None

        text = re.sub(r"```[^\n]*\n?", "", response.content).strip()
        if not text:
            return None
        words = text.split()
        if len(words) > max_words:
            text = " ".join(words[:max_words])
        return text

    # ==================== Long-term memory ====================

    def promote_fact(
        self, character_id: str, fact: str, importance: Optional[float] = None
    ) -> LongTermFact:
        """Store a durable fact; re-promoting keeps the higher importance."""
        if importance is None:
            importance = self.config.default_fact_importance
        if not 0.0 <= importance <= 1.0:
            raise ValueError(f"importance must be within [0, 1], got {importance}")
        stored = self.db.upsert_fact(character_id, fact, importance)
        if self.search is not None:
            self.search.add_memory(
                f"fact:{stored.id}",
                fact,
                {"character_id": character_id, "tier": "long_term"},
            )
        return stored

    def reinforce_fact(self, fact_id: int, boost: float = 0.1) -> LongTermFact:
        """Raise a fact's importance (capped at 1.0)."""
        return self.db.reinforce_fact(fact_id, boost)

    def get_long_term_memory(
        self, character_id: str, limit: int = 20
    ) -> List[LongTermFact]:
        return self.db.list_facts(character_id, limit)

    # ==================== Retrieval ====================

    def retrieve_relevant(
        self,
        character_id: str,
        query: str,
        k: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[MemoryRecord]:
        """
        Top-K memories across all tiers for a query.

        Each candidate scores 0.3 * recency + 0.5 * relevance + 0.2 * importance.
        Relevance comes from semantic search when it is available and from
        keyword overlap otherwise. Events already folded into an episode
        have their relevance discounted.
        """
        k = self.config.retrieval_k if k is None else k
        if k <= 0:
            return []
        now = now or utcnow()
        keywords = extract_keywords(query)

        similarities: Dict[str, float] = {}
        if self.search is not None and self.search.is_available():
            for hit in self.search.search_memories(query, character_id, limit=k * 4):
                similarities[hit["memory_id"]] = hit["similarity"]

        def relevance(source_id: str, keyword_score: float) -> float:
            return similarities.get(source_id, keyword_score)

        candidates: List[MemoryRecord] = []

        for event in self.db.recent_events(character_id, EVENT_CANDIDATE_LIMIT):
            source_id = f"event:{event.id}"
            rel = relevance(
                source_id,
                keyword_relevance(
                    event.description,
                    keywords,
                    query,
                    event.participants,
                    event.event_type,
                ),
            )
            if event.episode_id is not None:
                rel *= COMPRESSED_EVENT_DISCOUNT
            importance = 0.7 if event.event_type in IMPORTANT_EVENT_TYPES else 0.5
            candidates.append(
                MemoryRecord(
                    tier="working",
                    content=event.description,
                    score=self._composite(
                        recency_score(event.timestamp, now), rel, importance
                    ),
                    timestamp=event.timestamp,
                    source_id=source_id,
                )
            )

        for episode in self.db.list_episodes(character_id):
            source_id = f"episode:{episode.id}"
            text = " ".join([episode.summary, *episode.key_events])
            keyword_score = keyword_relevance(
                text, keywords, query, episode.participants
            )
            rel = relevance(source_id, max(EPISODE_BASE_RELEVANCE, keyword_score))
            candidates.append(
                MemoryRecord(
                    tier="episodic",
                    content=episode.summary,
                    score=self._composite(
                        recency_score(episode.period_end, now), rel, 0.6
                    ),
                    timestamp=episode.period_end,
                    source_id=source_id,
                )
            )

        for fact in self.db.list_facts(character_id):
            source_id = f"fact:{fact.id}"
            rel = relevance(source_id, keyword_relevance(fact.fact, keywords, query))
            candidates.append(
                MemoryRecord(
                    tier="long_term",
                    content=fact.fact,
                    score=self._composite(FACT_RECENCY, rel, fact.importance_score),
                    timestamp=fact.created_at,
                    source_id=source_id,
                )
            )

        candidates.sort(key=lambda r: r.score, reverse=True)
        return candidates[:k]

    @staticmethod
    def _composite(recency: float, relevance: float, importance: float) -> float:
        return (
            WEIGHT_RECENCY * recency
            + WEIGHT_RELEVANCE * relevance
            + WEIGHT_IMPORTANCE * importance
        )
