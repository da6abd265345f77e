"""
Memory tier schemas: working events, episodes and long-term facts.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

MemoryTier = Literal["working", "episodic", "long_term"]


class EventInput(BaseModel):
    """An event to append to working memory"""

    event_type: str = Field(..., description="e.g. quest_completed, npc_interaction")
    description: str = Field(..., description="What happened")
    participants: List[str] = Field(default_factory=list)
    stat_changes: Dict[str, int] = Field(default_factory=dict)
    content_id: Optional[str] = Field(default=None)
    timestamp: Optional[datetime] = Field(
        default=None, description="Defaults to now when omitted"
    )


class WorkingEvent(BaseModel):
    id: int
    character_id: str
    event_type: str
    description: str
    participants: List[str] = Field(default_factory=list)
    stat_changes: Dict[str, int] = Field(default_factory=dict)
    content_id: Optional[str] = None
    timestamp: datetime
    episode_id: Optional[int] = None


class EpisodeSummary(BaseModel):
    """Shape the provider must return when compressing events"""

    summary: str
    key_events: List[str] = Field(default_factory=list)
    participants: List[str] = Field(default_factory=list)
    stat_changes: Dict[str, int] = Field(default_factory=dict)


class Episode(BaseModel):
    id: int
    character_id: str
    summary: str
    key_events: List[str] = Field(default_factory=list)
    participants: List[str] = Field(default_factory=list)
    stat_change_totals: Dict[str, int] = Field(default_factory=dict)
    period_start: datetime
    period_end: datetime
    source_event_count: int
    is_fallback: bool = False
    created_at: Optional[datetime] = None


class LongTermFact(BaseModel):
    id: int
    character_id: str
    fact: str
    importance_score: float = Field(..., ge=0.0, le=1.0)
    created_at: datetime
    last_accessed_at: Optional[datetime] = None


class MemoryRecord(BaseModel):
    """A retrieval hit from any tier"""

    tier: MemoryTier
    content: str
    score: float
    timestamp: Optional[datetime] = None
    source_id: str


class CompressionOutcome(BaseModel):
    """A character whose events were compressed during a batch run"""

    character_id: str
    episode: Episode


class BatchCompressionReport(BaseModel):
    """
    Result of a batch compression run.

    ``results`` holds only characters that produced an episode; failures are
    kept apart in ``failed`` (character id to error message).
    """

    results: List[CompressionOutcome] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
