"""
Schemas for characters, decisions, content, validation and memory
"""

from .character import DEFAULT_STAT_VALUE, Character, StatName
from .content import (
    Consequence,
    ContentMetadata,
    ContentProgress,
    ContentStatus,
    GeneratedContent,
    Objective,
    PersistedContent,
    PersistedObjective,
    QuestEffects,
    structural_issues,
)
from .decision import Decision
from .generation import (
    ChatMessage,
    GenerationRequest,
    GenerationResponse,
    extract_json,
)
from .memory import (
    BatchCompressionReport,
    CompressionOutcome,
    Episode,
    EpisodeSummary,
    EventInput,
    LongTermFact,
    MemoryRecord,
    WorkingEvent,
)
from .result import Err, Ok, Result
from .validation import (
    LoreValidation,
    LoreViolation,
    PipelineResult,
    ValidationResult,
)

__all__ = [
    "Character",
    "StatName",
    "DEFAULT_STAT_VALUE",
    "Decision",
    "Objective",
    "QuestEffects",
    "ContentMetadata",
    "GeneratedContent",
    "PersistedContent",
    "PersistedObjective",
    "ContentProgress",
    "ContentStatus",
    "Consequence",
    "structural_issues",
    "ChatMessage",
    "GenerationRequest",
    "GenerationResponse",
    "extract_json",
    "EventInput",
    "WorkingEvent",
    "Episode",
    "EpisodeSummary",
    "LongTermFact",
    "MemoryRecord",
    "CompressionOutcome",
    "BatchCompressionReport",
    "ValidationResult",
    "PipelineResult",
    "LoreValidation",
    "LoreViolation",
    "Ok",
    "Err",
    "Result",
]
