"""
Core engine components for the Questline quest pipeline
"""

from .consequences import ConsequenceEngine
from .context import ContextAssembler, GenerationContext
from .coordinator import StoryCoordinator
from .creator import QuestCreator
from .generation_client import GenerationClient
from .lorekeeper import Lorekeeper, RuleBasedLoreScorer
from .memory import MemoryManager
from .orchestrator import QuestGenerationResult, QuestService
from .policy import GenerationPolicy, PolicyOutcome, Verdict
from .validation import PipelineInput, ValidationPipeline

__all__ = [
    "GenerationClient",
    "ContextAssembler",
    "GenerationContext",
    "StoryCoordinator",
    "QuestCreator",
    "ConsequenceEngine",
    "ValidationPipeline",
    "PipelineInput",
    "Lorekeeper",
    "RuleBasedLoreScorer",
    "GenerationPolicy",
    "PolicyOutcome",
    "Verdict",
    "QuestService",
    "QuestGenerationResult",
    "MemoryManager",
]
