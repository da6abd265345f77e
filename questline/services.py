"""
Service wiring.

Builds every pipeline component as an explicit object with its dependencies
injected, so tests and tools can swap any of them (usually the provider).
"""

from dataclasses import dataclass
from typing import Optional

from questline.config import Settings, settings as default_settings
from questline.db.manager import DatabaseManager
from questline.engine.consequences import ConsequenceEngine
from questline.engine.context import ContextAssembler
from questline.engine.coordinator import StoryCoordinator
from questline.engine.creator import QuestCreator
from questline.engine.generation_client import GenerationClient
from questline.engine.lorekeeper import Lorekeeper, RuleBasedLoreScorer
from questline.engine.memory import MemoryManager
from questline.engine.memory_search import SemanticMemorySearch
from questline.engine.orchestrator import QuestService
from questline.engine.validation import ValidationPipeline
from questline.providers import BaseProvider, create_provider
from questline.templates import load_templates
from questline.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Services:
    config: Settings
    db: DatabaseManager
    client: GenerationClient
    memory: MemoryManager
    assembler: ContextAssembler
    coordinator: StoryCoordinator
    creator: QuestCreator
    consequences: ConsequenceEngine
    pipeline: ValidationPipeline
    lorekeeper: Lorekeeper
    quests: QuestService


def build_services(
    config: Optional[Settings] = None,
    provider: Optional[BaseProvider] = None,
    db: Optional[DatabaseManager] = None,
    search: Optional[SemanticMemorySearch] = None,
) -> Services:
    """
    Construct the full object graph.

    Args:
        config: Settings to use (module settings by default)
        provider: Chat provider; created from config when omitted
        db: Database manager; opened at ``config.database_path`` when omitted
        search: Semantic search index; created from config when omitted
    """
    config = config or default_settings
    provider = provider or create_provider(config)
    db = db or DatabaseManager(config.database_path)
    search = search or SemanticMemorySearch(config)

    client = GenerationClient(provider, config)
    memory = MemoryManager(db, client=client, search=search, config=config)
    assembler = ContextAssembler(memory, db, config)
    coordinator = StoryCoordinator(client, config)
    creator = QuestCreator(
        client, config, load_templates(config.quest_templates_path)
    )
    consequences = ConsequenceEngine(client, config)
    pipeline = ValidationPipeline(config)
    lorekeeper = Lorekeeper(client, config, RuleBasedLoreScorer(config))
    quests = QuestService(
        db=db,
        coordinator=coordinator,
        creator=creator,
        assembler=assembler,
        pipeline=pipeline,
        lore_scorer=lorekeeper,
        memory=memory,
        consequences=consequences,
        config=config,
    )
    logger.debug(
        f"Services built (provider={config.model_provider}, "
        f"semantic_search={search.is_available()})"
    )
    return Services(
        config=config,
        db=db,
        client=client,
        memory=memory,
        assembler=assembler,
        coordinator=coordinator,
        creator=creator,
        consequences=consequences,
        pipeline=pipeline,
        lorekeeper=lorekeeper,
        quests=quests,
    )
