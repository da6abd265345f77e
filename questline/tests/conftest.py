"""
Shared fixtures: a temporary SQLite store, a scripted provider and fully
wired services.
"""

import pytest

from questline.config import Settings
from questline.db.manager import DatabaseManager
from questline.engine.memory_search import SemanticMemorySearch
from questline.schemas import Character, StatName
from questline.services import build_services
from questline.tests.fakes import FakeProvider


@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_path=str(tmp_path / "questline.db"),
        embedding_provider="none",
        openai_api_key="",
        model_provider="openai",
        model_name="gpt-4o-mini",
        compression_delay_seconds=0.0,
    )


@pytest.fixture
def db(config) -> DatabaseManager:
    return DatabaseManager(config.database_path)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def services(config, provider, db):
    return build_services(
        config, provider=provider, db=db, search=SemanticMemorySearch(config)
    )


@pytest.fixture
def weak_character(db) -> Character:
    """A character whose STR trails the other stats by more than 5"""
    character = Character(
        id="hero-1",
        name="Aria",
        character_class="Ranger",
        level=3,
        stats={
            StatName.STR: 6,
            StatName.DEX: 14,
            StatName.CON: 14,
            StatName.INT: 14,
            StatName.WIS: 14,
            StatName.CHA: 14,
        },
    )
    return db.save_character(character)


@pytest.fixture
def balanced_character(db) -> Character:
    character = Character(
        id="hero-2",
        name="Bren",
        character_class="Cleric",
        level=2,
        stats={stat: 12 for stat in StatName},
    )
    return db.save_character(character)
