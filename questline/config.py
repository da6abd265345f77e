"""
Configuration management for the Questline engine
"""

from typing import Dict, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # LLM Provider Configuration
    model_provider: Literal["openai", "generic"] = Field(default="openai")
    openai_api_base: str = Field(default="https://api.openai.com/v1")
    openai_api_key: str = Field(default="")
    model_name: str = Field(default="gpt-4o-mini")

    # Per-agent model overrides (fall back to model_name when unset)
    coordinator_model: Optional[str] = Field(default=None)
    creator_model: Optional[str] = Field(default=None)
    lorekeeper_model: Optional[str] = Field(default=None)
    memory_model: Optional[str] = Field(default=None)
    consequence_model: Optional[str] = Field(default=None)

    # Embedding Provider Configuration (for semantic memory retrieval)
    # Options: "openai", "none"
    embedding_provider: Literal["openai", "none"] = Field(default="none")
    embedding_model_name: str = Field(default="text-embedding-3-small")
    chroma_persist_directory: str = Field(default="data/chroma_memories")

    # Database Configuration
    database_path: str = Field(
        default="data/questline.db",
        description="SQLite database file path for characters, content and memory",
    )

    # Generation Client
    generation_timeout_seconds: float = Field(default=30.0)
    cache_ttl_seconds: int = Field(default=3600)
    cache_max_size: int = Field(default=1000)
    # USD per million tokens: {model: {"input": x, "output": y}}
    model_pricing: Dict[str, Dict[str, float]] = Field(
        default_factory=lambda: {
            "gpt-4o-mini": {"input": 0.15, "output": 0.60},
            "gpt-4o": {"input": 2.50, "output": 10.00},
            "claude-sonnet": {"input": 3.00, "output": 15.00},
            "claude-haiku": {"input": 0.25, "output": 1.25},
        }
    )

    # Decision rules
    active_content_ceiling: int = Field(default=3)
    stat_imbalance_threshold: int = Field(default=5)
    content_expiry_days: int = Field(default=7)
    quest_templates_path: Optional[str] = Field(
        default=None, description="JSON file of extra quest templates"
    )

    # Validation thresholds
    min_context_chars: int = Field(default=10)
    max_context_chars: int = Field(default=50000)
    min_word_count: int = Field(default=20)
    max_word_count: int = Field(default=1000)
    repetition_threshold: float = Field(default=0.3)
    genericity_threshold: float = Field(default=0.5)
    tier1_pass_score: float = Field(default=0.5)
    tier2_pass_score: float = Field(default=0.6)
    tier2_revisable_floor: float = Field(default=0.4)
    coherence_threshold: float = Field(default=0.7)
    consistency_threshold: float = Field(default=0.85)
    lorekeeper_weight: float = Field(default=0.3)
    lore_pass_score: int = Field(default=85)
    max_generation_attempts: int = Field(default=2)

    # Memory tiers
    working_memory_limit: int = Field(default=10)
    max_context_events: int = Field(default=10)
    compression_age_days: int = Field(default=7)
    compression_min_batch: int = Field(default=10)
    compression_max_batch: int = Field(default=50)
    compression_delay_seconds: float = Field(default=1.0)
    compression_concurrency: int = Field(default=1)
    episode_summary_max_words: int = Field(default=250)
    narrative_summary_max_words: int = Field(default=500)
    retrieval_k: int = Field(default=5)
    default_fact_importance: float = Field(default=0.8)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_file: Optional[str] = Field(default=None)

    class Config:
        env_file = ".env"
        case_sensitive = False

    def model_for(self, agent: str) -> str:
        """Resolve the model name for an agent, honouring per-agent overrides"""
        override = getattr(self, f"{agent}_model", None)
        return override or self.model_name

    def semantic_search_enabled(self) -> bool:
        return self.embedding_provider != "none" and bool(self.openai_api_key)


# Global settings instance
settings = Settings()
