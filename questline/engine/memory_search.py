"""
Semantic memory search using vector embeddings.

Indexes working-memory events, episodes and long-term facts in a Chroma
collection so retrieval can rank memories by meaning rather than keyword
overlap. Disabled unless an embedding provider and API key are configured.
"""

import os
from typing import Any, Dict, List, Optional

from langchain_chroma import Chroma
from langchain_openai import OpenAIEmbeddings
from pydantic import SecretStr

from questline.config import Settings, settings as default_settings
from questline.utils.logger import get_logger

logger = get_logger(__name__)

COLLECTION_NAME = "questline_memories"


class SemanticMemorySearch:
    """
    Semantic memory search using vector embeddings.

    All characters share one collection; every document carries a
    ``character_id`` metadata field used as a search filter.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.persist_directory = self.config.chroma_persist_directory
        self.embedding_model: Optional[OpenAIEmbeddings] = None
        self.vectorstore: Optional[Chroma] = None

        if not self.config.semantic_search_enabled():
            logger.info(
                "Semantic memory search disabled (no embedding provider or API key); "
                "keyword retrieval will be used"
            )
            return

        try:
            self.embedding_model = OpenAIEmbeddings(
                model=self.config.embedding_model_name,
                chunk_size=1000,
                api_key=SecretStr(self.config.openai_api_key),
                base_url=self.config.openai_api_base,
            )
            os.makedirs(self.persist_directory, exist_ok=True)
            self.vectorstore = Chroma(
                collection_name=COLLECTION_NAME,
                embedding_function=self.embedding_model,
                persist_directory=self.persist_directory,
            )
            logger.info(
                f"Initialized Chroma collection '{COLLECTION_NAME}' in {self.persist_directory}"
            )
        except Exception as e:
            logger.error(f"Failed to initialize semantic memory search: {e}")
            self.embedding_model = None
            self.vectorstore = None

    def is_available(self) -> bool:
        """Check if semantic search is available"""
        return self.embedding_model is not None and self.vectorstore is not None

    def add_memory(
        self, memory_id: str, content: str, metadata: Dict[str, Any]
    ) -> bool:
        """
        Add a memory to the semantic search index.

        Args:
            memory_id: Unique identifier, e.g. "event:42" or "fact:7"
            content: The memory text
            metadata: Must include character_id and tier

        Returns:
            True if successfully added, False otherwise
        """
        if not self.is_available() or self.vectorstore is None:
            return False

        # Chroma metadata values must be scalars
        filtered_metadata: Dict[str, Any] = {"memory_id": memory_id}
        for key, value in metadata.items():
            if isinstance(value, (str, int, float, bool)):
                filtered_metadata[key] = value
            elif value is not None:
                filtered_metadata[key] = str(value)

        try:
            self.vectorstore.add_texts(
                texts=[content], ids=[memory_id], metadatas=[filtered_metadata]
            )
            logger.debug(f"Added memory {memory_id} to semantic index")
            return True
        except Exception as e:
            logger.error(f"Failed to add memory to semantic index: {e}")
            return False

    def search_memories(
        self,
        query: str,
        character_id: str,
        limit: int = 5,
        threshold: float = 0.1,
    ) -> List[Dict[str, Any]]:
        """
        Search a character's memories by semantic similarity.

        Returns:
            Matches as {memory_id, content, similarity, metadata}, best first
        """
        if not self.is_available() or self.vectorstore is None or limit <= 0:
            return []

        try:
            search_results = self.vectorstore.similarity_search_with_score(
                query=query,
                k=limit * 2,  # Get more to filter by threshold
                filter={"character_id": character_id},
            )
        except Exception as e:
            logger.error(f"Semantic search failed: {e}")
            return []

        memories = []
        for doc, distance in search_results:
            similarity = 1.0 - distance if distance <= 1.0 else 1.0 / (1.0 + distance)
            if similarity >= threshold:
                memories.append(
                    {
                        "memory_id": doc.metadata.get("memory_id", "unknown"),
                        "content": doc.page_content,
                        "similarity": similarity,
                        "metadata": doc.metadata,
                    }
                )

        memories.sort(key=lambda x: x["similarity"], reverse=True)
        logger.debug(
            f"Found {len(memories[:limit])} semantically similar memories for: {query[:50]}"
        )
        return memories[:limit]
