"""
Exception types raised across the quest pipeline.
"""

from typing import List, Optional


class QuestlineError(Exception):
    """Base class for all engine errors"""


class SchemaValidationError(QuestlineError):
    """Provider output could not be parsed into the expected shape"""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class GenerationProviderError(QuestlineError):
    """The external provider failed, timed out or returned nothing usable"""

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(message)
        self.model = model


class ValidationFailure(QuestlineError):
    """A validation tier rejected the input or the generated content"""

    def __init__(self, tier: int, issues: List[str]):
        super().__init__(f"Tier {tier} validation failed: {'; '.join(issues)}")
        self.tier = tier
        self.issues = issues


class PersistenceError(QuestlineError):
    """A transactional write failed and was rolled back"""


class MemoryCompressionError(QuestlineError):
    """Compressing a character's working memory into an episode failed"""

    def __init__(self, character_id: str, message: str):
        super().__init__(f"Compression failed for {character_id}: {message}")
        self.character_id = character_id


class ContentNotFoundError(QuestlineError):
    """Referenced content, objective or character does not exist"""


class InvalidTransitionError(QuestlineError):
    """Requested lifecycle transition is not allowed from the current status"""

    def __init__(self, content_id: str, current: str, target: str):
        super().__init__(
            f"Content {content_id} cannot move from '{current}' to '{target}'"
        )
        self.content_id = content_id
        self.current = current
        self.target = target
