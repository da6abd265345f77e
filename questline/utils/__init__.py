"""
Utility modules for the Questline engine
"""

from .cache import ResponseCache, make_cache_key
from .logger import get_logger, setup_logging
from .metrics import GenerationMetrics

__all__ = [
    "ResponseCache",
    "make_cache_key",
    "GenerationMetrics",
    "get_logger",
    "setup_logging",
]
