"""
LLM Provider implementations for the Questline engine
"""

from .base import BaseProvider, ProviderResponse
from .factory import create_provider
from .generic import GenericProvider
from .openai import OpenAIProvider

__all__ = [
    "BaseProvider",
    "ProviderResponse",
    "OpenAIProvider",
    "GenericProvider",
    "create_provider",
]
