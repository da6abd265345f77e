"""
Abstract base class for LLM providers using LangChain
"""

import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel

from questline.utils.logger import get_logger

logger = get_logger(__name__)


class ProviderResponse(BaseModel):
    """Response from an LLM provider"""

    content: str
    usage: Optional[Dict[str, Any]] = None
    model: Optional[str] = None


class BaseProvider(ABC):
    """Abstract base class for LLM providers using LangChain"""

    def __init__(self, api_base: str, api_key: str, model_name: str):
        self.api_base = api_base
        self.api_key = api_key
        self.model_name = model_name
        self.llm: Any = None  # Will be set by subclasses

    def _log_llm_call(self, messages: List[BaseMessage], **kwargs) -> str:
        """Log LLM call details and return a call ID for correlation"""
        call_id = str(uuid.uuid4())[:8]
        message_counts: Dict[str, int] = {}
        total_chars = 0
        for msg in messages:
            msg_type = type(msg).__name__
            message_counts[msg_type] = message_counts.get(msg_type, 0) + 1
            total_chars += len(str(msg.content))

        model = kwargs.get("model", self.model_name)
        logger.info(
            f"[LLM] Call started: {model}",
            extra={
                "component": "LLM",
                "call_id": call_id,
                "model": model,
                "provider": self.__class__.__name__,
                "message_count": len(messages),
                "message_types": message_counts,
                "total_input_chars": total_chars,
                "temperature": kwargs.get("temperature", "default"),
                "max_tokens": kwargs.get("max_tokens", "default"),
            },
        )
        return call_id

    def _log_llm_response(
        self,
        call_id: str,
        response: Optional[ProviderResponse],
        duration_ms: float,
        error: Optional[Exception] = None,
    ):
        """Log LLM response details"""
        if error:
            logger.error(
                f"[LLM] Call failed: {self.model_name} ({duration_ms}ms): {error}",
                extra={
                    "component": "LLM",
                    "call_id": call_id,
                    "provider": self.__class__.__name__,
                    "duration_ms": duration_ms,
                    "error_type": type(error).__name__,
                },
            )
            return

        content = response.content if response else ""
        logger.info(
            f"[LLM] Call completed: {response.model if response else self.model_name} "
            f"({duration_ms}ms)",
            extra={
                "component": "LLM",
                "call_id": call_id,
                "provider": self.__class__.__name__,
                "duration_ms": duration_ms,
                "response_chars": len(content),
                "usage": response.usage if response else None,
            },
        )
        logger.debug(f"[LLM] Response content ({call_id}): {content[:500]}")

    async def chat(self, messages: List[BaseMessage], **kwargs) -> ProviderResponse:
        """
        Send a chat request to the LLM provider

        Args:
            messages: List of LangChain message objects
            **kwargs: model, temperature and max_tokens overrides

        Returns:
            ProviderResponse with text content and token usage
        """
        call_id = self._log_llm_call(messages, **kwargs)
        start_time = time.time()
        try:
            response = await self._invoke(messages, **kwargs)
        except Exception as e:
            duration_ms = round((time.time() - start_time) * 1000, 2)
            self._log_llm_response(call_id, None, duration_ms, error=e)
            raise

        duration_ms = round((time.time() - start_time) * 1000, 2)
        self._log_llm_response(call_id, response, duration_ms)
        return response

    @abstractmethod
    async def _invoke(self, messages: List[BaseMessage], **kwargs) -> ProviderResponse:
        """Provider-specific invocation"""
        pass

    def convert_messages(
        self, system: str, messages: List[Dict[str, str]]
    ) -> List[BaseMessage]:
        """Convert a system prompt plus role/text dicts to LangChain message objects"""
        converted: List[BaseMessage] = []
        if system:
            converted.append(SystemMessage(content=system))
        for msg in messages:
            role = msg["role"]
            text = msg["text"]
            if role == "user":
                converted.append(HumanMessage(content=text))
            elif role == "assistant":
                converted.append(AIMessage(content=text))
        return converted

    @staticmethod
    def _usage_from(response: Any) -> Dict[str, int]:
        """Normalize LangChain usage metadata to input/output token counts"""
        usage = getattr(response, "usage_metadata", None) or {}
        if not usage:
            metadata = getattr(response, "response_metadata", None) or {}
            token_usage = metadata.get("token_usage") or {}
            return {
                "input_tokens": token_usage.get("prompt_tokens", 0),
                "output_tokens": token_usage.get("completion_tokens", 0),
            }
        return {
            "input_tokens": usage.get("input_tokens", 0),
            "output_tokens": usage.get("output_tokens", 0),
        }
