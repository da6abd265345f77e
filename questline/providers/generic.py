"""
Generic HTTP provider for OpenAI-compatible endpoints using LangChain
"""

from typing import List

from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI

from questline.utils.logger import get_logger

from .base import BaseProvider, ProviderResponse

logger = get_logger(__name__)


class GenericProvider(BaseProvider):
    """
    Generic provider for OpenAI-compatible endpoints (local servers, proxies).

    Always talks to the single configured model; per-request model names are
    recorded but not routed.
    """

    def __init__(self, api_base: str, api_key: str, model_name: str):
        super().__init__(api_base, api_key, model_name)
        self.llm = ChatOpenAI(
            model=model_name,
            base_url=api_base,
            api_key=api_key or "not-needed",  # type: ignore
            temperature=0.7,
            max_retries=0,
        )

    async def _invoke(self, messages: List[BaseMessage], **kwargs) -> ProviderResponse:
        llm = self.llm
        if "temperature" in kwargs:
            llm = llm.bind(temperature=kwargs["temperature"])
        if "max_tokens" in kwargs:
            llm = llm.bind(max_tokens=kwargs["max_tokens"])

        try:
            logger.debug("[Provider] Normal ainvoke without structured output")
            response = await llm.ainvoke(messages)
        except Exception as e:
            raise RuntimeError(f"Generic API error: {e}") from e

        content = response.content if isinstance(response.content, str) else ""
        logger.debug(f"[Provider] Content preview: {content[:300]}")
        return ProviderResponse(
            content=content,
            usage=self._usage_from(response),
            model=self.model_name,
        )
