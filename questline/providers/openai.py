"""
OpenAI provider implementation using LangChain
"""

from typing import Dict, List

from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI

from questline.utils.logger import get_logger

from .base import BaseProvider, ProviderResponse

logger = get_logger(__name__)


class OpenAIProvider(BaseProvider):
    """OpenAI API provider using LangChain"""

    def __init__(self, api_base: str, api_key: str, model_name: str):
        super().__init__(api_base, api_key, model_name)
        self._models: Dict[str, ChatOpenAI] = {}
        self.llm = self._model(model_name)
        logger.info(f"Initialized OpenAI provider for {model_name}")

    def _model(self, name: str) -> ChatOpenAI:
        """One ChatOpenAI client per model name (agents may use different models)"""
        if name not in self._models:
            self._models[name] = ChatOpenAI(
                model=name,
                base_url=self.api_base,
                api_key=self.api_key,  # type: ignore
                max_retries=0,
            )
        return self._models[name]

    async def _invoke(self, messages: List[BaseMessage], **kwargs) -> ProviderResponse:
        model = kwargs.get("model") or self.model_name
        llm = self._model(model)
        bind_args = {
            k: kwargs[k] for k in ("temperature", "max_tokens") if k in kwargs
        }
        if bind_args:
            llm = llm.bind(**bind_args)

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            raise RuntimeError(f"OpenAI API error: {e}") from e

        content = response.content if isinstance(response.content, str) else ""
        return ProviderResponse(
            content=content,
            usage=self._usage_from(response),
            model=model,
        )
