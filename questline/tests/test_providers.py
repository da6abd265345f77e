"""
Tests for provider construction and message handling.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from langchain_core.language_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from questline.providers import GenericProvider, OpenAIProvider, create_provider
from questline.providers.base import BaseProvider


class TestFactory:
    def test_openai(self, config):
        config.openai_api_key = "sk-test"
        assert isinstance(create_provider(config), OpenAIProvider)

    def test_generic(self, config):
        config.model_provider = "generic"
        config.openai_api_base = "http://localhost:1234/v1"
        assert isinstance(create_provider(config), GenericProvider)

    def test_unknown(self, config):
        config.model_provider = "carrier-pigeon"
        with pytest.raises(ValueError):
            create_provider(config)


class TestMessages:
    """Test conversion to LangChain messages and usage normalization"""

    def test_convert_messages(self):
        provider = GenericProvider("http://localhost:1234/v1", "", "local-model")
        messages = provider.convert_messages(
            "You are the Quest Creator.",
            [
                {"role": "user", "text": "Make a quest"},
                {"role": "assistant", "text": "Here it is"},
            ],
        )
        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage]
        assert messages[0].content == "You are the Quest Creator."

    def test_usage_from_metadata(self):
        response = SimpleNamespace(usage_metadata={"input_tokens": 12, "output_tokens": 3})
        assert BaseProvider._usage_from(response) == {
            "input_tokens": 12,
            "output_tokens": 3,
        }

    def test_usage_from_token_usage(self):
        response = SimpleNamespace(
            usage_metadata=None,
            response_metadata={
                "token_usage": {"prompt_tokens": 7, "completion_tokens": 2}
            },
        )
        assert BaseProvider._usage_from(response) == {
            "input_tokens": 7,
            "output_tokens": 2,
        }


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_chat_routes_per_request_model(self):
        provider = OpenAIProvider("https://api.openai.com/v1", "sk-test", "gpt-4o-mini")
        fake = FakeListChatModel(responses=['{"ok": true}'])

        with patch.object(provider, "_model", return_value=fake) as model:
            response = await provider.chat(
                [HumanMessage(content="hi")], model="gpt-4o", temperature=0.2
            )

        model.assert_called_once_with("gpt-4o")
        assert response.content == '{"ok": true}'
        assert response.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_errors_are_wrapped(self):
        provider = OpenAIProvider("https://api.openai.com/v1", "sk-test", "gpt-4o-mini")

        class Broken(FakeListChatModel):
            async def ainvoke(self, *args, **kwargs):
                raise ConnectionError("refused")

        with patch.object(provider, "_model", return_value=Broken(responses=[])):
            with pytest.raises(RuntimeError, match="OpenAI API error"):
                await provider.chat([HumanMessage(content="hi")])
