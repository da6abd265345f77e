"""
Tests for the generation client: caching, timeouts, cost and error mapping.
"""

import asyncio

import pytest

from questline.engine.generation_client import GenerationClient
from questline.errors import GenerationProviderError
from questline.providers.base import ProviderResponse
from questline.schemas import ChatMessage, GenerationRequest
from questline.tests.fakes import FakeProvider


def make_request(text: str = "hello", model: str = "gpt-4o-mini") -> GenerationRequest:
    return GenerationRequest(
        system_context="You are the Quest Creator for a test.",
        messages=[ChatMessage(role="user", text=text)],
        model=model,
        max_tokens=256,
        temperature=0.5,
    )


class SlowProvider(FakeProvider):
    async def _invoke(self, messages, **kwargs) -> ProviderResponse:
        await asyncio.sleep(1)
        return ProviderResponse(content="late", model="gpt-4o-mini")


class TestGenerationClient:
    """Test the cached, time-bounded provider gateway"""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_provider(self, config):
        provider = FakeProvider({"creator": ['{"ok": true}']})
        client = GenerationClient(provider, config)

        first = await client.generate(make_request(), agent="creator")
        second = await client.generate(make_request(), agent="creator")

        assert provider.calls_for("creator") == 1
        assert first.cached is False
        assert first.cost > 0
        assert second.cached is True
        assert second.cost == 0.0
        assert second.content == first.content
        assert client.metrics.get_summary()["cache_hits"] == 1

    @pytest.mark.asyncio
    async def test_uncached_requests_always_call_provider(self, config):
        provider = FakeProvider({"creator": ["one", "two"]})
        client = GenerationClient(provider, config)

        first = await client.generate(make_request(), use_cache=False, agent="creator")
        second = await client.generate(make_request(), use_cache=False, agent="creator")

        assert (first.content, second.content) == ("one", "two")
        assert provider.calls_for("creator") == 2

    @pytest.mark.asyncio
    async def test_provider_failure_raises_typed_error(self, config):
        client = GenerationClient(FakeProvider(), config)
        with pytest.raises(GenerationProviderError) as exc_info:
            await client.generate(make_request(), agent="creator")
        assert exc_info.value.model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_empty_response_is_an_error(self, config):
        client = GenerationClient(FakeProvider({"creator": ["   "]}), config)
        with pytest.raises(GenerationProviderError):
            await client.generate(make_request(), agent="creator")

    @pytest.mark.asyncio
    async def test_timeout(self, config):
        config.generation_timeout_seconds = 0.05
        client = GenerationClient(SlowProvider(), config)
        with pytest.raises(GenerationProviderError, match="timed out"):
            await client.generate(make_request(), agent="creator")
        assert client.metrics.start_times == {}

    def test_estimate_cost(self, config):
        client = GenerationClient(FakeProvider(), config)
        # 1M input at $0.15 + 1M output at $0.60
        assert client.estimate_cost("gpt-4o-mini", 1_000_000, 1_000_000) == pytest.approx(
            0.75
        )
        # dated variants share their family's price
        assert client.estimate_cost("gpt-4o-2024-08-06", 1_000_000, 0) == pytest.approx(
            2.50
        )
        assert client.estimate_cost("unpriced-model", 1_000_000, 1_000_000) == 0.0
