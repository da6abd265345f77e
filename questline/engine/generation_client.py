"""
Generation client: the single gateway to the external content provider.

Adds response caching, a hard timeout, cost accounting and metrics on top of
a LangChain-backed provider. Does not retry; retry decisions belong to the
callers that know whether a second attempt is worth its cost.
"""

import asyncio
import uuid
from typing import Dict, Optional

from questline.config import Settings, settings as default_settings
from questline.errors import GenerationProviderError
from questline.providers.base import BaseProvider
from questline.schemas import GenerationRequest, GenerationResponse
from questline.utils.cache import ResponseCache, make_cache_key
from questline.utils.logger import get_logger
from questline.utils.metrics import GenerationMetrics

logger = get_logger(__name__)


class GenerationClient:
    """Cached, time-bounded access to the generation provider"""

    def __init__(
        self,
        provider: BaseProvider,
        config: Optional[Settings] = None,
        cache: Optional[ResponseCache] = None,
        metrics: Optional[GenerationMetrics] = None,
    ):
        self.provider = provider
        self.config = config or default_settings
        self.cache = cache or ResponseCache(
            max_size=self.config.cache_max_size,
            default_ttl=self.config.cache_ttl_seconds,
        )
        self.metrics = metrics or GenerationMetrics()

    async def generate(
        self,
        request: GenerationRequest,
        use_cache: bool = True,
        agent: str = "unknown",
    ) -> GenerationResponse:
        """
        Send one request to the provider.

        Args:
            request: System context, messages, model and sampling parameters
            use_cache: Serve identical requests from cache and store fresh ones
            agent: Name of the calling agent, for metrics and logs

        Returns:
            GenerationResponse; ``cached`` is True (and cost 0) on a cache hit

        Raises:
            GenerationProviderError: provider failure, timeout or empty response
        """
        key = make_cache_key(request.cache_payload()) if use_cache else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(
                    f"[GenerationClient] Cache hit for {agent}",
                    extra={"component": "GenerationClient", "agent": agent},
                )
                self._record_cached(agent)
                return cached.model_copy(update={"cached": True, "cost": 0.0})

        operation_id = f"{agent}-{uuid.uuid4().hex[:8]}"
        self.metrics.start_operation(operation_id, agent)
        messages = self.provider.convert_messages(
            request.system_context, [m.model_dump() for m in request.messages]
        )
        try:
            provider_response = await asyncio.wait_for(
                self.provider.chat(
                    messages,
                    model=request.model,
                    temperature=request.temperature,
                    max_tokens=request.max_tokens,
                ),
                timeout=self.config.generation_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            self.metrics.discard_operation(operation_id)
            logger.warning(
                f"[GenerationClient] {agent} timed out after "
                f"{self.config.generation_timeout_seconds}s"
            )
            raise GenerationProviderError(
                f"Provider timed out after {self.config.generation_timeout_seconds}s",
                model=request.model,
            ) from e
        except Exception as e:
            self.metrics.discard_operation(operation_id)
            logger.warning(f"[GenerationClient] {agent} provider call failed: {e}")
            raise GenerationProviderError(str(e), model=request.model) from e

        if not provider_response.content or not provider_response.content.strip():
            self.metrics.discard_operation(operation_id)
            raise GenerationProviderError(
                "Provider returned an empty response", model=request.model
            )

        usage = provider_response.usage or {}
        model = provider_response.model or request.model
        cost = self.estimate_cost(
            model, usage.get("input_tokens", 0), usage.get("output_tokens", 0)
        )
        latency_ms = self.metrics.end_operation(
            operation_id, agent, cost=cost, metadata={"model": model, "usage": usage}
        )

        response = GenerationResponse(
            content=provider_response.content,
            model=model,
            latency_ms=latency_ms,
            cost=cost,
            cached=False,
            usage={k: int(v) for k, v in usage.items() if isinstance(v, (int, float))},
        )
        if key is not None:
            self.cache.set(key, response)
        return response

    def estimate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """USD cost from the per-million-token pricing table (0 when unpriced)."""
        pricing = self._pricing_for(model)
        if pricing is None:
            return 0.0
        return (
            input_tokens / 1_000_000 * pricing.get("input", 0.0)
            + output_tokens / 1_000_000 * pricing.get("output", 0.0)
        )

    def _pricing_for(self, model: str) -> Optional[Dict[str, float]]:
        table = self.config.model_pricing
        if model in table:
            return table[model]
        # Dated or suffixed model names share their family's price
        for name in sorted(table, key=len, reverse=True):
            if model.startswith(name):
                return table[name]
        return None

    def _record_cached(self, agent: str) -> None:
        operation_id = f"{agent}-cache-{uuid.uuid4().hex[:8]}"
        self.metrics.start_operation(operation_id, agent)
        self.metrics.end_operation(operation_id, agent, cost=0.0, cached=True)
