"""
Generation metrics: latency, cost and cache usage per agent.
"""

import time
from typing import Any, Dict, List, Optional

from questline.utils.logger import get_logger

logger = get_logger(__name__)


class GenerationMetrics:
    """
    Track and aggregate metrics for generation calls.

    Each entry records the agent that made the call, its latency, cost and
    whether the response was served from cache.
    """

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.start_times: Dict[str, float] = {}

    def start_operation(self, operation_id: str, agent: str):
        """
        Start timing a generation call.

        Args:
            operation_id: Unique identifier for this call
            agent: Name of the agent issuing the call
        """
        self.start_times[operation_id] = time.time()
        logger.debug(
            f"[Metrics] Started generation for {agent}: {operation_id}",
            extra={"component": "Metrics", "operation_id": operation_id},
        )

    def end_operation(
        self,
        operation_id: str,
        agent: str,
        cost: float = 0.0,
        cached: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> float:
        """
        End timing a generation call and record it.

        Returns:
            Elapsed time in milliseconds (0 when no start was recorded)
        """
        if operation_id not in self.start_times:
            logger.warning(f"[Metrics] No start time for operation: {operation_id}")
            return 0.0

        duration_ms = (time.time() - self.start_times.pop(operation_id)) * 1000
        self.calls.append(
            {
                "operation_id": operation_id,
                "agent": agent,
                "duration_ms": duration_ms,
                "cost": cost,
                "cached": cached,
                "timestamp": time.time(),
                "metadata": metadata or {},
            }
        )

        logger.info(
            f"[Metrics] {agent} generation finished in {duration_ms:.0f}ms "
            f"(cost ${cost:.6f}, cached={cached})",
            extra={
                "component": "Metrics",
                "operation_id": operation_id,
                "agent": agent,
                "duration_ms": duration_ms,
                "cost": cost,
            },
        )
        return duration_ms

    def discard_operation(self, operation_id: str) -> None:
        """Forget a started call that failed before producing a response."""
        self.start_times.pop(operation_id, None)

    def get_summary(self) -> Dict[str, Any]:
        """
        Get summary statistics grouped by agent.

        Returns:
            Dictionary with totals plus a per-agent breakdown
        """
        by_agent: Dict[str, Dict[str, Any]] = {}
        for entry in self.calls:
            bucket = by_agent.setdefault(
                entry["agent"],
                {"count": 0, "cached": 0, "total_cost": 0.0, "durations": []},
            )
            bucket["count"] += 1
            bucket["cached"] += 1 if entry["cached"] else 0
            bucket["total_cost"] += entry["cost"]
            bucket["durations"].append(entry["duration_ms"])

        agents = {}
        for agent, bucket in by_agent.items():
            durations = bucket.pop("durations")
            agents[agent] = {
                **bucket,
                "avg_time_ms": sum(durations) / len(durations),
                "max_time_ms": max(durations),
            }

        return {
            "total_calls": len(self.calls),
            "total_cost": sum(e["cost"] for e in self.calls),
            "cache_hits": sum(1 for e in self.calls if e["cached"]),
            "agents": agents,
        }

    def reset(self):
        """Reset all metrics."""
        self.calls = []
        self.start_times.clear()
        logger.info("[Metrics] Reset generation metrics")
