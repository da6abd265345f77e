"""
Bounded generate → validate → retry → fallback policy.

Expressed as a Langgraph StateGraph so the control flow is one explicit
structure shared by quest generation and consequence narration:

    START → generate → evaluate ─┬─ pass ─────────────────────────→ END
                 ▲               ├─ revise (attempts left) ─→ generate
                 └───────────────┘
                                 └─ otherwise → fallback → evaluate_fallback → END

Fallback output is kept whatever its evaluation says.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from questline.schemas import Err, Result
from questline.utils.logger import get_logger

logger = get_logger(__name__)


class Verdict(str, Enum):
    PASS = "pass"
    REVISE = "revise"
    REJECT = "reject"


GenerateFn = Callable[[], Awaitable[Result]]
EvaluateFn = Callable[[Any], Awaitable[Tuple[Verdict, Any]]]
FallbackFn = Callable[[], Any]


class PolicyState(TypedDict, total=False):
    """Graph state for one policy run"""

    attempts: int
    candidate: Optional[Any]
    evaluation: Optional[Any]
    verdict: Optional[Verdict]
    used_fallback: bool
    errors: List[str]


@dataclass
class PolicyOutcome:
    value: Any
    evaluation: Optional[Any]
    attempts: int
    used_fallback: bool
    errors: List[str] = field(default_factory=list)


class GenerationPolicy:
    """
    Runs a generator under a bounded retry budget with a guaranteed fallback.

    Args:
        generate_fn: Async callable returning Ok(candidate) or Err(error)
        evaluate_fn: Async callable grading a candidate as (Verdict, evaluation)
        fallback_fn: Zero-network callable producing a guaranteed candidate
        max_attempts: Generation attempts before falling back
        name: Label used in logs
    """

    def __init__(
        self,
        generate_fn: GenerateFn,
        evaluate_fn: EvaluateFn,
        fallback_fn: FallbackFn,
        max_attempts: int = 2,
        name: str = "policy",
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.generate_fn = generate_fn
        self.evaluate_fn = evaluate_fn
        self.fallback_fn = fallback_fn
        self.max_attempts = max_attempts
        self.name = name
        self.graph = self._build_graph()

    def _build_graph(self) -> Any:
        builder = StateGraph(PolicyState)
        builder.add_node("generate", self._generate)
        builder.add_node("evaluate", self._evaluate)
        builder.add_node("fallback", self._fallback)
        builder.add_node("evaluate_fallback", self._evaluate_fallback)

        builder.add_edge(START, "generate")
        builder.add_edge("generate", "evaluate")
        builder.add_conditional_edges(
            "evaluate",
            self._route,
            {"accept": END, "retry": "generate", "fallback": "fallback"},
        )
        builder.add_edge("fallback", "evaluate_fallback")
        builder.add_edge("evaluate_fallback", END)
        return builder.compile()

    async def run(self) -> PolicyOutcome:
        initial: PolicyState = {
            "attempts": 0,
            "candidate": None,
            "evaluation": None,
            "verdict": None,
            "used_fallback": False,
            "errors": [],
        }
        final = await self.graph.ainvoke(initial)
        outcome = PolicyOutcome(
            value=final.get("candidate"),
            evaluation=final.get("evaluation"),
            attempts=final.get("attempts", 0),
            used_fallback=final.get("used_fallback", False),
            errors=list(final.get("errors", [])),
        )
        logger.info(
            f"[GenerationPolicy] {self.name}: {outcome.attempts} attempt(s), "
            f"fallback={outcome.used_fallback}",
            extra={"component": "GenerationPolicy", "policy": self.name},
        )
        return outcome

    # ==================== Nodes ====================

    async def _generate(self, state: PolicyState) -> PolicyState:
        attempts = state.get("attempts", 0) + 1
        result = await self.generate_fn()
        if isinstance(result, Err):
            logger.warning(
                f"[GenerationPolicy] {self.name} attempt {attempts} failed: {result}"
            )
            return {
                "attempts": attempts,
                "candidate": None,
                "errors": state.get("errors", []) + [str(result)],
            }
        return {"attempts": attempts, "candidate": result.value}

    async def _evaluate(self, state: PolicyState) -> PolicyState:
        candidate = state.get("candidate")
        if candidate is None:
            return {"verdict": Verdict.REVISE, "evaluation": None}
        verdict, evaluation = await self.evaluate_fn(candidate)
        logger.debug(
            f"[GenerationPolicy] {self.name} attempt {state.get('attempts')}: "
            f"{verdict.value}"
        )
        return {"verdict": verdict, "evaluation": evaluation}

    def _route(self, state: PolicyState) -> str:
        verdict = state.get("verdict")
        if verdict == Verdict.PASS:
            return "accept"
        if verdict == Verdict.REVISE and state.get("attempts", 0) < self.max_attempts:
            return "retry"
        return "fallback"

    async def _fallback(self, state: PolicyState) -> PolicyState:
        logger.info(f"[GenerationPolicy] {self.name}: using fallback")
        return {"candidate": self.fallback_fn(), "used_fallback": True}

    async def _evaluate_fallback(self, state: PolicyState) -> PolicyState:
        _, evaluation = await self.evaluate_fn(state["candidate"])
        return {"evaluation": evaluation}
