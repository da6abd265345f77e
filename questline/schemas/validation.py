"""
Validation result schemas
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ViolationType = Literal[
    "tone",
    "contradiction",
    "npc_behavior",
    "magic_system",
    "unknown_reference",
    "plot_logic",
]
Severity = Literal["critical", "major", "minor"]


class ValidationResult(BaseModel):
    """Outcome of a single validation tier"""

    tier: Literal[1, 2, 3]
    passed: bool
    score: float = Field(..., ge=0.0, le=1.0)
    issues: List[str] = Field(default_factory=list)
    revisable: bool = Field(
        default=False, description="Whether a regeneration could plausibly fix this"
    )
    metrics: Dict[str, Any] = Field(default_factory=dict)


class PipelineResult(BaseModel):
    """Combined outcome of the tiers that ran"""

    passed: bool
    failed_tier: Optional[int] = None
    reason: Optional[str] = None
    tiers: List[ValidationResult] = Field(default_factory=list)

    @property
    def overall_score(self) -> float:
        if not self.tiers:
            return 0.0
        return self.tiers[-1].score

    def tier(self, number: int) -> Optional[ValidationResult]:
        for result in self.tiers:
            if result.tier == number:
                return result
        return None


class LoreViolation(BaseModel):
    type: ViolationType
    severity: Severity
    description: str
    location: str = ""


class LoreValidation(BaseModel):
    """Lore-consistency judgment on a piece of content"""

    score: int = Field(..., ge=0, le=100)
    passed: bool
    violations: List[LoreViolation] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    is_fallback: bool = Field(default=False)
