"""
Decision schema: whether a character needs new content, and what kind.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .character import StatName

ContentType = Literal["main", "side", "corrective"]
Difficulty = Literal["easy", "medium", "hard"]


class Decision(BaseModel):
    """Output of the decision maker"""

    needs_content: bool = Field(..., description="Whether new content is warranted")
    content_type: Optional[ContentType] = Field(default=None)
    theme: Optional[str] = Field(default=None, description="Narrative theme")
    difficulty: Optional[Difficulty] = Field(default=None)
    target_stat: Optional[StatName] = Field(
        default=None, description="Stat a corrective quest should strengthen"
    )
    reasoning: str = Field(default="", description="Why this decision was made")
    is_fallback: bool = Field(
        default=False, description="True when produced by the rule-based fallback"
    )

    @model_validator(mode="after")
    def check_required_fields(self):
        if not self.needs_content:
            return self
        missing = [
            name
            for name in ("content_type", "theme", "difficulty")
            if getattr(self, name) in (None, "")
        ]
        if missing:
            raise ValueError(f"Decision needs content but is missing: {missing}")
        if not self.reasoning.strip():
            raise ValueError("Decision needs content but gives no reasoning")
        if self.content_type == "corrective" and self.target_stat is None:
            raise ValueError("Corrective decisions require a target_stat")
        return self
