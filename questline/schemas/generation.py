"""
Request/response schemas for the generation client
"""

import json
import re
from typing import Any, Dict, List, Literal, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from questline.errors import SchemaValidationError

from .result import Err, Ok, Result

M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class GenerationRequest(BaseModel):
    system_context: str = Field(default="")
    messages: List[ChatMessage]
    model: str
    max_tokens: int = Field(default=1024, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    def cache_payload(self) -> Dict[str, Any]:
        return self.model_dump()


def extract_json(text: str) -> Any:
    """
    Pull a JSON document out of provider text.

    Handles fenced code blocks and prose surrounding a single object.
    """
    candidate = text.strip()
    match = _FENCE_RE.search(candidate)
    if match:
        candidate = match.group(1).strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        start = candidate.find("{")
        end = candidate.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(candidate[start : end + 1])


class GenerationResponse(BaseModel):
    content: str
    model: str
    latency_ms: float = 0.0
    cost: float = 0.0
    cached: bool = False
    usage: Dict[str, int] = Field(default_factory=dict)

    def parse(self, model: Type[M]) -> Result:
        """Strictly parse the content into ``model``; never raises."""
        try:
            data = extract_json(self.content)
        except (json.JSONDecodeError, ValueError) as e:
            return Err(SchemaValidationError(f"Response is not JSON: {e}", self.content))
        if not isinstance(data, dict):
            return Err(
                SchemaValidationError("Response JSON is not an object", self.content)
            )
        try:
            return Ok(model.model_validate(data))
        except ValidationError as e:
            return Err(
                SchemaValidationError(
                    f"Response does not match {model.__name__}: {e}", self.content
                )
            )
