"""
Success/failure values passed between pipeline stages.

Stages that can fail in expected ways (bad provider output, timeouts) return
``Ok`` or ``Err`` instead of raising, so the caller decides whether to retry
or fall back.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def ok(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


Result = Union[Ok[T], Err]
