"""
Typed operation results

Service operations return Success or Failure instead of raising for expected
conditions. A Failure always wraps an EngagementError subclass, and its kind
tells callers which branch they are on:

- "validation": malformed input, nothing was mutated
- "conflict": the record is in another state; error.current_state has it
- "collaborator": repository failure, computed state was discarded
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from engagement.exceptions import EngagementError

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Operation completed"""
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Operation did not complete"""
    error: EngagementError

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> str:
        return self.error.kind

    def unwrap(self):
        raise self.error


Result = Union[Success[T], Failure]
