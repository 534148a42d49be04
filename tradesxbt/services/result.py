"""
Explicit success/failure container for peripheral data feeds.
"""
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a fetch: either a value or the error that prevented it.

    Attributes:
        value: Fetched data (None on failure)
        error: Exception describing the failure (None on success)
        source: Name of the backend that produced the value
    """
    value: Optional[T] = None
    error: Optional[Exception] = None
    source: str = ""

    @classmethod
    def success(cls, value: T, source: str = "") -> 'Result[T]':
        return cls(value=value, source=source)

    @classmethod
    def failure(cls, error: Exception, source: str = "") -> 'Result[T]':
        return cls(error=error, source=source)

    @property
    def ok(self) -> bool:
        return self.error is None
