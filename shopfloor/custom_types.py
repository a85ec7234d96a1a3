"""
Shared result types.

Operator-facing operations report guard violations and missing records as
values instead of raising, so presentation layers decide what to show.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

T = TypeVar("T")
K = TypeVar("K")


class Result(Generic[T, K], ABC):
    """
    Result type for handling success/failure cases with type safety.

    Examples:
        >>> result = engine.start(item_id, actor)
        >>> if result.is_success():
        ...     print(result.value.status)
        >>> else:
        ...     print(result.error.to_dict())
    """

    @abstractmethod
    def is_success(self) -> bool:
        """Check if result represents success."""
        pass

    @abstractmethod
    def is_failure(self) -> bool:
        """Check if result represents failure."""
        pass


class Success(Result[T, K]):
    """Success result containing a value.

    ``changed`` is False when the operation was a retry of an action that had
    already been applied, so nothing was written.
    """

    def __init__(self, value: T, changed: bool = True) -> None:
        self.value = value
        self.changed = changed

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"Success(value={self.value!r}, changed={self.changed})"


class Failure(Result[T, K]):
    """Failure result containing an error."""

    def __init__(self, error: K) -> None:
        self.error = error

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Failure(error={self.error!r})"
