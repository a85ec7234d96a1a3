"""
Domain Exceptions

Defines the error taxonomy of the production engine with type discrimination.
Operator-facing operations return these as typed failures instead of letting
them escape, so calling layers decide how to present them.
"""

from enum import Enum
from uuid import UUID


class ErrorType(str, Enum):
    """Error type enumeration for discriminated unions."""

    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    CONCURRENCY = "concurrency"
    CALENDAR_CONFIG = "calendar_config"


class DomainError(Exception):
    """Base class for all domain errors with type discrimination."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict[str, str | bool | dict[str, str | int | bool | None]]:
        """Convert error to dictionary for API responses."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class NotFoundError(DomainError):
    """Raised when a referenced item or run does not exist."""

    def __init__(self, entity_type: str, entity_id: UUID | str) -> None:
        details = {"entity_type": entity_type, "entity_id": str(entity_id)}
        super().__init__(
            f"{entity_type} not found: {entity_id}", ErrorType.NOT_FOUND, details
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class PreconditionFailedError(DomainError):
    """Raised when a transition guard is violated."""

    def __init__(
        self,
        rule_name: str,
        message: str,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        guard_details = details or {}
        guard_details["rule"] = rule_name
        super().__init__(message, ErrorType.PRECONDITION_FAILED, guard_details)
        self.rule_name = rule_name


class ConcurrentModificationError(DomainError):
    """Raised when an optimistic version check fails on write."""

    retryable = True

    def __init__(
        self, entity_type: str, entity_id: UUID | str, expected_version: int
    ) -> None:
        details = {
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "expected_version": expected_version,
        }
        super().__init__(
            f"Concurrent modification of {entity_type}: {entity_id}",
            ErrorType.CONCURRENCY,
            details,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version


class CalendarConfigInvalidError(DomainError):
    """Describes a malformed working calendar; reported as a warning only."""

    def __init__(self, message: str, value: str | None = None) -> None:
        super().__init__(message, ErrorType.CALENDAR_CONFIG, {"value": value})
        self.value = value
