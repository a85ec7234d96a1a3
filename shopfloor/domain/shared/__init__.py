"""Shared domain building blocks."""

from .base import Entity, ValueObject, utcnow
from .exceptions import (
    CalendarConfigInvalidError,
    ConcurrentModificationError,
    DomainError,
    ErrorType,
    NotFoundError,
    PreconditionFailedError,
)

__all__ = [
    "Entity",
    "ValueObject",
    "utcnow",
    "DomainError",
    "ErrorType",
    "NotFoundError",
    "PreconditionFailedError",
    "ConcurrentModificationError",
    "CalendarConfigInvalidError",
]
