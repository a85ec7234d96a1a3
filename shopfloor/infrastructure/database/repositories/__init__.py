"""Database repository implementations."""

from .production_repository import SqlModelProductionRepository

__all__ = ["SqlModelProductionRepository"]
