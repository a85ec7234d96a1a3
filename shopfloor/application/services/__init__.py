"""
Application services coordinating production use cases.
"""

from .production_service import ProductionEngine, ReleaseRow

__all__ = ["ProductionEngine", "ReleaseRow"]
