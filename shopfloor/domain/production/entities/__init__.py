"""Production entities."""

from .batch_run import BatchRun
from .production_item import ProductionItem
from .station import Actor, Station, StationDependency

__all__ = [
    "Actor",
    "BatchRun",
    "ProductionItem",
    "Station",
    "StationDependency",
]
