"""
Dependency Resolver Domain Service

Decides whether a row may be worked at a station, given the statuses of the
same row at the stations it depends on. Pure functions, no I/O.
"""

from collections.abc import Iterable, Mapping

from ..entities.production_item import ProductionItem
from ..value_objects.enums import ItemStatus


def is_eligible(
    dependencies: Iterable[str], sibling_statuses: Mapping[str, ItemStatus]
) -> ItemStatus:
    """
    ``queued`` iff every dependency station has finished the row, else ``pending``.

    A dependency with no sibling item for the row counts as not done. No
    dependencies at all means the row is always eligible.

    Args:
        dependencies: Station IDs the station depends on (AND semantics)
        sibling_statuses: Status of the row at each station, by station ID

    Returns:
        ItemStatus.QUEUED or ItemStatus.PENDING
    """
    for station_id in dependencies:
        if sibling_statuses.get(station_id) != ItemStatus.DONE:
            return ItemStatus.PENDING
    return ItemStatus.QUEUED


def build_sibling_statuses(items: Iterable[ProductionItem]) -> dict[str, ItemStatus]:
    """Map station ID to status for the items of one logical row."""
    return {item.station_id: item.status for item in items}


def resolve_system_status(
    item: ProductionItem,
    dependencies: Iterable[str],
    sibling_statuses: Mapping[str, ItemStatus],
) -> ItemStatus:
    """
    Status the scheduler should give ``item``.

    Only pending/queued items are re-evaluated; an item an operator has taken
    over keeps its status.
    """
    if not item.status.is_system_assigned:
        return item.status
    return is_eligible(dependencies, sibling_statuses)


def dependencies_met(
    dependencies: Iterable[str],
    sibling_statuses: Mapping[str, ItemStatus],
) -> bool:
    """Whether every upstream station has finished the row."""
    return is_eligible(dependencies, sibling_statuses) == ItemStatus.QUEUED
