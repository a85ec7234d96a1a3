"""
Mappers for converting between production entities and SQL records.

Timestamps are written as aware UTC and always read back as aware UTC. SQLite
returns timezone columns without an offset, so naive values read back are
taken to be UTC.
"""

from datetime import datetime, timezone

from ...domain.production.entities.batch_run import BatchRun
from ...domain.production.entities.production_item import ProductionItem
from ...domain.production.value_objects.enums import ItemStatus
from .models import BatchRunRecord, ProductionItemRecord

ITEM_TIMESTAMPS = ("started_at", "done_at", "blocked_at", "created_at", "updated_at")
RUN_TIMESTAMPS = ("started_at", "done_at", "created_at", "updated_at")


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ProductionItemMapper:
    """Converts ProductionItem entities to and from ``production_items`` rows."""

    @staticmethod
    def to_values(item: ProductionItem) -> dict:
        """Column values for an insert or update."""
        values = item.model_dump()
        values["status"] = item.status.value
        for name in ITEM_TIMESTAMPS:
            values[name] = as_utc(values[name])
        return values

    @staticmethod
    def domain_to_sql(item: ProductionItem) -> ProductionItemRecord:
        return ProductionItemRecord(**ProductionItemMapper.to_values(item))

    @staticmethod
    def sql_to_domain(record: ProductionItemRecord) -> ProductionItem:
        values = record.model_dump()
        values["status"] = ItemStatus(record.status)
        for name in ITEM_TIMESTAMPS:
            values[name] = as_utc(values[name])
        return ProductionItem(**values)


class BatchRunMapper:
    """Converts BatchRun entities to and from ``batch_runs`` rows."""

    @staticmethod
    def to_values(run: BatchRun) -> dict:
        values = run.model_dump()
        values["status"] = run.status.value
        for name in RUN_TIMESTAMPS:
            values[name] = as_utc(values[name])
        return values

    @staticmethod
    def domain_to_sql(run: BatchRun) -> BatchRunRecord:
        return BatchRunRecord(**BatchRunMapper.to_values(run))

    @staticmethod
    def sql_to_domain(record: BatchRunRecord) -> BatchRun:
        values = record.model_dump()
        values["status"] = ItemStatus(record.status)
        for name in RUN_TIMESTAMPS:
            values[name] = as_utc(values[name])
        return BatchRun(**values)
