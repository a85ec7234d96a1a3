"""
SQLModel database models for production tracking.

These models provide the ORM mapping between the production entities and the
SQL schema. Timestamps are stored in UTC.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Column, DateTime, Index, UniqueConstraint
from sqlmodel import Field, SQLModel


def utc_timestamp(nullable: bool = True) -> Column:
    """Timezone-aware timestamp column; values are written in UTC."""
    return Column(DateTime(timezone=True), nullable=nullable)


class ProductionItemRecord(SQLModel, table=True):
    """One construction row at one station."""

    __tablename__ = "production_items"
    __table_args__ = (
        UniqueConstraint(
            "order_id",
            "batch_code",
            "row_key",
            "station_id",
            name="uq_production_items_row_station",
        ),
        CheckConstraint(
            "status IN ('pending', 'queued', 'in_progress', 'blocked', 'done')",
            name="ck_production_items_status",
        ),
        CheckConstraint(
            "duration_minutes IS NULL OR duration_minutes >= 0",
            name="ck_production_items_duration",
        ),
        Index("ix_production_items_logical_key", "order_id", "batch_code", "row_key"),
        Index("ix_production_items_run", "order_id", "batch_code", "station_id"),
    )

    id: UUID = Field(primary_key=True)
    tenant_id: str = Field(max_length=100, index=True)
    order_id: str = Field(max_length=100)
    batch_code: str = Field(max_length=100)
    row_key: str = Field(max_length=200)
    station_id: str = Field(max_length=100)

    item_name: str = Field(default="", max_length=500)
    qty: float = Field(default=1)
    material: str | None = Field(default=None, max_length=200)

    status: str = Field(max_length=20)
    started_at: datetime | None = Field(default=None, sa_column=utc_timestamp())
    done_at: datetime | None = Field(default=None, sa_column=utc_timestamp())
    duration_minutes: int | None = None

    blocked_reason: str | None = Field(default=None, max_length=1000)
    blocked_reason_id: str | None = Field(default=None, max_length=100)
    blocked_at: datetime | None = Field(default=None, sa_column=utc_timestamp())
    blocked_by: str | None = Field(default=None, max_length=100)

    created_at: datetime = Field(sa_column=utc_timestamp(nullable=False))
    updated_at: datetime | None = Field(default=None, sa_column=utc_timestamp())
    version: int = Field(default=0)


class BatchRunRecord(SQLModel, table=True):
    """A batch at one station of its route."""

    __tablename__ = "batch_runs"
    __table_args__ = (
        UniqueConstraint(
            "order_id", "batch_code", "station_id", name="uq_batch_runs_run_key"
        ),
        CheckConstraint(
            "status IN ('pending', 'queued', 'in_progress', 'blocked', 'done')",
            name="ck_batch_runs_status",
        ),
        Index("ix_batch_runs_order", "order_id", "batch_code", "step_index"),
    )

    id: UUID = Field(primary_key=True)
    tenant_id: str = Field(max_length=100, index=True)
    order_id: str = Field(max_length=100)
    batch_code: str = Field(max_length=100)
    station_id: str = Field(max_length=100)
    step_index: int = Field(default=0)
    planned_date: date | None = None

    status: str = Field(max_length=20)
    started_at: datetime | None = Field(default=None, sa_column=utc_timestamp())
    done_at: datetime | None = Field(default=None, sa_column=utc_timestamp())
    duration_minutes: int | None = None

    created_at: datetime = Field(sa_column=utc_timestamp(nullable=False))
    updated_at: datetime | None = Field(default=None, sa_column=utc_timestamp())
    version: int = Field(default=0)


class OrderProductionDurationRecord(SQLModel, table=True):
    """Total working minutes of a finished order, for reporting."""

    __tablename__ = "order_production_durations"

    order_id: str = Field(primary_key=True, max_length=100)
    total_minutes: int = Field(ge=0)
    recorded_at: datetime = Field(sa_column=utc_timestamp(nullable=False))
