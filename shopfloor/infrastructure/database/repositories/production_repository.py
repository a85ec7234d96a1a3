"""
Production repository implementation on SQLModel.

Every call runs in its own committed session. Updates are conditional on the
version the caller read, so a lost race is detected by the database rather
than silently overwriting a concurrent change.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from ....core.db import get_engine, session_scope
from ....core.observability import get_logger
from ....domain.production.entities.batch_run import BatchRun
from ....domain.production.entities.production_item import ProductionItem
from ....domain.production.repositories.production_repository import (
    ProductionRepository,
)
from ....domain.production.value_objects.keys import LogicalItemKey, RunKey
from ....domain.shared.exceptions import ConcurrentModificationError, NotFoundError
from ..mappers import BatchRunMapper, ProductionItemMapper
from ..models import BatchRunRecord, OrderProductionDurationRecord, ProductionItemRecord

logger = get_logger(__name__)


class SqlModelProductionRepository(ProductionRepository):
    """ProductionRepository backed by the ``production_items`` and ``batch_runs`` tables."""

    def __init__(self, engine: Engine | None = None) -> None:
        self.engine = engine or get_engine()

    # Items

    def get_item(self, item_id: UUID) -> ProductionItem | None:
        with session_scope(self.engine) as session:
            record = session.get(ProductionItemRecord, item_id)
            return ProductionItemMapper.sql_to_domain(record) if record else None

    def _list_items(self, *conditions) -> list[ProductionItem]:
        statement = (
            select(ProductionItemRecord)
            .where(*conditions)
            .order_by(ProductionItemRecord.created_at, ProductionItemRecord.station_id)
        )
        with session_scope(self.engine) as session:
            return [
                ProductionItemMapper.sql_to_domain(record)
                for record in session.exec(statement).all()
            ]

    def list_items_by_logical_key(self, key: LogicalItemKey) -> list[ProductionItem]:
        return self._list_items(
            ProductionItemRecord.order_id == key.order_id,
            ProductionItemRecord.batch_code == key.batch_code,
            ProductionItemRecord.row_key == key.row_key,
        )

    def list_items_by_run(self, key: RunKey) -> list[ProductionItem]:
        return self._list_items(
            ProductionItemRecord.order_id == key.order_id,
            ProductionItemRecord.batch_code == key.batch_code,
            ProductionItemRecord.station_id == key.station_id,
        )

    def list_items_by_order(self, order_id: str) -> list[ProductionItem]:
        return self._list_items(ProductionItemRecord.order_id == order_id)

    def add_items(self, items: Iterable[ProductionItem]) -> list[ProductionItem]:
        items = list(items)
        try:
            with session_scope(self.engine) as session:
                session.add_all(ProductionItemMapper.domain_to_sql(item) for item in items)
        except IntegrityError as e:
            raise ValueError(f"Could not insert production items: {e.orig}") from e
        return items

    def save_item(
        self, item: ProductionItem, expected_version: int | None = None
    ) -> ProductionItem:
        expected = item.version if expected_version is None else expected_version
        values = ProductionItemMapper.to_values(item)
        values.pop("id")
        values["version"] = expected + 1

        with session_scope(self.engine) as session:
            result = session.execute(
                update(ProductionItemRecord)
                .where(ProductionItemRecord.id == item.id)
                .where(ProductionItemRecord.version == expected)
                .values(**values)
            )
            if result.rowcount == 0:
                if session.get(ProductionItemRecord, item.id) is None:
                    raise NotFoundError("ProductionItem", item.id)
                raise ConcurrentModificationError("ProductionItem", item.id, expected)

        return item.model_copy(update={"version": expected + 1})

    # Runs

    def get_run(self, key: RunKey) -> BatchRun | None:
        statement = select(BatchRunRecord).where(
            BatchRunRecord.order_id == key.order_id,
            BatchRunRecord.batch_code == key.batch_code,
            BatchRunRecord.station_id == key.station_id,
        )
        with session_scope(self.engine) as session:
            record = session.exec(statement).first()
            return BatchRunMapper.sql_to_domain(record) if record else None

    def list_runs_by_order(self, order_id: str) -> list[BatchRun]:
        statement = (
            select(BatchRunRecord)
            .where(BatchRunRecord.order_id == order_id)
            .order_by(BatchRunRecord.batch_code, BatchRunRecord.step_index)
        )
        with session_scope(self.engine) as session:
            return [
                BatchRunMapper.sql_to_domain(record)
                for record in session.exec(statement).all()
            ]

    def add_runs(self, runs: Iterable[BatchRun]) -> list[BatchRun]:
        runs = list(runs)
        try:
            with session_scope(self.engine) as session:
                session.add_all(BatchRunMapper.domain_to_sql(run) for run in runs)
        except IntegrityError as e:
            raise ValueError(f"Could not insert batch runs: {e.orig}") from e
        return runs

    def save_run(self, run: BatchRun, expected_version: int | None = None) -> BatchRun:
        expected = run.version if expected_version is None else expected_version
        values = BatchRunMapper.to_values(run)
        values.pop("id")
        values["version"] = expected + 1

        with session_scope(self.engine) as session:
            result = session.execute(
                update(BatchRunRecord)
                .where(BatchRunRecord.id == run.id)
                .where(BatchRunRecord.version == expected)
                .values(**values)
            )
            if result.rowcount == 0:
                if session.get(BatchRunRecord, run.id) is None:
                    raise NotFoundError("BatchRun", run.id)
                raise ConcurrentModificationError("BatchRun", run.id, expected)

        return run.model_copy(update={"version": expected + 1})

    def delete_run(self, key: RunKey) -> int:
        with session_scope(self.engine) as session:
            result = session.execute(
                delete(ProductionItemRecord)
                .where(ProductionItemRecord.order_id == key.order_id)
                .where(ProductionItemRecord.batch_code == key.batch_code)
                .where(ProductionItemRecord.station_id == key.station_id)
            )
            session.execute(
                delete(BatchRunRecord)
                .where(BatchRunRecord.order_id == key.order_id)
                .where(BatchRunRecord.batch_code == key.batch_code)
                .where(BatchRunRecord.station_id == key.station_id)
            )
            return result.rowcount

    # Orders

    def record_order_duration(self, order_id: str, total_minutes: int) -> bool:
        try:
            with session_scope(self.engine) as session:
                if session.get(OrderProductionDurationRecord, order_id) is not None:
                    return False
                session.add(
                    OrderProductionDurationRecord(
                        order_id=order_id,
                        total_minutes=total_minutes,
                        recorded_at=datetime.now(timezone.utc),
                    )
                )
        except IntegrityError:
            logger.info("Order duration already recorded", order_id=order_id)
            return False
        return True

    def get_order_duration(self, order_id: str) -> int | None:
        with session_scope(self.engine) as session:
            record = session.get(OrderProductionDurationRecord, order_id)
            return record.total_minutes if record else None
