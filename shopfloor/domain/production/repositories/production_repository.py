"""
Production Repository Interface

Defines the contract for item and run persistence.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from uuid import UUID

from ..entities.batch_run import BatchRun
from ..entities.production_item import ProductionItem
from ..value_objects.keys import LogicalItemKey, RunKey


class ProductionRepository(ABC):
    """
    Abstract repository interface for production items and batch runs.

    Writes are optimistically versioned: a save succeeds only if the stored
    record still has the version the caller read, and the returned copy
    carries the incremented version. Reads return detached copies, so a
    caller's changes are invisible to others until saved.
    """

    @abstractmethod
    def get_item(self, item_id: UUID) -> ProductionItem | None:
        """
        Retrieve an item by its ID.

        Args:
            item_id: Unique item identifier

        Returns:
            ProductionItem or None if not found
        """
        pass

    @abstractmethod
    def list_items_by_logical_key(self, key: LogicalItemKey) -> list[ProductionItem]:
        """
        Retrieve every station's item for one construction row.

        Args:
            key: (order_id, batch_code, row_key)

        Returns:
            Items of the row, one per station
        """
        pass

    @abstractmethod
    def list_items_by_run(self, key: RunKey) -> list[ProductionItem]:
        """
        Retrieve the items making up a run.

        Args:
            key: (order_id, batch_code, station_id)

        Returns:
            Items of the batch at the station
        """
        pass

    @abstractmethod
    def list_items_by_order(self, order_id: str) -> list[ProductionItem]:
        """Retrieve all items of an order across batches and stations."""
        pass

    @abstractmethod
    def add_items(self, items: Iterable[ProductionItem]) -> list[ProductionItem]:
        """
        Insert new items.

        Raises:
            ValueError: If an item with the same ID already exists
        """
        pass

    @abstractmethod
    def save_item(
        self, item: ProductionItem, expected_version: int | None = None
    ) -> ProductionItem:
        """
        Update an existing item.

        Args:
            item: Item carrying the new state
            expected_version: Version the caller read (defaults to item.version)

        Returns:
            The stored item with its new version

        Raises:
            NotFoundError: If the item does not exist
            ConcurrentModificationError: If the stored version differs
        """
        pass

    @abstractmethod
    def get_run(self, key: RunKey) -> BatchRun | None:
        """Retrieve the run of a batch at a station, or None."""
        pass

    @abstractmethod
    def list_runs_by_order(self, order_id: str) -> list[BatchRun]:
        """Retrieve the runs of an order, ordered by batch and step."""
        pass

    @abstractmethod
    def add_runs(self, runs: Iterable[BatchRun]) -> list[BatchRun]:
        """
        Insert new runs.

        Raises:
            ValueError: If a run already exists for the same RunKey
        """
        pass

    @abstractmethod
    def save_run(self, run: BatchRun, expected_version: int | None = None) -> BatchRun:
        """
        Update an existing run.

        Raises:
            NotFoundError: If the run does not exist
            ConcurrentModificationError: If the stored version differs
        """
        pass

    @abstractmethod
    def delete_run(self, key: RunKey) -> int:
        """
        Delete a run together with its items.

        Returns:
            Number of items deleted
        """
        pass

    @abstractmethod
    def record_order_duration(self, order_id: str, total_minutes: int) -> bool:
        """
        Record the total working minutes of a finished order.

        Returns:
            False if a duration was already recorded (it is kept as is)
        """
        pass

    @abstractmethod
    def get_order_duration(self, order_id: str) -> int | None:
        """Recorded total working minutes of an order, or None."""
        pass
