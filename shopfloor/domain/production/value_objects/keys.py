"""Composite keys used to group production items."""

from typing import NamedTuple


class LogicalItemKey(NamedTuple):
    """One construction row of an order batch, tracked once per station."""

    order_id: str
    batch_code: str
    row_key: str

    def __str__(self) -> str:
        return f"{self.order_id}/{self.batch_code}/{self.row_key}"


class RunKey(NamedTuple):
    """One batch at one station."""

    order_id: str
    batch_code: str
    station_id: str

    def __str__(self) -> str:
        return f"{self.order_id}/{self.batch_code}@{self.station_id}"
