"""Tests for station dependency eligibility."""

from hypothesis import given, strategies as st

from shopfloor.domain.production.entities.production_item import ProductionItem
from shopfloor.domain.production.services.dependency_resolver import (
    build_sibling_statuses,
    dependencies_met,
    is_eligible,
    resolve_system_status,
)
from shopfloor.domain.production.value_objects.enums import ItemStatus

STATION_IDS = ["cut", "edge", "drill", "paint", "assembly", "pack"]


def make_item(station_id: str, status: ItemStatus) -> ProductionItem:
    return ProductionItem(
        order_id="ORD-1",
        batch_code="B1",
        row_key="r1",
        station_id=station_id,
        status=status,
    )


class TestIsEligible:
    def test_no_dependencies_is_queued(self):
        assert is_eligible([], {}) == ItemStatus.QUEUED

    def test_all_dependencies_done(self):
        statuses = {"cut": ItemStatus.DONE, "edge": ItemStatus.DONE}
        assert is_eligible(["cut", "edge"], statuses) == ItemStatus.QUEUED

    def test_one_dependency_not_done(self):
        """Assembly waits while edge banding is still queued."""
        statuses = {"cut": ItemStatus.DONE, "edge": ItemStatus.QUEUED}
        assert is_eligible(["cut", "edge"], statuses) == ItemStatus.PENDING

    def test_missing_sibling_counts_as_not_done(self):
        statuses = {"cut": ItemStatus.DONE}
        assert is_eligible(["cut", "edge"], statuses) == ItemStatus.PENDING

    def test_in_progress_dependency_is_not_done(self):
        assert is_eligible(["cut"], {"cut": ItemStatus.IN_PROGRESS}) == ItemStatus.PENDING

    def test_dependencies_met(self):
        assert dependencies_met(["cut"], {"cut": ItemStatus.DONE})
        assert not dependencies_met(["cut"], {"cut": ItemStatus.BLOCKED})

    @given(
        dependencies=st.sets(st.sampled_from(STATION_IDS)),
        statuses=st.dictionaries(
            st.sampled_from(STATION_IDS), st.sampled_from(list(ItemStatus))
        ),
    )
    def test_queued_iff_every_dependency_done(self, dependencies, statuses):
        expected = all(statuses.get(station) == ItemStatus.DONE for station in dependencies)
        result = is_eligible(sorted(dependencies), statuses)
        assert (result == ItemStatus.QUEUED) == expected
        assert result in (ItemStatus.QUEUED, ItemStatus.PENDING)


class TestSiblingStatuses:
    def test_build_sibling_statuses(self):
        items = [make_item("cut", ItemStatus.DONE), make_item("edge", ItemStatus.QUEUED)]
        assert build_sibling_statuses(items) == {
            "cut": ItemStatus.DONE,
            "edge": ItemStatus.QUEUED,
        }


class TestResolveSystemStatus:
    def test_pending_becomes_queued(self):
        item = make_item("assembly", ItemStatus.PENDING)
        statuses = {"cut": ItemStatus.DONE, "edge": ItemStatus.DONE}
        assert resolve_system_status(item, ["cut", "edge"], statuses) == ItemStatus.QUEUED

    def test_queued_becomes_pending(self):
        item = make_item("assembly", ItemStatus.QUEUED)
        assert resolve_system_status(item, ["cut"], {}) == ItemStatus.PENDING

    def test_operator_owned_status_is_kept(self):
        for status in (ItemStatus.IN_PROGRESS, ItemStatus.BLOCKED, ItemStatus.DONE):
            item = make_item("assembly", status)
            assert resolve_system_status(item, ["cut"], {}) == status
