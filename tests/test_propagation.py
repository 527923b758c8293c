"""Tests for the propagation engine and the propagate strategy."""

from __future__ import annotations

import logging
from typing import Callable

import pytest

from conftest import Recorder
from contextgroups import (
    AccessEvents,
    CascadeFailure,
    ChangeEvent,
    GroupAccess,
    InvalidInputError,
    ItemQuery,
)
from contextgroups.access import CascadeReport, PropagateStrategy
from contextgroups.audit import AuditLogListener
from contextgroups.memory import InMemoryContentStore


@pytest.fixture
def access(make_access: Callable[..., GroupAccess]) -> GroupAccess:
    return make_access(access_strategy="propagate", propagate_enabled=True)


@pytest.fixture
def chain(access: GroupAccess, content: InMemoryContentStore) -> GroupAccess:
    """Item 100 with child 101, grandchild 102 and an attachment 103.

    Groups: 1 Staff {10}, 2 Board {40}.
    """
    access.groups.create_group("Staff", users=[10])
    access.groups.create_group("Board", users=[40])
    content.add_item(100)
    content.add_item(101, parent_id=100)
    content.add_item(102, parent_id=101, post_type="page")
    content.add_item(103, parent_id=100, post_type="attachment")
    return access


class TestPropagateAdd:
    """Tests for read-group additions."""

    def test_descendants_receive_group(self, chain: GroupAccess) -> None:
        """Test assigning a group to an item assigns it to every descendant."""
        chain.linker.set_item_read_groups(100, [1])

        assert [g.id for g in chain.get_item_read_groups(101)] == [1]
        assert [g.id for g in chain.get_item_read_groups(102)] == [1]

    def test_ungoverned_descendants_untouched(self, chain: GroupAccess) -> None:
        """Test descendants of other types are not walked."""
        chain.linker.set_item_read_groups(100, [1])
        assert chain.linker.get_item_read_group_ids(103) == []

    def test_existing_groups_kept(self, chain: GroupAccess) -> None:
        """Test descendants keep their own groups."""
        chain.linker.set_item_read_groups(101, [2])
        chain.linker.set_item_read_groups(100, [1])
        assert chain.linker.get_item_read_group_ids(101) == [2, 1]
        assert chain.linker.get_item_read_group_ids(102) == [2, 1]

    def test_engine_writes_do_not_cascade(self, chain: GroupAccess, recorder: Recorder) -> None:
        """Test descendant updates carry cascade=False."""
        chain.subscribe(recorder, [AccessEvents.ITEM_READ_GROUPS_ADDED])
        chain.linker.set_item_read_groups(100, [1])

        # Descendant events are emitted while the first one is still being dispatched
        assert [(e.item_id, e.cascade) for e in recorder.events] == [(101, False), (102, False), (100, True)]

    def test_audited(self, chain: GroupAccess) -> None:
        """Test propagated assignments show up in the history log."""
        audit = AuditLogListener(chain.groups.get_group_name, chain.linker.get_item_read_group_ids)
        chain.subscribe(audit)
        chain.linker.set_item_read_groups(100, [1])
        assert [e.message for e in audit.entries_for("item", 102)] == [
            "Added read privilege for group Staff",
            "Groups now: Staff",
        ]

    def test_write_without_cascade(self, chain: GroupAccess) -> None:
        """Test writes flagged cascade=False stay on the item."""
        chain.linker.set_item_read_groups(100, [1], cascade=False)
        assert chain.linker.get_item_read_group_ids(101) == []


class TestPropagateRemove:
    """Tests for read-group removals."""

    def test_removed_from_descendants(self, chain: GroupAccess) -> None:
        """Test removing a group removes it from every descendant."""
        chain.linker.set_item_read_groups(100, [1, 2])
        chain.linker.remove_item_read_groups(100, [2])

        assert chain.linker.get_item_read_group_ids(101) == [1]
        assert chain.linker.get_item_read_group_ids(102) == [1]

    def test_independent_assignment_removed_too(self, chain: GroupAccess) -> None:
        """Test a descendant loses the group even if it held it on its own."""
        chain.linker.set_item_read_groups(102, [2], cascade=False)
        chain.linker.set_item_read_groups(100, [2])
        chain.linker.remove_item_read_groups(100)
        assert chain.linker.get_item_read_group_ids(102) == []


class TestPropagationDisabled:
    """Tests for deployments without propagation."""

    def test_not_subscribed(self, make_access: Callable[..., GroupAccess], content: InMemoryContentStore) -> None:
        """Test nothing is copied when propagation is off."""
        access = make_access()
        access.groups.create_group("Staff")
        content.add_item(100)
        content.add_item(101, parent_id=100)

        access.linker.set_item_read_groups(100, [1])

        assert access.linker.get_item_read_group_ids(101) == []
        assert access.propagation not in access.dispatcher.listeners()

    def test_engine_ignores_events(self, make_access: Callable[..., GroupAccess], content: InMemoryContentStore) -> None:
        """Test the engine is inert while disabled."""
        access = make_access()
        access.groups.create_group("Staff")
        content.add_item(100)
        content.add_item(101, parent_id=100)
        content.set_item_terms(100, [1])

        access.propagation.on_access_change(
            ChangeEvent(name=AccessEvents.ITEM_READ_GROUPS_ADDED, item_id=100, group_id=1)
        )
        assert access.linker.get_item_read_group_ids(101) == []


class TestCascadeReport:
    """Tests for partial failures during a walk."""

    def test_report(self, chain: GroupAccess) -> None:
        """Test the report lists visited and updated descendants."""
        report = chain.propagation.propagate_add(100, 2)
        assert isinstance(report, CascadeReport)
        assert report.visited == 2
        assert report.updated == [101, 102]
        assert report.ok

    def test_failure_recorded_and_walk_continues(
        self, chain: GroupAccess, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test a failing descendant is reported and its subtree still walked."""
        original = chain.linker.add_item_read_group

        def flaky(item_id: int, group_id: int, cascade: bool = True) -> bool:
            if item_id == 101:
                raise InvalidInputError("store rejected write")
            return original(item_id, group_id, cascade=cascade)

        monkeypatch.setattr(chain.linker, "add_item_read_group", flaky)
        with caplog.at_level(logging.WARNING, logger="contextgroups"):
            report = chain.propagation.propagate_add(100, 1)

        assert report.failures == ["Item 101: store rejected write"]
        assert report.updated == [102]
        assert "incomplete" in caplog.text
        with pytest.raises(CascadeFailure):
            report.raise_for_failures()

    def test_write_returns_cascade_reports(self, chain: GroupAccess) -> None:
        """Test the read-group write hands back the walks it triggered."""
        change = chain.linker.set_item_read_groups(100, [1])

        assert change.added == [1]
        assert [report.updated for report in change.cascades] == [[101, 102]]
        assert change.cascade_failures == []

        change = chain.linker.set_item_read_groups(100, [])
        assert change.removed == [1]
        assert [report.group_ids for report in change.cascades] == [[1]]
        assert chain.linker.get_item_read_group_ids(102) == []

    def test_write_surfaces_partial_failure(self, chain: GroupAccess, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a failing descendant shows up in the write's return value."""
        original = chain.linker.add_item_read_group

        def flaky(item_id: int, group_id: int, cascade: bool = True) -> bool:
            if item_id == 101:
                raise InvalidInputError("store rejected write")
            return original(item_id, group_id, cascade=cascade)

        monkeypatch.setattr(chain.linker, "add_item_read_group", flaky)
        change = chain.linker.set_item_read_groups(100, [1])

        assert change.added == [1]
        assert chain.linker.get_item_read_group_ids(100) == [1]
        assert change.cascade_failures == ["Item 101: store rejected write"]
        with pytest.raises(CascadeFailure):
            change.cascades[0].raise_for_failures()

    def test_node_limit(self, make_access: Callable[..., GroupAccess], content: InMemoryContentStore) -> None:
        """Test the walk stops at max_cascade_nodes."""
        access = make_access(access_strategy="propagate", propagate_enabled=True, max_cascade_nodes=1)
        access.groups.create_group("Staff")
        content.add_item(100)
        content.add_item(101, parent_id=100)
        content.add_item(102, parent_id=100)

        report = access.propagation.propagate_add(100, 1)

        assert report.visited == 1
        assert report.updated == [101]
        assert report.failures == ["Stopped after 1 descendants"]


class TestPropagateStrategy:
    """Tests for PropagateStrategy."""

    def test_listing_after_propagation(self, chain: GroupAccess) -> None:
        """Test listings hide propagated items from non-members."""
        chain.linker.set_item_read_groups(100, [1])

        request = chain.request(40)
        assert isinstance(request, PropagateStrategy)
        assert request.query(ItemQuery()) == [103]
        assert chain.request(10).query(ItemQuery()) == [100, 101, 102, 103]

    def test_own_groups_only(self, chain: GroupAccess, content: InMemoryContentStore) -> None:
        """Test the content tree is not walked: unpropagated children stay visible."""
        content.set_item_terms(100, [1])
        request = chain.request(40)
        assert request.query(ItemQuery()) == [101, 102, 103]
        assert request.is_readable(101)
        assert not request.is_readable(100)

    def test_subgroup_member(self, chain: GroupAccess) -> None:
        """Test members of descendant groups pass the predicate."""
        chain.groups.create_group("Interns", parent=1, users=[30])
        chain.linker.set_item_read_groups(100, [1])
        assert chain.request(30).query(ItemQuery(post_types=["post", "page"])) == [100, 101, 102]

    def test_dangling_group_ignored(self, chain: GroupAccess, content: InMemoryContentStore) -> None:
        """Test edges to deleted groups do not hide items."""
        content.set_item_terms(101, [77])
        assert chain.request(0).query(ItemQuery(include_ids=[101])) == [101]

    def test_read_policies_applied(self, chain: GroupAccess) -> None:
        """Test read policies narrow propagate listings like can_read."""
        chain.linker.set_item_read_groups(100, [1])
        chain.resolver.add_read_policy(lambda item_id, user_id: item_id not in (102, 103))

        request = chain.request(10)
        assert request.query(ItemQuery()) == [100, 101]
        assert not request.is_readable(102)
        assert not request.is_readable(103)
        assert chain.request(40).query(ItemQuery(post_types=["attachment"])) == []
        assert not chain.can_read(103, 40)
