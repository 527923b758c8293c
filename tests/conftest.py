"""Shared fixtures: a GroupAccess wired to the in-memory stores."""

from __future__ import annotations

from typing import Callable

import pytest

from contextgroups import AccessConfig, ChangeEvent, GroupAccess
from contextgroups.audit import AuditLogListener
from contextgroups.capabilities import RoleCapabilityChecker
from contextgroups.events import AccessChangeListener
from contextgroups.memory import InMemoryContentStore, InMemoryGroupTree

ADMIN_ID = 1000


class Recorder(AccessChangeListener):
    """Listener that keeps every event it sees."""

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []

    def on_access_change(self, event: ChangeEvent) -> None:
        self.events.append(event)

    @property
    def names(self) -> list[str]:
        return [event.name for event in self.events]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def tree() -> InMemoryGroupTree:
    return InMemoryGroupTree()


@pytest.fixture
def content() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def capabilities() -> RoleCapabilityChecker:
    return RoleCapabilityChecker({ADMIN_ID: ["administrator"]})


@pytest.fixture
def make_access(
    tree: InMemoryGroupTree,
    content: InMemoryContentStore,
    capabilities: RoleCapabilityChecker,
) -> Callable[..., GroupAccess]:
    """Factory building a GroupAccess over the shared stores with config overrides."""

    def factory(**overrides) -> GroupAccess:
        return GroupAccess(tree, content, AccessConfig(**overrides), capabilities=capabilities)

    return factory


@pytest.fixture
def access(make_access: Callable[..., GroupAccess]) -> GroupAccess:
    return make_access()


@pytest.fixture
def audit(access: GroupAccess) -> AuditLogListener:
    listener = AuditLogListener(access.groups.get_group_name, access.linker.get_item_read_group_ids)
    access.subscribe(listener)
    return listener


@pytest.fixture
def staff_site(tree: InMemoryGroupTree, content: InMemoryContentStore, access: GroupAccess) -> GroupAccess:
    """Groups and content used across the access tests.

    Groups:
        1 Staff {10, 20}
        2 Interns (parent Staff) {30}
        3 Board {40}
        4 Editors (edit group) {50}

    Items:
        100 read {Staff}
          101 (groupless)
            102 (groupless)
          103 read {Board}
        200 (groupless, public)
          201 read {Interns}
        300 attachment, parent 100 (not a read type)
    """
    tree.add_term(1, "Staff")
    tree.add_term(2, "Interns", parent=1)
    tree.add_term(3, "Board")
    tree.add_term(4, "Editors")
    access.groups.set_users(1, [10, 20])
    access.groups.set_users(2, [30])
    access.groups.set_users(3, [40])
    access.groups.set_users(4, [50])
    access.groups.update_group(4, is_edit_group=True)

    content.add_item(100, title="Handbook")
    content.add_item(101, parent_id=100, title="Chapter")
    content.add_item(102, parent_id=101, title="Section")
    content.add_item(103, parent_id=100, title="Board minutes")
    content.add_item(200, post_type="page", title="About")
    content.add_item(201, parent_id=200, post_type="page", title="Intern wiki")
    content.add_item(300, parent_id=100, post_type="attachment", title="Logo")

    content.set_item_terms(100, [1])
    content.set_item_terms(103, [3])
    content.set_item_terms(201, [2])
    return access
