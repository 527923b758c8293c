"""GroupAccess: the composition root of the access subsystem.

Wires the group store, membership resolver, content-group linker, access
resolver, bulk strategies and propagation engine around two collaborator
stores and one ``AccessConfig``. Nothing here is process-global: build one
``GroupAccess`` per datastore and pass it where it is needed.

Usage::

    from contextgroups import AccessConfig, GroupAccess, ItemQuery
    from contextgroups.memory import InMemoryContentStore, InMemoryGroupTree

    content = InMemoryContentStore()
    content.add_item(100)
    access = GroupAccess(InMemoryGroupTree(), content, AccessConfig())
    staff = access.groups.create_group("Staff", users=[10, 20])
    access.linker.set_item_read_groups(100, [staff])

    access.can_read(100, 10)               # True
    access.request(99).query(ItemQuery())  # [] (user 99 is not in Staff)
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .access.closure import ReadSetBuilder
from .access.linker import ContentGroupLinker
from .access.marking import TitleMarker
from .access.propagation import PropagationEngine
from .access.resolver import AccessResolver
from .access.strategies import AccessStrategy, get_strategy_class
from .capabilities import CapabilityChecker, no_capabilities
from .config import AccessConfig, AccessStrategyName, load_access_config_from_env
from .events import AccessChangeListener, EventDispatcher
from .groups.membership import MembershipResolver
from .groups.store import GroupStore
from .interfaces import ContentStore, GroupTreeStore
from .models import Group

logger = logging.getLogger(__name__)


class GroupAccess:
    """Group-based access control over a content repository.

    Args:
        group_tree: Group tree collaborator (nodes + option table).
        content: Content store collaborator.
        config: Access configuration; defaults to ``AccessConfig()``.
        capabilities: ``(user_id, capability) -> bool``; no user holds any
            capability when omitted.
        dispatcher: Event dispatcher to share with other components.
        listeners: Extra listeners subscribed to every event.
    """

    def __init__(
        self,
        group_tree: GroupTreeStore,
        content: ContentStore,
        config: Optional[AccessConfig] = None,
        capabilities: Optional[CapabilityChecker] = None,
        dispatcher: Optional[EventDispatcher] = None,
        listeners: Iterable[AccessChangeListener] = (),
    ) -> None:
        self.config = config or AccessConfig()
        self.content = content
        self.capabilities = capabilities or no_capabilities
        self.dispatcher = dispatcher or EventDispatcher()

        self.groups = GroupStore(group_tree, self.config, self.dispatcher)
        self.membership = MembershipResolver(self.groups)
        self.linker = ContentGroupLinker(content, self.groups, self.config, self.dispatcher)
        self.groups.add_delete_cascade(self.linker.remove_group_from_items)

        self.resolver = AccessResolver(self.config, content, self.membership, self.linker, self.capabilities)
        self.read_sets = ReadSetBuilder(self.config, content, self.groups, self.membership, self.capabilities)
        self.marker = TitleMarker(self.config, self.linker)
        self.propagation = PropagationEngine(self.config, content, self.linker)
        self.strategy_class = get_strategy_class(self.config.access_strategy)

        if self.config.propagate_enabled:
            self.dispatcher.subscribe(self.propagation, PropagationEngine.EVENTS)
        for listener in listeners:
            self.dispatcher.subscribe(listener)

        logger.debug(
            "Group access ready (strategy=%s, propagate=%s)",
            self.config.access_strategy.value,
            self.config.propagate_enabled,
        )

    @classmethod
    def from_env(
        cls,
        group_tree: GroupTreeStore,
        content: ContentStore,
        capabilities: Optional[CapabilityChecker] = None,
    ) -> "GroupAccess":
        """Build with configuration read from the environment."""
        return cls(group_tree, content, load_access_config_from_env(), capabilities)

    @property
    def strategy_name(self) -> AccessStrategyName:
        return self.config.access_strategy

    def request(self, user_id: int) -> AccessStrategy:
        """Return the active strategy bound to ``user_id`` for one request."""
        return self.strategy_class(
            user_id,
            self.config,
            self.content,
            self.resolver,
            self.read_sets,
            self.marker,
        )

    def subscribe(self, listener: AccessChangeListener, names: Optional[Iterable[str]] = None) -> None:
        self.dispatcher.subscribe(listener, names)

    # ── Decisions ───────────────────────────────────────

    def can_read(self, item_id: int, user_id: int, check_hierarchy: bool = True) -> bool:
        return self.resolver.can_read(item_id, user_id, check_hierarchy)

    def can_edit(self, item_id: int, user_id: int, check_hierarchy: bool = True) -> bool:
        return self.resolver.can_edit(item_id, user_id, check_hierarchy)

    # ── Lookups ─────────────────────────────────────────

    def get_user_groups(self, user_id: int, include_ancestors: bool = False) -> list[Group]:
        return self.membership.get_user_groups(user_id, include_ancestors)

    def get_not_user_groups(self, user_id: int) -> list[Group]:
        return self.membership.get_not_user_groups(user_id)

    def get_item_read_groups(self, item_id: int) -> list[Group]:
        return self.linker.get_item_read_groups(item_id)

    def get_item_edit_groups(self, item_id: int) -> list[Group]:
        return self.linker.get_item_edit_groups(item_id)

    def __repr__(self) -> str:
        return f"GroupAccess(strategy={self.config.access_strategy.value})"


__all__ = ["GroupAccess"]
