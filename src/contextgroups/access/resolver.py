"""Access Resolver: single-item read and edit decisions.

Read access walks two hierarchies. Group ancestry: a read-group grants its
own members and the members of every descendant group. Content ancestry:
how read restrictions compose up the content tree depends on
``AccessConfig.parent_inheritance``:

- ``nearest``: an item with read-groups of its own is decided by them
  alone; a groupless item takes its parent's decision.
- ``conjunctive``: the item and every content ancestor must grant access.

Edit access never follows the content tree.

Failure policy: a ``ConfigurationError`` raised while deciding (cyclic or
too-deep hierarchy) is logged and turned into a denial.
"""

from __future__ import annotations

from typing import Callable, Optional

from ..capabilities import Capabilities, CapabilityChecker, no_capabilities
from ..config import AccessConfig, ParentInheritance
from ..exceptions import ConfigurationError, HierarchyDepthError, ItemNotFoundError
from ..groups.membership import MembershipResolver
from ..interfaces import ContentStore
from ..logging import get_access_logger
from .linker import ContentGroupLinker

AccessPolicy = Callable[[int, int], bool]
"""Narrowing policy ``(item_id, user_id) -> allowed``."""


class AccessResolver:
    """Decide whether a user may read or edit one content item.

    Args:
        config: Access configuration.
        content: Content store collaborator.
        membership: Source of the user's ancestor-inclusive group set.
        linker: Source of item read-groups and edit-groups.
        capabilities: ``(user_id, capability) -> bool``.
    """

    def __init__(
        self,
        config: AccessConfig,
        content: ContentStore,
        membership: MembershipResolver,
        linker: ContentGroupLinker,
        capabilities: Optional[CapabilityChecker] = None,
    ) -> None:
        self.config = config
        self.content = content
        self.membership = membership
        self.linker = linker
        self.capabilities = capabilities or no_capabilities
        self._read_policies: list[AccessPolicy] = []
        self._edit_policies: list[AccessPolicy] = []

    # ── Extension points ────────────────────────────────

    def add_read_policy(self, policy: AccessPolicy) -> None:
        """Register a policy that can only narrow a granted read."""
        self._read_policies.append(policy)

    def add_edit_policy(self, policy: AccessPolicy) -> None:
        """Register a policy that can only narrow a granted edit."""
        self._edit_policies.append(policy)

    @property
    def has_read_policies(self) -> bool:
        return bool(self._read_policies)

    def read_policies_allow(self, item_id: int, user_id: int) -> bool:
        """Whether every registered read policy lets ``user_id`` read ``item_id``."""
        return all(policy(item_id, user_id) for policy in self._read_policies)

    def has_capability(self, user_id: int, capability: str) -> bool:
        return bool(user_id) and self.capabilities(user_id, capability)

    def ignores_groups(self, user_id: int) -> bool:
        return self.has_capability(user_id, Capabilities.IGNORE_GROUPS)

    def user_group_set(self, user_id: int, check_hierarchy: bool = True) -> frozenset[int]:
        """Groups whose read or edit grants reach ``user_id``.

        With ``check_hierarchy`` this is the user's groups plus all their
        ancestors: a group grants the members of its descendant groups.
        """
        if not user_id:
            return frozenset()
        return self.membership.get_user_group_id_set(user_id, include_ancestors=check_hierarchy)

    # ── Read ────────────────────────────────────────────

    def can_read(self, item_id: int, user_id: int, check_hierarchy: bool = True) -> bool:
        """Whether ``user_id`` may read ``item_id``.

        Checks in order:
        1. ``ignore_groups`` capability (always allowed)
        2. item type not governed by groups (allowed)
        3. item without read-groups (allowed, subject to its ancestors)
        4. anonymous user on a restricted item (denied)
        5. membership of a read-group or of one of its descendant groups
        6. content ancestors, per ``parent_inheritance``
        7. registered read policies

        Args:
            item_id: Content item id.
            user_id: User id; 0 is anonymous.
            check_hierarchy: Whether membership of descendant groups counts.

        Returns:
            True if access is granted.

        Raises:
            ItemNotFoundError: ``item_id`` does not exist.

        Example::

            # Group 1 "Staff" has users {10, 20}; item 100 has read-group {1}
            resolver.can_read(100, 10)  # True
            resolver.can_read(100, 99)  # False
            resolver.can_read(100, 0)   # False
        """
        if self.ignores_groups(user_id):
            return True

        log = get_access_logger(__name__, user_id=user_id, item_id=item_id)
        try:
            allowed = self._read_decision(item_id, user_id, check_hierarchy)
        except ConfigurationError as e:
            log.error("Read check failed closed: %s", e.message)
            return False

        if allowed:
            allowed = self.read_policies_allow(item_id, user_id)
        if not allowed:
            log.debug("Read denied")
        return allowed

    def _read_decision(self, item_id: int, user_id: int, check_hierarchy: bool) -> bool:
        item = self.content.get_item(item_id)
        user_groups: Optional[frozenset[int]] = None
        seen = {item.id}
        moves = 0

        while True:
            if not self.config.is_read_post_type(item.type):
                return True

            read_groups = [group.id for group in self.linker.get_item_read_groups(item.id)]
            if read_groups:
                if not user_id:
                    return False
                if user_groups is None:
                    user_groups = self.user_group_set(user_id, check_hierarchy)
                if user_groups.isdisjoint(read_groups):
                    return False
                if self.config.parent_inheritance == ParentInheritance.NEAREST:
                    return True

            if not item.parent_id:
                return True
            if item.parent_id in seen:
                raise HierarchyDepthError(f"Cycle in content hierarchy at item {item.parent_id}", item_id=item_id)
            if moves >= self.config.max_hierarchy_depth:
                raise HierarchyDepthError(
                    f"Content hierarchy deeper than {self.config.max_hierarchy_depth}", item_id=item_id
                )
            moves += 1
            try:
                item = self.content.get_item(item.parent_id)
            except ItemNotFoundError:
                # Dangling parent reference: treat as a root item
                return True
            seen.add(item.id)

    # ── Edit ────────────────────────────────────────────

    def can_edit(self, item_id: int, user_id: int, check_hierarchy: bool = True) -> bool:
        """Whether ``user_id`` may edit ``item_id`` through its edit-groups.

        Edit rights come from the item's own edit-groups only; the content
        ancestry is never consulted. An item without edit-groups is editable
        only by users with the ``ignore_groups`` capability.

        Raises:
            ItemNotFoundError: ``item_id`` does not exist.
        """
        if self.ignores_groups(user_id):
            return True

        item = self.content.get_item(item_id)
        if not self.config.is_edit_post_type(item.type) or not user_id:
            return False

        log = get_access_logger(__name__, user_id=user_id, item_id=item_id)
        try:
            edit_groups = [group.id for group in self.linker.get_item_edit_groups(item_id)]
            allowed = bool(edit_groups) and not self.user_group_set(user_id, check_hierarchy).isdisjoint(edit_groups)
        except ConfigurationError as e:
            log.error("Edit check failed closed: %s", e.message)
            return False

        if allowed:
            allowed = all(policy(item_id, user_id) for policy in self._edit_policies)
        if not allowed:
            log.debug("Edit denied")
        return allowed

    def __repr__(self) -> str:
        return f"AccessResolver(parent_inheritance={self.config.parent_inheritance.value})"


__all__ = ["AccessPolicy", "AccessResolver"]
