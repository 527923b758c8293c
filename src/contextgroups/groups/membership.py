"""Membership Resolver: which groups a user is (or is not) in.

Membership is stored directly on groups; transitive membership is always
computed here. Anonymous users (id 0) are never members of anything.

Ancestor expansion returns a plain list that is NOT de-duplicated: when two
of a user's groups share ancestors, those ancestors appear once per chain.
Consumers that need a set (query filters, access checks) use
``get_user_group_id_set``.
"""

from __future__ import annotations

import logging
from typing import Any

from ..exceptions import InvalidInputError
from ..models import Group, GroupFields, GroupQuery
from ..utils import coerce_id, coerce_ids
from .store import GroupStore

logger = logging.getLogger(__name__)


class MembershipResolver:
    """Direct and ancestor-inclusive group membership of users."""

    def __init__(self, store: GroupStore) -> None:
        self.store = store

    def get_user_groups(self, user_id: int, include_ancestors: bool = False) -> list[Group]:
        """Return the user's groups.

        With ``include_ancestors``, each member group is preceded by its
        ancestors (nearest first), in membership-fetch order.
        """
        if not user_id:
            return []
        direct = self.store.get_groups(GroupQuery(user_id=user_id))
        if not include_ancestors:
            return direct

        groups: list[Group] = []
        for group in direct:
            groups.extend(self.store.get_group(ancestor) for ancestor in self.store.get_ancestors(group.id))
            groups.append(group)
        return groups

    def get_user_group_ids(self, user_id: int, include_ancestors: bool = False) -> list[int]:
        if not user_id:
            return []
        direct = self.store.get_groups(GroupQuery(user_id=user_id, fields=GroupFields.IDS))
        if not include_ancestors:
            return direct

        ids: list[int] = []
        for group_id in direct:
            ids.extend(self.store.get_ancestors(group_id))
            ids.append(group_id)
        return ids

    def get_user_group_id_set(self, user_id: int, include_ancestors: bool = True) -> frozenset[int]:
        """De-duplicated group ids, for filters and access checks."""
        return frozenset(self.get_user_group_ids(user_id, include_ancestors))

    def get_not_user_groups(self, user_id: int) -> list[Group]:
        """All groups the user is not a direct member of.

        Membership of a subgroup does not count as membership of its parent.
        """
        return self.store.get_groups(GroupQuery(not_user_id=user_id or 0))

    def user_has_group(self, user_id: int) -> bool:
        return bool(self.get_user_group_ids(user_id))

    def user_in_group(self, group_id: int, user_id: int, check_hierarchy: bool = True) -> bool:
        """Whether the user is a member of ``group_id``.

        With ``check_hierarchy``, membership of any descendant group counts.
        """
        if not user_id:
            return False
        return group_id in self.get_user_group_id_set(user_id, include_ancestors=check_hierarchy)

    # ── Updates ─────────────────────────────────────────

    def update_user_groups(self, user_id: Any, group_ids: Any) -> tuple[list[int], list[int]]:
        """Make ``group_ids`` the user's direct groups; returns ``(added, removed)``.

        Malformed group ids are dropped.

        Raises:
            InvalidInputError: ``user_id`` is not a positive integer.
        """
        uid = coerce_id(user_id)
        if uid is None:
            raise InvalidInputError(f"Invalid user id: {user_id!r}", user_id=user_id)

        wanted = coerce_ids(group_ids)
        current = self.get_user_group_ids(uid)
        removed = [group_id for group_id in current if group_id not in wanted]
        added = [group_id for group_id in wanted if group_id not in current]

        for group_id in removed:
            self.store.remove_users(group_id, [uid])
        for group_id in added:
            self.store.add_users(group_id, [uid])

        logger.debug("User %s groups updated: +%s -%s", uid, added, removed, extra={"user_id": uid})
        return added, removed

    def remove_user_groups(self, user_id: Any) -> list[int]:
        """Remove the user from every group; returns the group ids left."""
        uid = coerce_id(user_id)
        if uid is None:
            return []
        current = self.get_user_group_ids(uid)
        for group_id in current:
            self.store.remove_users(group_id, [uid])
        return current


__all__ = ["MembershipResolver"]
