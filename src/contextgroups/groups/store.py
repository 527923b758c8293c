"""Group Store: CRUD, hierarchy and membership storage over the group tree.

Groups are tree nodes held by a ``GroupTreeStore`` collaborator. Their
parameters (``users``, ``is_edit_group``, ``invisible`` and any registered
extras) live in the collaborator's option table and are attached to the
node when it is hydrated into a ``Group``.

``get_groups`` runs as a fixed sequence of steps:

1. fetch raw nodes (``parent`` / ``include`` narrowing)
2. hydrate parameters
3. membership filters (``user_id`` / ``not_user_id``)
4. boolean parameter filters (``invisible`` / ``is_edit_group``)
5. shape the result (``fields``)
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Iterable, Optional, Union

from ..config import AccessConfig
from ..events import AccessEvents, ChangeEvent, EventDispatcher
from ..exceptions import GroupNotFoundError, HierarchyDepthError, InvalidInputError
from ..interfaces import GroupTreeStore
from ..models import Group, GroupFields, GroupNode, GroupQuery
from ..utils import coerce_id, coerce_ids
from .params import GroupParameterRegistry

logger = logging.getLogger(__name__)

DeleteCascade = Callable[[Group], None]
GroupsResult = Union[list[Group], list[int], dict[int, int], list[str], int]

_CORE_FIELDS = ("users", "is_edit_group", "invisible")


class GroupStore:
    """CRUD and hierarchy queries over the group tree.

    Args:
        tree: Group tree collaborator (nodes + option table).
        config: Access configuration (walk bounds, option prefix).
        dispatcher: Receives ``group.*`` change events.
        params: Parameter registry; built from ``tree`` when omitted.
    """

    def __init__(
        self,
        tree: GroupTreeStore,
        config: AccessConfig,
        dispatcher: Optional[EventDispatcher] = None,
        params: Optional[GroupParameterRegistry] = None,
    ) -> None:
        self.tree = tree
        self.config = config
        self.dispatcher = dispatcher or EventDispatcher()
        self.params = params or GroupParameterRegistry(tree, config.meta_prefix)
        self._delete_cascades: list[DeleteCascade] = []

    def _emit(self, name: str, group_id: int, user_ids: Iterable[int] = ()) -> None:
        self.dispatcher.emit(ChangeEvent(name=name, group_id=group_id, user_ids=list(user_ids)))

    def _check_params(self, params: dict[str, Any]) -> None:
        unknown = sorted(key for key in params if key not in self.params)
        if unknown:
            raise InvalidInputError(f"Unknown group parameter(s): {', '.join(unknown)}", keys=unknown)

    def _set_params(self, group_id: int, params: dict[str, Any]) -> None:
        for key, value in params.items():
            self.params.set_value(group_id, key, value)

    # ── CRUD ────────────────────────────────────────────

    def create_group(self, name: str, parent: Any = 0, **params: Any) -> int:
        """Create a group and return its id.

        Raises:
            InvalidInputError: ``name`` is empty.
            GroupNotFoundError: ``parent`` is set but does not exist.
        """
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Group name must not be empty")
        parent_id = coerce_id(parent) or 0
        if parent_id and not self.group_exists(parent_id):
            raise GroupNotFoundError(parent_id)

        self._check_params(params)
        group_id = self.tree.create_term(name, parent_id)
        users = params.pop("users", None)
        self._set_params(group_id, params)
        if users is not None:
            self.params.set_value(group_id, "users", users)

        logger.debug("Created group %s '%s' (parent=%s)", group_id, name, parent_id)
        self._emit(AccessEvents.GROUP_CREATED, group_id)
        if users:
            added = self.get_users(group_id)
            if added:
                self._emit(AccessEvents.GROUP_USERS_ADDED, group_id, added)
        return group_id

    def group_exists(self, group_id: int) -> bool:
        return self.tree.get_term(group_id) is not None

    def get_group(self, group_id: int) -> Group:
        """Return the hydrated group.

        Raises:
            GroupNotFoundError: No node with this id.
        """
        node = self.tree.get_term(group_id)
        if node is None:
            raise GroupNotFoundError(group_id)
        return self._hydrate(node)

    def get_group_name(self, group_id: int) -> Optional[str]:
        node = self.tree.get_term(group_id)
        return node.name if node is not None else None

    def update_group(self, group_id: int, name: Optional[str] = None, parent: Any = None, **params: Any) -> Group:
        """Rename, move and/or set parameters of a group.

        ``users`` is applied through ``set_users`` so membership events fire.

        Raises:
            GroupNotFoundError: The group or the new parent does not exist.
            InvalidInputError: Empty name, or the group would become its own parent.
        """
        if not self.group_exists(group_id):
            raise GroupNotFoundError(group_id)
        if name is not None and not name.strip():
            raise InvalidInputError("Group name must not be empty")

        parent_id = None
        if parent is not None:
            parent_id = coerce_id(parent) or 0
            if parent_id == group_id:
                raise InvalidInputError(f"Group {group_id} cannot be its own parent", group_id=group_id)
            if parent_id and not self.group_exists(parent_id):
                raise GroupNotFoundError(parent_id)

        self._check_params(params)
        if name is not None or parent_id is not None:
            self.tree.update_term(group_id, name=name.strip() if name else None, parent=parent_id)

        users = params.pop("users", None)
        self._set_params(group_id, params)
        if users is not None:
            self.set_users(group_id, users)

        self._emit(AccessEvents.GROUP_UPDATED, group_id)
        return self.get_group(group_id)

    def add_delete_cascade(self, callback: DeleteCascade) -> None:
        """Register a callback run with the doomed group before it is deleted."""
        self._delete_cascades.append(callback)

    def delete_group(self, group_id: int) -> None:
        """Delete a group with its parameters and every reference to it.

        Registered delete cascades run first, in registration order.

        Raises:
            GroupNotFoundError: No node with this id.
        """
        group = self.get_group(group_id)
        for cascade in self._delete_cascades:
            cascade(group)

        self.params.delete_all(group_id)
        self.tree.delete_term(group_id)
        logger.debug("Deleted group %s '%s'", group_id, group.name)
        self._emit(AccessEvents.GROUP_DELETED, group_id)

    def remove_all_meta(self) -> None:
        """Delete the stored parameters of every group."""
        for node in self.tree.list_terms():
            self.params.delete_all(node.id)

    # ── Queries ─────────────────────────────────────────

    def get_groups(self, query: Optional[GroupQuery] = None, **filters: Any) -> GroupsResult:
        """Return groups matching ``query`` (or keyword filters) in the requested shape.

        Example::

            store.get_groups(user_id=10)                          # [Group, ...]
            store.get_groups(is_edit_group=True, fields="ids")    # [3, 7]
            store.get_groups(fields=GroupFields.ID_PARENT)        # {1: 0, 2: 1}
            store.get_groups(not_user_id=10, fields="count")      # 4
        """
        if query is None:
            query = GroupQuery(**filters)
        elif filters:
            query = query.model_copy(update=filters)

        nodes = self._fetch_nodes(query)
        groups = [self._hydrate(node) for node in nodes]
        groups = self._filter_membership(groups, query)
        groups = self._filter_flags(groups, query)
        return self._shape(groups, GroupFields(query.fields))

    def get_group_ids(self) -> list[int]:
        return [node.id for node in self.tree.list_terms()]

    def _fetch_nodes(self, query: GroupQuery) -> list[GroupNode]:
        nodes = self.tree.list_terms()
        if query.parent is not None:
            nodes = [node for node in nodes if node.parent == query.parent]
        if query.include is not None:
            wanted = set(query.include)
            nodes = [node for node in nodes if node.id in wanted]
        return nodes

    def _hydrate(self, node: GroupNode) -> Group:
        values = self.params.values(node.id)
        extra = {key: value for key, value in values.items() if key not in _CORE_FIELDS}
        return Group(
            id=node.id,
            name=node.name,
            parent=node.parent,
            users=set(values["users"]),
            is_edit_group=values["is_edit_group"],
            invisible=values["invisible"],
            meta=extra,
        )

    @staticmethod
    def _filter_membership(groups: list[Group], query: GroupQuery) -> list[Group]:
        if query.user_id is not None:
            groups = [g for g in groups if g.has_user(query.user_id)]
        if query.not_user_id is not None:
            groups = [g for g in groups if not g.has_user(query.not_user_id)]
        return groups

    def _filter_flags(self, groups: list[Group], query: GroupQuery) -> list[Group]:
        for key, wanted in query.bool_filters().items():
            parameter = self.params.get(key)
            groups = [g for g in groups if parameter.matches(getattr(g, key), wanted)]
        return groups

    @staticmethod
    def _shape(groups: list[Group], fields: GroupFields) -> GroupsResult:
        if fields == GroupFields.IDS:
            return [g.id for g in groups]
        if fields == GroupFields.ID_PARENT:
            return {g.id: g.parent for g in groups}
        if fields == GroupFields.NAMES:
            return [g.name for g in groups]
        if fields == GroupFields.COUNT:
            return len(groups)
        return groups

    # ── Hierarchy ───────────────────────────────────────

    def get_children(self, group_id: int) -> list[int]:
        return self.tree.get_children(group_id)

    def get_ancestors(self, group_id: int) -> list[int]:
        """Return ancestor ids, nearest first.

        A parent reference to a missing node ends the walk.

        Raises:
            GroupNotFoundError: ``group_id`` does not exist.
            HierarchyDepthError: The walk revisits a node or exceeds
                ``max_hierarchy_depth`` steps.
        """
        node = self.tree.get_term(group_id)
        if node is None:
            raise GroupNotFoundError(group_id)

        ancestors: list[int] = []
        seen = {group_id}
        while node.parent:
            if node.parent in seen:
                raise HierarchyDepthError(
                    f"Cycle in group hierarchy at group {node.parent}", group_id=group_id
                )
            if len(ancestors) >= self.config.max_hierarchy_depth:
                raise HierarchyDepthError(
                    f"Group hierarchy deeper than {self.config.max_hierarchy_depth}", group_id=group_id
                )
            parent = self.tree.get_term(node.parent)
            if parent is None:
                break
            ancestors.append(parent.id)
            seen.add(parent.id)
            node = parent
        return ancestors

    def get_descendants(self, group_id: int) -> list[int]:
        """Return descendant ids, breadth first.

        Raises:
            GroupNotFoundError: ``group_id`` does not exist.
            HierarchyDepthError: More than ``max_cascade_nodes`` descendants.
        """
        if not self.group_exists(group_id):
            raise GroupNotFoundError(group_id)

        found: list[int] = []
        seen = {group_id}
        queue = deque([group_id])
        while queue:
            for child in self.tree.get_children(queue.popleft()):
                if child in seen:
                    continue
                if len(found) >= self.config.max_cascade_nodes:
                    raise HierarchyDepthError(
                        f"Group {group_id} has more than {self.config.max_cascade_nodes} descendants",
                        group_id=group_id,
                    )
                seen.add(child)
                found.append(child)
                queue.append(child)
        return found

    # ── Users ───────────────────────────────────────────

    def get_users(self, group_id: int) -> list[int]:
        return self.params.get_value(group_id, "users")

    def add_users(self, group_id: int, user_ids: Any) -> list[int]:
        """Add users to a group; returns the ids that were not members yet."""
        if not self.group_exists(group_id):
            raise GroupNotFoundError(group_id)
        current = self.get_users(group_id)
        added = [user_id for user_id in coerce_ids(user_ids) if user_id not in current]
        if added:
            self.params.set_value(group_id, "users", current + added)
            self._emit(AccessEvents.GROUP_USERS_ADDED, group_id, added)
        return added

    def remove_users(self, group_id: int, user_ids: Any) -> list[int]:
        """Remove users from a group; returns the ids that were members."""
        if not self.group_exists(group_id):
            raise GroupNotFoundError(group_id)
        current = self.get_users(group_id)
        doomed = set(coerce_ids(user_ids))
        removed = [user_id for user_id in current if user_id in doomed]
        if removed:
            self.params.set_value(group_id, "users", [u for u in current if u not in doomed])
            self._emit(AccessEvents.GROUP_USERS_REMOVED, group_id, removed)
        return removed

    def set_users(self, group_id: int, user_ids: Any) -> tuple[list[int], list[int]]:
        """Replace the member list; returns ``(added, removed)``."""
        if not self.group_exists(group_id):
            raise GroupNotFoundError(group_id)
        current = self.get_users(group_id)
        wanted = coerce_ids(user_ids)
        added = [u for u in wanted if u not in current]
        removed = [u for u in current if u not in wanted]
        if added or removed:
            self.params.set_value(group_id, "users", wanted)
        if added:
            self._emit(AccessEvents.GROUP_USERS_ADDED, group_id, added)
        if removed:
            self._emit(AccessEvents.GROUP_USERS_REMOVED, group_id, removed)
        return added, removed

    def __repr__(self) -> str:
        return f"GroupStore(tree={type(self.tree).__name__})"


__all__ = ["DeleteCascade", "GroupStore", "GroupsResult"]
