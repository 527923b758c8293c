"""Content-Group Linker: read-group and edit-group assignment on items.

Read-groups are term edges between an item and its groups, kept by the
content store. Edit-groups are a single id list in item meta; they are not
term edges, have no reverse index and never follow the content tree.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, NamedTuple, Optional

from ..config import AccessConfig
from ..events import AccessEvents, ChangeEvent, EventDispatcher
from ..exceptions import HierarchyDepthError, ItemNotFoundError
from ..groups.store import GroupStore
from ..interfaces import ContentStore
from ..models import CascadeReport, Group, GroupQuery, ItemQuery
from ..utils import coerce_ids

logger = logging.getLogger(__name__)

ANY_TYPE = ["any"]


class ReadGroupChange(NamedTuple):
    """Outcome of a read-group write.

    ``cascades`` holds the reports of propagation walks the write triggered.
    A partly failed walk does not fail the write; callers check
    ``cascade_failures`` instead.
    """

    added: list[int]
    removed: list[int]
    cascades: list[CascadeReport]

    @property
    def cascade_failures(self) -> list[str]:
        return [failure for report in self.cascades for failure in report.failures]


class ContentGroupLinker:
    """Assign groups to content items and look them up again.

    Args:
        content: Content store collaborator.
        groups: Group store used to hydrate ids into ``Group`` objects.
        config: Access configuration (meta key, walk bounds).
        dispatcher: Receives ``item.*`` change events.
    """

    def __init__(
        self,
        content: ContentStore,
        groups: GroupStore,
        config: AccessConfig,
        dispatcher: Optional[EventDispatcher] = None,
    ) -> None:
        self.content = content
        self.groups = groups
        self.config = config
        self.dispatcher = dispatcher or groups.dispatcher

    def _emit(self, name: str, item_id: int, **fields: Any) -> ChangeEvent:
        event = ChangeEvent(name=name, item_id=item_id, **fields)
        self.dispatcher.emit(event)
        return event

    def _hydrate(self, group_ids: list[int], query: GroupQuery) -> list[Group]:
        if not group_ids:
            return []
        by_id = {group.id: group for group in self.groups.get_groups(query)}
        return [by_id[group_id] for group_id in group_ids if group_id in by_id]

    # ── Content tree ────────────────────────────────────

    def get_item_ancestors(self, item_id: int) -> list[int]:
        """Return content ancestor ids, nearest first.

        A parent reference to a missing item ends the walk.

        Raises:
            ItemNotFoundError: ``item_id`` does not exist.
            HierarchyDepthError: Cycle, or more than ``max_hierarchy_depth`` steps.
        """
        item = self.content.get_item(item_id)
        ancestors: list[int] = []
        seen = {item_id}
        while item.parent_id:
            if item.parent_id in seen:
                raise HierarchyDepthError(f"Cycle in content hierarchy at item {item.parent_id}", item_id=item_id)
            if len(ancestors) >= self.config.max_hierarchy_depth:
                raise HierarchyDepthError(
                    f"Content hierarchy deeper than {self.config.max_hierarchy_depth}", item_id=item_id
                )
            try:
                item = self.content.get_item(item.parent_id)
            except ItemNotFoundError:
                break
            ancestors.append(item.id)
            seen.add(item.id)
        return ancestors

    def get_item_descendants(self, item_id: int, post_types: Optional[list[str]] = None) -> list[int]:
        """Return descendant ids, breadth first.

        Raises:
            HierarchyDepthError: More than ``max_cascade_nodes`` descendants.
        """
        found: list[int] = []
        seen = {item_id}
        queue = deque([item_id])
        while queue:
            for child in self.content.get_children(queue.popleft(), post_types):
                if child in seen:
                    continue
                if len(found) >= self.config.max_cascade_nodes:
                    raise HierarchyDepthError(
                        f"Item {item_id} has more than {self.config.max_cascade_nodes} descendants",
                        item_id=item_id,
                    )
                seen.add(child)
                found.append(child)
                queue.append(child)
        return found

    # ── Read-groups ─────────────────────────────────────

    def get_item_read_group_ids(self, item_id: int) -> list[int]:
        """Raw read-group edges of an item."""
        return self.content.get_item_terms(item_id)

    def get_item_read_groups(self, item_id: int) -> list[Group]:
        """Read-groups of an item; edges to deleted groups are skipped."""
        group_ids = self.get_item_read_group_ids(item_id)
        return self._hydrate(group_ids, GroupQuery(include=group_ids))

    def set_item_read_groups(self, item_id: int, group_ids: Any, cascade: bool = True) -> ReadGroupChange:
        """Replace the read-groups of an item.

        Emits one ``item.readGroups.added`` per added group and a single
        ``item.readGroups.removed`` carrying the full removed set.
        ``cascade`` is copied onto the events.

        Returns:
            ``ReadGroupChange`` with the added and removed ids and the
            reports of any propagation the events triggered.
        """
        wanted = coerce_ids(group_ids)
        current = self.get_item_read_group_ids(item_id)
        added = [group_id for group_id in wanted if group_id not in current]
        removed = [group_id for group_id in current if group_id not in wanted]
        if not added and not removed:
            return ReadGroupChange([], [], [])

        self.content.set_item_terms(item_id, wanted)
        events = [
            self._emit(AccessEvents.ITEM_READ_GROUPS_ADDED, item_id, group_id=group_id, cascade=cascade)
            for group_id in added
        ]
        if removed:
            events.append(
                self._emit(AccessEvents.ITEM_READ_GROUPS_REMOVED, item_id, group_ids=removed, cascade=cascade)
            )
        return ReadGroupChange(added, removed, [report for event in events for report in event.reports])

    def add_item_read_group(self, item_id: int, group_id: Any, cascade: bool = True) -> bool:
        """Append one read-group; returns False when it was already assigned."""
        current = self.get_item_read_group_ids(item_id)
        change = self.set_item_read_groups(item_id, current + coerce_ids(group_id), cascade=cascade)
        return bool(change.added)

    def remove_item_read_groups(self, item_id: int, group_ids: Any = None, cascade: bool = True) -> list[int]:
        """Remove some (or, with ``group_ids=None``, all) read-groups of an item."""
        current = self.get_item_read_group_ids(item_id)
        if group_ids is None:
            keep: list[int] = []
        else:
            doomed = set(coerce_ids(group_ids))
            keep = [group_id for group_id in current if group_id not in doomed]
        return self.set_item_read_groups(item_id, keep, cascade=cascade).removed

    def item_has_group(self, item_id: int, check_hierarchy: bool = False) -> bool:
        """Whether the item (or, with ``check_hierarchy``, any content ancestor) has read-groups."""
        if self.get_item_read_group_ids(item_id):
            return True
        if check_hierarchy:
            return any(self.get_item_read_group_ids(ancestor) for ancestor in self.get_item_ancestors(item_id))
        return False

    def item_in_group(self, group_id: int, item_id: int, check_hierarchy: bool = True) -> bool:
        """Whether ``group_id`` is a read-group of the item or, with ``check_hierarchy``, of an ancestor."""
        if group_id in self.get_item_read_group_ids(item_id):
            return True
        if check_hierarchy:
            return any(group_id in self.get_item_read_group_ids(a) for a in self.get_item_ancestors(item_id))
        return False

    def find_items_by_read_group(self, group_id: int) -> list[int]:
        return self.content.query_items(ItemQuery(post_types=ANY_TYPE, terms_in=[group_id]))

    # ── Edit-groups ─────────────────────────────────────

    def get_item_edit_group_ids(self, item_id: int) -> list[int]:
        """Raw edit-group ids stored in item meta."""
        return coerce_ids(self.content.get_item_meta(item_id, self.config.edit_groups_meta, []) or [])

    def get_item_edit_groups(self, item_id: int) -> list[Group]:
        """Edit-groups of an item, resolved against one fetch of all edit-groups.

        Ids that no longer refer to an edit-group are skipped.
        """
        group_ids = self.get_item_edit_group_ids(item_id)
        return self._hydrate(group_ids, GroupQuery(is_edit_group=True))

    def set_item_edit_groups(self, item_id: int, group_ids: Any) -> tuple[list[int], list[int]]:
        """Replace the edit-groups of an item; returns ``(added, removed)``.

        One event per added or removed group is emitted before the new list
        is stored.
        """
        wanted = coerce_ids(group_ids)
        current = self.get_item_edit_group_ids(item_id)
        added = [group_id for group_id in wanted if group_id not in current]
        removed = [group_id for group_id in current if group_id not in wanted]

        for group_id in added:
            self._emit(AccessEvents.ITEM_EDIT_GROUPS_ADDED, item_id, group_id=group_id)
        for group_id in removed:
            self._emit(AccessEvents.ITEM_EDIT_GROUPS_REMOVED, item_id, group_id=group_id)

        self.content.set_item_meta(item_id, self.config.edit_groups_meta, wanted)
        return added, removed

    def remove_item_edit_groups(self, item_id: int) -> None:
        """Delete the edit-group meta value of an item."""
        self.content.delete_item_meta(item_id, self.config.edit_groups_meta)
        self._emit(AccessEvents.ITEM_EDIT_GROUPS_CLEARED, item_id)

    def find_items_with_edit_groups(self) -> list[int]:
        return self.content.query_items(ItemQuery(post_types=ANY_TYPE, meta_key=self.config.edit_groups_meta))

    def find_items_by_edit_group(self, group_id: int) -> list[int]:
        """Scan every item with edit-groups for ``group_id``."""
        return [
            item_id
            for item_id in self.find_items_with_edit_groups()
            if group_id in self.get_item_edit_group_ids(item_id)
        ]

    # ── Cascades ────────────────────────────────────────

    def remove_group_from_items(self, group: Group) -> None:
        """Drop every read-group edge and edit-group reference to ``group``.

        Registered as a delete cascade of the group store. Read-group removal
        is not propagated: every item holding the edge is visited anyway.
        """
        read_items = self.find_items_by_read_group(group.id)
        for item_id in read_items:
            self.remove_item_read_groups(item_id, [group.id], cascade=False)

        edit_items = self.find_items_by_edit_group(group.id)
        for item_id in edit_items:
            remaining = [g for g in self.get_item_edit_group_ids(item_id) if g != group.id]
            self.set_item_edit_groups(item_id, remaining)

        logger.debug(
            "Removed group %s from %d read and %d edit assignments",
            group.id,
            len(read_items),
            len(edit_items),
        )


__all__ = ["ContentGroupLinker", "ReadGroupChange"]
