"""History log of access-relevant changes.

``AuditLogListener`` subscribes to the ``EventDispatcher`` and turns every
``ChangeEvent`` into one or more human-readable ``AuditEntry`` records
about the affected group, user or content item. Entries are kept in memory
and logged at INFO.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import BaseModel, Field

from .events import AccessChangeListener, AccessEvents, ChangeEvent

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    """One history line."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    subject_type: str
    subject_id: int
    message: str
    event: str


class AuditLogListener(AccessChangeListener):
    """Record group, membership and assignment changes.

    Args:
        group_name: Resolves a group id to its display name. Returns None
            for groups that no longer exist.
        item_read_groups: Optional lookup of an item's current read-group
            ids; when given, read-group changes also record the resulting
            full set.
    """

    def __init__(
        self,
        group_name: Callable[[int], Optional[str]],
        item_read_groups: Optional[Callable[[int], list[int]]] = None,
    ) -> None:
        self._group_name = group_name
        self._item_read_groups = item_read_groups
        self.entries: list[AuditEntry] = []

    def entries_for(self, subject_type: str, subject_id: int) -> list[AuditEntry]:
        return [e for e in self.entries if e.subject_type == subject_type and e.subject_id == subject_id]

    def clear(self) -> None:
        self.entries.clear()

    def _name(self, group_id: Optional[int]) -> str:
        if group_id is None:
            return "?"
        return self._group_name(group_id) or f"#{group_id}"

    def _record(self, subject_type: str, subject_id: int, message: str, event: ChangeEvent) -> None:
        entry = AuditEntry(subject_type=subject_type, subject_id=subject_id, message=message, event=event.name)
        self.entries.append(entry)
        logger.info("%s %s: %s", subject_type.capitalize(), subject_id, message, extra={"event": event.name})

    def _record_groups_now(self, event: ChangeEvent) -> None:
        if self._item_read_groups is None or event.item_id is None:
            return
        names = [self._name(group_id) for group_id in self._item_read_groups(event.item_id)]
        if names:
            self._record("item", event.item_id, f"Groups now: {', '.join(names)}", event)
        else:
            self._record("item", event.item_id, "Not assigned to any group", event)

    def on_access_change(self, event: ChangeEvent) -> None:
        name = event.name

        if name == AccessEvents.GROUP_CREATED:
            self._record("group", event.group_id, f"Group {self._name(event.group_id)} created", event)
        elif name == AccessEvents.GROUP_UPDATED:
            self._record("group", event.group_id, f"Group {self._name(event.group_id)} updated", event)
        elif name == AccessEvents.GROUP_DELETED:
            self._record("group", event.group_id, "Group deleted", event)

        elif name == AccessEvents.GROUP_USERS_ADDED:
            for user_id in event.user_ids:
                self._record("user", user_id, f"Added to group {self._name(event.group_id)}", event)
        elif name == AccessEvents.GROUP_USERS_REMOVED:
            for user_id in event.user_ids:
                self._record("user", user_id, f"Removed from group {self._name(event.group_id)}", event)

        elif name == AccessEvents.ITEM_READ_GROUPS_ADDED:
            self._record("item", event.item_id, f"Added read privilege for group {self._name(event.group_id)}", event)
            self._record_groups_now(event)
        elif name == AccessEvents.ITEM_READ_GROUPS_REMOVED:
            for group_id in event.group_ids:
                self._record("item", event.item_id, f"Removed read privilege for group {self._name(group_id)}", event)
            self._record_groups_now(event)

        elif name == AccessEvents.ITEM_EDIT_GROUPS_ADDED:
            self._record("item", event.item_id, f"Can be edited by group {self._name(event.group_id)}", event)
        elif name == AccessEvents.ITEM_EDIT_GROUPS_REMOVED:
            self._record("item", event.item_id, f"Can no longer be edited by group {self._name(event.group_id)}", event)
        elif name == AccessEvents.ITEM_EDIT_GROUPS_CLEARED:
            self._record("item", event.item_id, "Edit groups cleared", event)


__all__ = ["AuditEntry", "AuditLogListener"]
