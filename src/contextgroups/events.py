"""Change events and the synchronous observer registry.

Every write in the subsystem (group CRUD, membership, read/edit-group
assignment) emits a ``ChangeEvent`` through an ``EventDispatcher``.
Listeners are called in registration order, synchronously, inside the
triggering write. A listener that raises is logged and skipped: audit or
cache collaborators must never break the write path.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from .models import CascadeReport

logger = logging.getLogger(__name__)


class AccessEvents:
    """Canonical event names.

    Format: ``{subject}.{what}``
    """

    GROUP_CREATED = "group.created"
    GROUP_UPDATED = "group.updated"
    GROUP_DELETED = "group.deleted"
    GROUP_USERS_ADDED = "group.users.added"
    GROUP_USERS_REMOVED = "group.users.removed"
    ITEM_READ_GROUPS_ADDED = "item.readGroups.added"
    ITEM_READ_GROUPS_REMOVED = "item.readGroups.removed"
    ITEM_EDIT_GROUPS_ADDED = "item.editGroups.added"
    ITEM_EDIT_GROUPS_REMOVED = "item.editGroups.removed"
    ITEM_EDIT_GROUPS_CLEARED = "item.editGroups.cleared"

    ALL = (
        GROUP_CREATED,
        GROUP_UPDATED,
        GROUP_DELETED,
        GROUP_USERS_ADDED,
        GROUP_USERS_REMOVED,
        ITEM_READ_GROUPS_ADDED,
        ITEM_READ_GROUPS_REMOVED,
        ITEM_EDIT_GROUPS_ADDED,
        ITEM_EDIT_GROUPS_REMOVED,
        ITEM_EDIT_GROUPS_CLEARED,
    )


class ChangeEvent(BaseModel):
    """A single change notification.

    Attributes:
        name: One of ``AccessEvents``.
        group_id: Subject group for group.* events, or the single group
            added/removed for per-group item events.
        item_id: Subject content item for item.* events.
        user_ids: Users added/removed for membership events.
        group_ids: Full removed set for ``item.readGroups.removed``.
        cascade: False when the write was itself made by propagation;
            the propagation engine does not fan such events out again.
        reports: Cascade reports attached by listeners while the event was
            dispatched; the writer hands them back to its caller.
    """

    name: str
    group_id: Optional[int] = None
    item_id: Optional[int] = None
    user_ids: list[int] = Field(default_factory=list)
    group_ids: list[int] = Field(default_factory=list)
    cascade: bool = True
    reports: list[CascadeReport] = Field(default_factory=list)


class AccessChangeListener(ABC):
    """Observer of access-relevant changes."""

    @abstractmethod
    def on_access_change(self, event: ChangeEvent) -> None:
        raise NotImplementedError


class EventDispatcher:
    """Synchronous fan-out of ChangeEvents to registered listeners."""

    def __init__(self) -> None:
        self._listeners: list[tuple[AccessChangeListener, Optional[frozenset[str]]]] = []

    def subscribe(self, listener: AccessChangeListener, names: Optional[Iterable[str]] = None) -> None:
        """Register ``listener`` for all events, or only for ``names``."""
        self._listeners.append((listener, frozenset(names) if names is not None else None))

    def unsubscribe(self, listener: AccessChangeListener) -> None:
        self._listeners = [(lst, names) for lst, names in self._listeners if lst is not listener]

    def listeners(self) -> list[AccessChangeListener]:
        return [listener for listener, _ in self._listeners]

    def emit(self, event: ChangeEvent) -> None:
        for listener, names in list(self._listeners):
            if names is not None and event.name not in names:
                continue
            try:
                listener.on_access_change(event)
            except Exception:
                logger.exception(
                    "Listener %s failed on %s",
                    type(listener).__name__,
                    event.name,
                    extra={"item_id": event.item_id},
                )


__all__ = [
    "AccessChangeListener",
    "AccessEvents",
    "ChangeEvent",
    "EventDispatcher",
]
