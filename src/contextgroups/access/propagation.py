"""Propagation Engine: mirror read-group changes down the content tree.

When enabled, assigning a read-group to an item also assigns it to every
descendant of a read post type, and removing read-groups removes them from
every descendant unconditionally (a descendant that held the same group
independently loses it too).

Writes made by the engine carry ``cascade=False`` on their events, so the
engine does not fan them out a second time. A descendant that cannot be
updated is recorded in the ``CascadeReport`` and the walk continues;
nothing already applied is rolled back.
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Iterable

from ..config import AccessConfig
from ..events import AccessChangeListener, AccessEvents, ChangeEvent
from ..exceptions import ContextGroupsError
from ..interfaces import ContentStore
from ..logging import get_access_logger
from ..models import CascadeReport
from .linker import ContentGroupLinker


class PropagationEngine(AccessChangeListener):
    """Copy read-group additions and removals onto content descendants."""

    EVENTS = (AccessEvents.ITEM_READ_GROUPS_ADDED, AccessEvents.ITEM_READ_GROUPS_REMOVED)

    def __init__(self, config: AccessConfig, content: ContentStore, linker: ContentGroupLinker) -> None:
        self.config = config
        self.content = content
        self.linker = linker

    def on_access_change(self, event: ChangeEvent) -> None:
        if not self.config.propagate_enabled or not event.cascade or event.item_id is None:
            return
        if event.name == AccessEvents.ITEM_READ_GROUPS_ADDED and event.group_id is not None:
            event.reports.append(self.propagate_add(event.item_id, event.group_id))
        elif event.name == AccessEvents.ITEM_READ_GROUPS_REMOVED and event.group_ids:
            event.reports.append(self.propagate_remove(event.item_id, event.group_ids))

    def propagate_add(self, item_id: int, group_id: int) -> CascadeReport:
        """Add ``group_id`` to every descendant that does not have it yet."""

        def apply(child: int) -> bool:
            return self.linker.add_item_read_group(child, group_id, cascade=False)

        return self._walk(CascadeReport(item_id=item_id, group_ids=[group_id]), apply)

    def propagate_remove(self, item_id: int, group_ids: Iterable[int]) -> CascadeReport:
        """Remove ``group_ids`` from every descendant."""
        group_ids = list(group_ids)

        def apply(child: int) -> bool:
            return bool(self.linker.remove_item_read_groups(child, group_ids, cascade=False))

        return self._walk(CascadeReport(item_id=item_id, group_ids=group_ids), apply)

    def _walk(self, report: CascadeReport, apply: Callable[[int], bool]) -> CascadeReport:
        log = get_access_logger(__name__, item_id=report.item_id)
        post_types = sorted(self.config.read_post_types)
        seen = {report.item_id}
        queue = deque([report.item_id])

        while queue:
            parent = queue.popleft()
            try:
                children = self.content.get_children(parent, post_types)
            except ContextGroupsError as e:
                report.failures.append(f"Children of item {parent}: {e.message}")
                continue

            for child in children:
                if child in seen:
                    continue
                if report.visited >= self.config.max_cascade_nodes:
                    report.failures.append(f"Stopped after {self.config.max_cascade_nodes} descendants")
                    queue.clear()
                    break
                seen.add(child)
                report.visited += 1
                queue.append(child)
                try:
                    if apply(child):
                        report.updated.append(child)
                except ContextGroupsError as e:
                    report.failures.append(f"Item {child}: {e.message}")

        if report.failures:
            log.warning(
                "Propagation of groups %s incomplete: %d failure(s), %d item(s) updated",
                report.group_ids,
                len(report.failures),
                len(report.updated),
            )
        else:
            log.debug("Propagated groups %s to %d item(s)", report.group_ids, len(report.updated))
        return report


__all__ = ["PropagationEngine"]
