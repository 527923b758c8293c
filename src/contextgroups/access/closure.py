"""Groupless closure and per-user readable sets.

Bulk strategies cannot walk the content tree per row. Instead they fetch,
once per request, two flat maps from the content store and resolve the
content hierarchy in memory:

- *denied*: items carrying read-groups of which the user holds none
  (ancestor-inclusive membership);
- *deferring*: items whose readability depends on their parent. That is
  every groupless item and, in conjunctive mode, every granted item too.

``resolve_deferred`` flattens the deferring forest in time proportional to
the number of nodes by memoizing each resolved node.
"""

from __future__ import annotations

import logging
from typing import Callable, Collection, Mapping, Optional

from ..capabilities import Capabilities, CapabilityChecker
from ..config import AccessConfig, ParentInheritance
from ..exceptions import ConfigurationError
from ..groups.membership import MembershipResolver
from ..groups.store import GroupStore
from ..interfaces import ContentStore
from ..logging import get_access_logger, safe_preview
from ..models import GroupFields, GroupQuery, ItemQuery

logger = logging.getLogger(__name__)


def resolve_deferred(
    deferring: Mapping[int, int],
    excluded: Collection[int],
    max_depth: Optional[int] = None,
) -> set[int]:
    """Return the ids of ``deferring`` that resolve to unreadable.

    Each entry maps an item to its parent. Walking up from an item:

    - parent 0: readable (root);
    - parent in ``excluded``: unreadable;
    - parent neither deferring nor excluded: readable (its status is
      defined elsewhere as readable, or it is not governed at all);
    - parent deferring: continue from the parent.

    Items on a cycle, and items more than ``max_depth`` parent steps from
    their resolution point, are unreadable.

    Example::

        >>> resolve_deferred({101: 100, 102: 101, 201: 0}, excluded={100})
        {101, 102}
    """
    excluded = excluded if isinstance(excluded, (set, frozenset)) else set(excluded)
    # id -> (readable, parent steps to the resolution point)
    resolved: dict[int, tuple[bool, int]] = {}
    unbounded = float("inf")

    for start in deferring:
        if start in resolved:
            continue

        path = [start]
        on_path = {start}
        while True:
            parent = deferring[path[-1]]
            if parent == 0:
                outcome = (True, 0)
            elif parent in resolved:
                readable, steps = resolved[parent]
                outcome = (readable, steps + 1)
            elif parent in excluded:
                outcome = (False, 1)
            elif parent not in deferring:
                outcome = (True, 1)
            elif parent in on_path:
                outcome = (False, unbounded)
            else:
                path.append(parent)
                on_path.add(parent)
                continue
            break

        readable, steps = outcome
        for node in reversed(path):
            if max_depth is not None and steps > max_depth:
                readable = False
            resolved[node] = (readable, steps)
            steps += 1

    return {item_id for item_id, (readable, _) in resolved.items() if not readable}


class ReadableSets:
    """Per-user partition of the governed content items.

    Attributes:
        governed: Every item of a read post type.
        excluded: Governed items the user cannot read.
        included: Governed items the user can read.
        closed: True when the sets were built after a failure and deny
            everything.
    """

    __slots__ = ("governed", "excluded", "included", "closed")

    def __init__(
        self,
        governed: frozenset[int],
        excluded: frozenset[int],
        included: frozenset[int],
        closed: bool = False,
    ) -> None:
        self.governed = governed
        self.excluded = excluded
        self.included = included
        self.closed = closed

    @classmethod
    def deny_all(cls, governed: frozenset[int]) -> "ReadableSets":
        return cls(governed=governed, excluded=governed, included=frozenset(), closed=True)

    @classmethod
    def allow_all(cls, governed: frozenset[int]) -> "ReadableSets":
        return cls(governed=governed, excluded=frozenset(), included=governed)

    def narrowed(self, allow: Callable[[int], bool]) -> "ReadableSets":
        """Copy with every included id that ``allow`` rejects moved to ``excluded``."""
        rejected = frozenset(item_id for item_id in self.included if not allow(item_id))
        if not rejected:
            return self
        return ReadableSets(
            governed=self.governed,
            excluded=self.excluded | rejected,
            included=self.included - rejected,
            closed=self.closed,
        )

    def __repr__(self) -> str:
        return (
            f"ReadableSets(governed={len(self.governed)}, excluded={len(self.excluded)}, "
            f"included={len(self.included)}, closed={self.closed})"
        )


class ReadSetBuilder:
    """Compute ``ReadableSets`` for a user with a handful of store queries."""

    def __init__(
        self,
        config: AccessConfig,
        content: ContentStore,
        groups: GroupStore,
        membership: MembershipResolver,
        capabilities: CapabilityChecker,
    ) -> None:
        self.config = config
        self.content = content
        self.groups = groups
        self.membership = membership
        self.capabilities = capabilities

    def governed_ids(self) -> frozenset[int]:
        if not self.config.read_post_types:
            return frozenset()
        return frozenset(self.content.query_items(ItemQuery(post_types=sorted(self.config.read_post_types))))

    def build(self, user_id: int) -> ReadableSets:
        """Return the readable partition for ``user_id``.

        A ``ConfigurationError`` while resolving denies every governed item.
        """
        log = get_access_logger(__name__, user_id=user_id)
        if not self.config.read_post_types:
            return ReadableSets(frozenset(), frozenset(), frozenset())
        if user_id and self.capabilities(user_id, Capabilities.IGNORE_GROUPS):
            return ReadableSets.allow_all(self.governed_ids())

        try:
            sets = self._build(user_id)
        except ConfigurationError as e:
            log.error("Cannot resolve readable items, denying all: %s", e.message)
            return ReadableSets.deny_all(self.governed_ids())

        log.debug(
            "Readable sets computed: %d excluded, %d included (%s)",
            len(sets.excluded),
            len(sets.included),
            safe_preview(sets.excluded, 120),
        )
        return sets

    def _build(self, user_id: int) -> ReadableSets:
        post_types = sorted(self.config.read_post_types)
        all_groups = self.groups.get_groups(GroupQuery(fields=GroupFields.IDS))
        user_groups = self.membership.get_user_group_id_set(user_id, include_ancestors=True)

        restricted = (
            self.content.query_item_parents(ItemQuery(post_types=post_types, terms_in=all_groups))
            if all_groups
            else {}
        )
        granted = (
            set(self.content.query_items(ItemQuery(post_types=post_types, terms_in=sorted(user_groups))))
            if user_groups
            else set()
        )
        groupless = self.content.query_item_parents(ItemQuery(post_types=post_types, terms_not_in=all_groups))

        denied = {item_id for item_id in restricted if item_id not in granted}
        deferring = dict(groupless)
        if self.config.parent_inheritance == ParentInheritance.CONJUNCTIVE:
            deferring.update((item_id, parent) for item_id, parent in restricted.items() if item_id in granted)

        excluded = denied | resolve_deferred(deferring, denied, self.config.max_hierarchy_depth)
        governed = frozenset(restricted) | frozenset(groupless)
        return ReadableSets(
            governed=governed,
            excluded=frozenset(excluded),
            included=governed - excluded,
        )


__all__ = ["ReadSetBuilder", "ReadableSets", "resolve_deferred"]
