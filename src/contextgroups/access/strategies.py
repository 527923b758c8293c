"""Bulk filtering strategies.

One strategy is active system-wide (``AccessConfig.access_strategy``); a
fresh instance is bound to the requesting user for the duration of one
request. All four apply the same access rules to content listings:

- ``FilterStrategy`` runs the query unmodified and drops unreadable rows,
  re-querying to fill paginated listings.
- ``ExcludeStrategy`` computes the user's unreadable ids once and injects
  them as a negative id filter.
- ``IncludeStrategy`` computes the user's readable ids once and injects
  them as a positive id filter.
- ``PropagateStrategy`` injects a plain read-group predicate; it is correct
  only when read-groups have been propagated down the content tree.

Read policies registered on the resolver narrow every strategy the same
way they narrow ``can_read``: they are injected as a store predicate and
folded into the cached id sets.

Cached id sets are never shared between requests. Call ``refresh()`` after
a membership or assignment change inside a long-lived request.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional, Union

from ..capabilities import Capabilities
from ..config import AccessConfig, AccessStrategyName
from ..exceptions import UnsupportedStrategyError
from ..interfaces import ContentStore
from ..logging import get_access_logger
from ..models import ContentItem, GroupFields, GroupQuery, ItemQuery
from .closure import ReadableSets, ReadSetBuilder
from .linker import ContentGroupLinker
from .marking import TitleMarker
from .resolver import AccessResolver


class AccessStrategy(ABC):
    """Base class: per-request application of access rules to listings.

    Args:
        user_id: Requesting user; 0 is anonymous.
        config: Access configuration.
        content: Content store collaborator.
        resolver: Single-item access decisions.
        read_sets: Builder of the per-user readable partition.
        marker: Title marker applied by ``filter_items`` for users allowed
            to see group markings.
    """

    @property
    @abstractmethod
    def name(self) -> AccessStrategyName:
        """Configuration name of the strategy."""

    def __init__(
        self,
        user_id: int,
        config: AccessConfig,
        content: ContentStore,
        resolver: AccessResolver,
        read_sets: ReadSetBuilder,
        marker: Optional[TitleMarker] = None,
    ) -> None:
        self.user_id = user_id
        self.config = config
        self.content = content
        self.resolver = resolver
        self.read_sets = read_sets
        self.marker = marker
        self.ignores_groups = resolver.ignores_groups(user_id)
        self.log = get_access_logger(__name__, user_id=user_id, strategy=self.name.value)

    def governs(self, query: ItemQuery) -> bool:
        """Whether ``query`` can return items of a read post type."""
        if not self.config.read_post_types:
            return False
        if query.targets_any_type():
            return True
        return any(self.config.is_read_post_type(post_type) for post_type in query.post_types)

    def _policy_predicate(self, item_id: int, read_groups: frozenset[int]) -> bool:
        return self.resolver.read_policies_allow(item_id, self.user_id)

    def _with_policies(self, query: ItemQuery) -> ItemQuery:
        """Attach the resolver's read policies to ``query`` as a store predicate."""
        if self.ignores_groups or not self.resolver.has_read_policies:
            return query
        return query.model_copy(update={"predicates": [*query.predicates, self._policy_predicate]})

    def refresh(self) -> None:
        """Recompute any cached id set."""

    def prepare_query(self, query: ItemQuery) -> ItemQuery:
        """Return the query to send to the content store."""
        return query

    def filter_results(self, query: ItemQuery, ids: list[int]) -> list[int]:
        """Post-process ids returned for ``query``."""
        return ids

    def query(self, query: ItemQuery) -> list[int]:
        """Run a content listing for this user."""
        prepared = self.prepare_query(query)
        return self.filter_results(prepared, self.content.query_items(prepared))

    def count(self, query: ItemQuery) -> int:
        """Number of readable items matching ``query``, ignoring pagination."""
        return len(self.query(query.model_copy(update={"offset": 0, "limit": -1})))

    def is_readable(self, item_id: int) -> bool:
        return self.resolver.can_read(item_id, self.user_id)

    def filter_items(self, items: Iterable[ContentItem]) -> list[ContentItem]:
        """Filter already-fetched items (page lists, navigation menus).

        Titles of restricted items are marked for users holding
        ``view_group_markings``.
        """
        mark = self.marker is not None and self.resolver.has_capability(
            self.user_id, Capabilities.VIEW_GROUP_MARKINGS
        )
        kept: list[ContentItem] = []
        for item in items:
            if not self.config.is_read_post_type(item.type):
                if self.ignores_groups or self.resolver.read_policies_allow(item.id, self.user_id):
                    kept.append(item)
                continue
            if not self.ignores_groups and not self.is_readable(item.id):
                continue
            kept.append(self.marker.mark_item(item) if mark else item)
        return kept

    def __repr__(self) -> str:
        return f"{type(self).__name__}(user_id={self.user_id})"


class FilterStrategy(AccessStrategy):
    """Drop unreadable rows after the query, refilling short pages."""

    name = AccessStrategyName.FILTER

    def _readable(self, ids: list[int]) -> list[int]:
        return [item_id for item_id in ids if self.is_readable(item_id)]

    def filter_results(self, query: ItemQuery, ids: list[int]) -> list[int]:
        """Drop unreadable ids; refill paginated listings.

        Refilling re-queries the rows after the current page until the page
        is full or the source returns fewer rows than asked for. Singular
        and unbounded queries are never refilled.
        """
        if self.ignores_groups or not ids:
            return ids

        kept = self._readable(ids)
        if len(kept) == len(ids) or query.singular or query.unbounded:
            return kept

        # A short page means the source has no more rows
        exhausted = len(ids) < query.limit
        offset = query.offset + len(ids)
        rounds = 0
        while not exhausted and len(kept) < query.limit:
            wanted = query.limit - len(kept)
            batch = self.content.query_items(query.model_copy(update={"offset": offset, "limit": wanted}))
            rounds += 1
            offset += len(batch)
            exhausted = len(batch) < wanted
            kept.extend(self._readable(batch))

        self.log.debug("Filtered page refilled in %d round(s)", rounds)
        return kept


class _CachedSetStrategy(AccessStrategy):
    """Shared plumbing for the strategies that cache a ``ReadableSets``."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._sets: Optional[ReadableSets] = None

    @property
    def sets(self) -> ReadableSets:
        if self._sets is None:
            sets = self.read_sets.build(self.user_id)
            if self.resolver.has_read_policies and not self.ignores_groups:
                sets = sets.narrowed(lambda item_id: self.resolver.read_policies_allow(item_id, self.user_id))
            self._sets = sets
        return self._sets

    def refresh(self) -> None:
        self._sets = None


class ExcludeStrategy(_CachedSetStrategy):
    """Inject the unreadable id set as a negative id filter."""

    name = AccessStrategyName.EXCLUDE

    def prepare_query(self, query: ItemQuery) -> ItemQuery:
        query = self._with_policies(query)
        if self.ignores_groups or not self.governs(query):
            return query
        excluded = self.sets.excluded
        if not excluded:
            return query
        merged = list(dict.fromkeys([*query.exclude_ids, *sorted(excluded)]))
        return query.model_copy(update={"exclude_ids": merged})

    def is_readable(self, item_id: int) -> bool:
        if self.ignores_groups:
            return True
        return item_id not in self.sets.excluded and self.resolver.read_policies_allow(item_id, self.user_id)


class IncludeStrategy(_CachedSetStrategy):
    """Inject the readable id set as a positive id filter.

    A caller-provided ``include_ids`` list is narrowed, never widened. An
    empty readable set yields an empty listing.
    """

    name = AccessStrategyName.INCLUDE

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._ungoverned: dict[tuple[str, ...], frozenset[int]] = {}

    def refresh(self) -> None:
        super().refresh()
        self._ungoverned.clear()

    def _ungoverned_ids(self, query: ItemQuery) -> frozenset[int]:
        """Ids of items the query may return that are not of a read post type."""
        if query.targets_any_type():
            key: tuple[str, ...] = ("any",)
        else:
            key = tuple(sorted(t for t in query.post_types if not self.config.is_read_post_type(t)))
            if not key:
                return frozenset()
        if key not in self._ungoverned:
            if key == ("any",):
                lookup = ItemQuery(exclude_ids=sorted(self.sets.governed))
            else:
                lookup = ItemQuery(post_types=list(key))
            self._ungoverned[key] = frozenset(self.content.query_items(lookup))
        return self._ungoverned[key]

    def prepare_query(self, query: ItemQuery) -> ItemQuery:
        query = self._with_policies(query)
        if self.ignores_groups or not self.governs(query):
            return query
        allowed = self.sets.included | self._ungoverned_ids(query)
        if query.include_ids is not None:
            include = [item_id for item_id in query.include_ids if item_id in allowed]
        else:
            include = sorted(allowed)
        return query.model_copy(update={"include_ids": include})

    def is_readable(self, item_id: int) -> bool:
        if self.ignores_groups:
            return True
        sets = self.sets
        if item_id in sets.included:
            return True
        return item_id not in sets.governed and self.resolver.read_policies_allow(item_id, self.user_id)


class PropagateStrategy(AccessStrategy):
    """Filter on the item's own read-groups only.

    Readable: items without read-groups, and items sharing a read-group with
    the user's ancestor-inclusive group set. Content ancestry is not walked;
    propagation must already have copied read-groups onto descendants.
    """

    name = AccessStrategyName.PROPAGATE

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._groups: Optional[tuple[frozenset[int], frozenset[int]]] = None

    def refresh(self) -> None:
        self._groups = None

    def _group_sets(self) -> tuple[frozenset[int], frozenset[int]]:
        if self._groups is None:
            all_groups = frozenset(self.resolver.linker.groups.get_groups(GroupQuery(fields=GroupFields.IDS)))
            self._groups = (all_groups, self.resolver.user_group_set(self.user_id))
        return self._groups

    def _predicate(self, item_id: int, read_groups: frozenset[int]) -> bool:
        all_groups, user_groups = self._group_sets()
        assigned = read_groups & all_groups
        if assigned and assigned.isdisjoint(user_groups):
            return False
        return self.resolver.read_policies_allow(item_id, self.user_id)

    def prepare_query(self, query: ItemQuery) -> ItemQuery:
        if self.ignores_groups:
            return query
        if not self.governs(query):
            return self._with_policies(query)
        return query.model_copy(update={"predicates": [*query.predicates, self._predicate]})

    def is_readable(self, item_id: int) -> bool:
        if self.ignores_groups:
            return True
        if not self.config.is_read_post_type(self.content.get_item(item_id).type):
            return self.resolver.read_policies_allow(item_id, self.user_id)
        return self._predicate(item_id, frozenset(self.linker.get_item_read_group_ids(item_id)))

    @property
    def linker(self) -> ContentGroupLinker:
        return self.resolver.linker


STRATEGIES: dict[AccessStrategyName, type[AccessStrategy]] = {
    AccessStrategyName.FILTER: FilterStrategy,
    AccessStrategyName.EXCLUDE: ExcludeStrategy,
    AccessStrategyName.INCLUDE: IncludeStrategy,
    AccessStrategyName.PROPAGATE: PropagateStrategy,
}


def get_strategy_class(name: Union[str, AccessStrategyName]) -> type[AccessStrategy]:
    """Return the strategy class registered for ``name``.

    Raises:
        UnsupportedStrategyError: ``name`` is not a known strategy.
    """
    try:
        return STRATEGIES[AccessStrategyName(name)]
    except (KeyError, ValueError):
        raise UnsupportedStrategyError(f"Unsupported access strategy: {name!r}", strategy=str(name)) from None


__all__ = [
    "AccessStrategy",
    "ExcludeStrategy",
    "FilterStrategy",
    "IncludeStrategy",
    "PropagateStrategy",
    "STRATEGIES",
    "get_strategy_class",
]
