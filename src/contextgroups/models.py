"""Core data models for the access subsystem.

These are Pydantic models shared by the stores, the resolvers and the
bulk filtering strategies.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from .exceptions import CascadeFailure


class Group(BaseModel):
    """A node of the group tree, hydrated with its parameters.

    ``parent`` is 0 for root groups. Membership is direct only: transitive
    membership is always computed, never stored.
    """

    id: int
    name: str
    parent: int = 0
    users: set[int] = Field(default_factory=set)
    is_edit_group: bool = False
    invisible: bool = False
    meta: dict[str, Any] = Field(default_factory=dict)

    def has_user(self, user_id: int) -> bool:
        return user_id in self.users


class GroupNode(BaseModel):
    """Raw tree node as returned by the group tree collaborator."""

    id: int
    name: str
    parent: int = 0


class ContentItem(BaseModel):
    """Content item as returned by the content store collaborator."""

    id: int
    parent_id: int = 0
    type: str = "post"
    title: str = ""


class GroupFields(str, Enum):
    """Return shapes for ``GroupStore.get_groups``."""

    ALL = "all"
    IDS = "ids"
    ID_PARENT = "id=>parent"
    NAMES = "names"
    COUNT = "count"


class GroupQuery(BaseModel):
    """Filter for ``GroupStore.get_groups``.

    Membership and boolean parameter predicates are evaluated in-process
    after the raw tree nodes are fetched.
    """

    user_id: Optional[int] = None
    not_user_id: Optional[int] = None
    invisible: Optional[bool] = None
    is_edit_group: Optional[bool] = None
    parent: Optional[int] = None
    include: Optional[list[int]] = None
    fields: GroupFields = GroupFields.ALL

    def bool_filters(self) -> dict[str, bool]:
        """Boolean parameter predicates that are set on this query."""
        filters = {}
        if self.invisible is not None:
            filters["invisible"] = self.invisible
        if self.is_edit_group is not None:
            filters["is_edit_group"] = self.is_edit_group
        return filters


ItemPredicate = Callable[[int, frozenset[int]], bool]
"""Opaque predicate ``(item_id, read_group_ids) -> keep`` passed through to the store."""


class ItemQuery(BaseModel):
    """Content listing query understood by the content store collaborator.

    Attributes:
        post_types: Type allow-list; ``None`` or ``["any"]`` means all types.
        include_ids: Positive id filter (``None`` = no filter, ``[]`` = nothing).
        exclude_ids: Negative id filter.
        terms_in: Keep items having at least one of these read-groups.
        terms_not_in: Keep items having none of these read-groups.
        meta_key: Keep items that have this meta key set.
        parent_id: Keep direct children of this item.
        offset: Rows to skip.
        limit: Page size; -1 means unbounded.
        singular: A single-item request (never refilled by the filter strategy).
        predicates: Raw predicates injected by strategies.
    """

    post_types: Optional[list[str]] = None
    include_ids: Optional[list[int]] = None
    exclude_ids: list[int] = Field(default_factory=list)
    terms_in: Optional[list[int]] = None
    terms_not_in: Optional[list[int]] = None
    meta_key: Optional[str] = None
    parent_id: Optional[int] = None
    offset: int = 0
    limit: int = -1
    singular: bool = False
    predicates: list[Any] = Field(default_factory=list)

    @property
    def unbounded(self) -> bool:
        return self.limit < 0

    def targets_any_type(self) -> bool:
        return not self.post_types or "any" in self.post_types


class CascadeReport(BaseModel):
    """Outcome of one propagation walk.

    Attributes:
        item_id: Item the change was made on.
        group_ids: Groups added or removed.
        visited: Descendants visited.
        updated: Descendants whose read-groups changed.
        failures: One message per descendant that could not be updated
            (or per aborted walk).
    """

    item_id: int
    group_ids: list[int] = Field(default_factory=list)
    visited: int = 0
    updated: list[int] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise ``CascadeFailure`` when any descendant could not be updated."""
        if self.failures:
            raise CascadeFailure(
                f"Propagation from item {self.item_id} failed for {len(self.failures)} descendant(s)",
                item_id=self.item_id,
                failures=list(self.failures),
            )


__all__ = [
    "CascadeReport",
    "ContentItem",
    "Group",
    "GroupFields",
    "GroupNode",
    "GroupQuery",
    "ItemPredicate",
    "ItemQuery",
]
