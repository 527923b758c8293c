"""In-memory collaborator stores.

Reference implementations of ``GroupTreeStore`` and ``ContentStore`` that
keep everything in dictionaries. They back the test-suite and are suitable
for embedding the access engine in small tools or for prototyping a real
backend against the same contract.

Neither store enforces an acyclic tree: ``update_term`` / ``add_item``
accept any parent id, as the real collaborators do.
"""

from __future__ import annotations

import copy
from typing import Any, Optional

from .exceptions import ItemNotFoundError
from .interfaces import ContentStore, GroupTreeStore
from .models import ContentItem, GroupNode, ItemQuery


class InMemoryGroupTree(GroupTreeStore):
    """Dictionary-backed group tree with an option table."""

    def __init__(self) -> None:
        self._terms: dict[int, GroupNode] = {}
        self._options: dict[str, Any] = {}
        self._next_id = 1

    def create_term(self, name: str, parent: int = 0) -> int:
        term_id = self._next_id
        self._next_id += 1
        self._terms[term_id] = GroupNode(id=term_id, name=name, parent=parent)
        return term_id

    def add_term(self, term_id: int, name: str, parent: int = 0) -> int:
        """Insert a node with an explicit id (fixtures and imports)."""
        self._terms[term_id] = GroupNode(id=term_id, name=name, parent=parent)
        self._next_id = max(self._next_id, term_id + 1)
        return term_id

    def get_term(self, term_id: int) -> Optional[GroupNode]:
        node = self._terms.get(term_id)
        return node.model_copy() if node is not None else None

    def update_term(self, term_id: int, name: Optional[str] = None, parent: Optional[int] = None) -> None:
        node = self._terms[term_id]
        if name is not None:
            node.name = name
        if parent is not None:
            node.parent = parent

    def delete_term(self, term_id: int) -> None:
        node = self._terms.pop(term_id, None)
        if node is None:
            return
        # Children move up to the deleted node's parent
        for child in self._terms.values():
            if child.parent == term_id:
                child.parent = node.parent

    def get_children(self, term_id: int) -> list[int]:
        return [node.id for node in self._terms.values() if node.parent == term_id]

    def list_terms(self) -> list[GroupNode]:
        return [self._terms[term_id].model_copy() for term_id in sorted(self._terms)]

    def get_option(self, key: str, default: Any = None) -> Any:
        if key not in self._options:
            return default
        return copy.deepcopy(self._options[key])

    def update_option(self, key: str, value: Any) -> None:
        self._options[key] = copy.deepcopy(value)

    def delete_option(self, key: str) -> None:
        self._options.pop(key, None)

    def option_keys(self) -> list[str]:
        return list(self._options)


class InMemoryContentStore(ContentStore):
    """Dictionary-backed content tree with term edges and item meta.

    Queries return ids in ascending order.
    """

    def __init__(self) -> None:
        self._items: dict[int, ContentItem] = {}
        self._terms: dict[int, list[int]] = {}
        self._meta: dict[int, dict[str, Any]] = {}

    # ── Items ─────────────────────────────────────────────────

    def add_item(self, item_id: int, parent_id: int = 0, post_type: str = "post", title: str = "") -> ContentItem:
        item = ContentItem(id=item_id, parent_id=parent_id, type=post_type, title=title or f"Item {item_id}")
        self._items[item_id] = item
        self._terms.setdefault(item_id, [])
        self._meta.setdefault(item_id, {})
        return item

    def delete_item(self, item_id: int) -> None:
        """Delete an item with its term edges and meta."""
        self._items.pop(item_id, None)
        self._terms.pop(item_id, None)
        self._meta.pop(item_id, None)

    def get_item(self, item_id: int) -> ContentItem:
        try:
            return self._items[item_id].model_copy()
        except KeyError:
            raise ItemNotFoundError(item_id) from None

    def get_children(self, item_id: int, post_types: Optional[list[str]] = None) -> list[int]:
        return [
            item.id
            for item in sorted(self._items.values(), key=lambda i: i.id)
            if item.parent_id == item_id and _type_matches(item.type, post_types)
        ]

    # ── Queries ───────────────────────────────────────────────

    def _matches(self, item: ContentItem, query: ItemQuery) -> bool:
        if not _type_matches(item.type, query.post_types):
            return False
        if query.include_ids is not None and item.id not in query.include_ids:
            return False
        if item.id in query.exclude_ids:
            return False
        if query.parent_id is not None and item.parent_id != query.parent_id:
            return False

        terms = frozenset(self._terms.get(item.id, ()))
        if query.terms_in is not None and not terms.intersection(query.terms_in):
            return False
        if query.terms_not_in is not None and terms.intersection(query.terms_not_in):
            return False
        if query.meta_key is not None and query.meta_key not in self._meta.get(item.id, {}):
            return False

        return all(predicate(item.id, terms) for predicate in query.predicates)

    def _matching(self, query: ItemQuery) -> list[ContentItem]:
        return [item for item in sorted(self._items.values(), key=lambda i: i.id) if self._matches(item, query)]

    def query_items(self, query: ItemQuery) -> list[int]:
        ids = [item.id for item in self._matching(query)]
        ids = ids[query.offset:] if query.offset > 0 else ids
        if query.limit >= 0:
            ids = ids[: query.limit]
        return ids

    def query_item_parents(self, query: ItemQuery) -> dict[int, int]:
        return {item.id: item.parent_id for item in self._matching(query)}

    # ── Term edges ────────────────────────────────────────────

    def get_item_terms(self, item_id: int) -> list[int]:
        if item_id not in self._items:
            raise ItemNotFoundError(item_id)
        return list(self._terms.get(item_id, ()))

    def set_item_terms(self, item_id: int, group_ids: list[int]) -> None:
        if item_id not in self._items:
            raise ItemNotFoundError(item_id)
        self._terms[item_id] = list(dict.fromkeys(group_ids))

    # ── Meta ──────────────────────────────────────────────────

    def get_item_meta(self, item_id: int, key: str, default: Any = None) -> Any:
        if item_id not in self._items:
            raise ItemNotFoundError(item_id)
        meta = self._meta.get(item_id, {})
        if key not in meta:
            return default
        return copy.deepcopy(meta[key])

    def set_item_meta(self, item_id: int, key: str, value: Any) -> None:
        if item_id not in self._items:
            raise ItemNotFoundError(item_id)
        self._meta.setdefault(item_id, {})[key] = copy.deepcopy(value)

    def delete_item_meta(self, item_id: int, key: str) -> None:
        if item_id not in self._items:
            raise ItemNotFoundError(item_id)
        self._meta.get(item_id, {}).pop(key, None)


def _type_matches(item_type: str, post_types: Optional[list[str]]) -> bool:
    return not post_types or "any" in post_types or item_type in post_types


__all__ = ["InMemoryContentStore", "InMemoryGroupTree"]
