"""Collaborator interfaces consumed by the access subsystem.

The group tree and the content repository are external systems. The core
only talks to them through these narrow abstract classes, so any backing
store (SQL, document store, in-memory) can be plugged in.

Hierarchy walks are done by the core on top of ``get_term`` / ``get_item``
and ``get_children`` rather than delegated to the stores, because neither
store guarantees an acyclic tree and the core bounds every walk.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .models import ContentItem, GroupNode, ItemQuery


class GroupTreeStore(ABC):
    """Hierarchical term store holding groups, plus a key/value option table."""

    @abstractmethod
    def create_term(self, name: str, parent: int = 0) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_term(self, term_id: int) -> Optional[GroupNode]:
        """Return the node, or None when it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def update_term(self, term_id: int, name: Optional[str] = None, parent: Optional[int] = None) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_term(self, term_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_children(self, term_id: int) -> list[int]:
        """Direct child ids of a node."""
        raise NotImplementedError

    @abstractmethod
    def list_terms(self) -> list[GroupNode]:
        raise NotImplementedError

    @abstractmethod
    def get_option(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    @abstractmethod
    def update_option(self, key: str, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_option(self, key: str) -> None:
        raise NotImplementedError


class ContentStore(ABC):
    """Content repository with a parent/child tree, term edges and item meta."""

    @abstractmethod
    def get_item(self, item_id: int) -> ContentItem:
        """Return the item or raise ItemNotFoundError."""
        raise NotImplementedError

    @abstractmethod
    def query_items(self, query: ItemQuery) -> list[int]:
        """Return matching ids, ordered, honoring offset/limit."""
        raise NotImplementedError

    @abstractmethod
    def query_item_parents(self, query: ItemQuery) -> dict[int, int]:
        """Return ``{item_id: parent_id}`` for all matching items (no paging)."""
        raise NotImplementedError

    @abstractmethod
    def get_children(self, item_id: int, post_types: Optional[list[str]] = None) -> list[int]:
        raise NotImplementedError

    @abstractmethod
    def get_item_terms(self, item_id: int) -> list[int]:
        raise NotImplementedError

    @abstractmethod
    def set_item_terms(self, item_id: int, group_ids: list[int]) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_item_meta(self, item_id: int, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    @abstractmethod
    def set_item_meta(self, item_id: int, key: str, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_item_meta(self, item_id: int, key: str) -> None:
        raise NotImplementedError


__all__ = ["ContentStore", "GroupTreeStore"]
