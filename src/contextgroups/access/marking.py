"""Title marking of group-restricted content.

Privileged users see restricted items in listings; a configurable symbol
appended to the title tells them the item is not public.
"""

from __future__ import annotations

from typing import Iterable

from ..config import AccessConfig
from ..models import ContentItem
from .linker import ContentGroupLinker


class TitleMarker:
    """Append ``post_marking_symbol`` to titles of restricted items."""

    def __init__(self, config: AccessConfig, linker: ContentGroupLinker) -> None:
        self.config = config
        self.linker = linker

    @property
    def enabled(self) -> bool:
        return bool(self.config.post_marking_symbol)

    def add_marking(self, title: str, item_id: int) -> str:
        """Return ``title`` with the marking when the item or a content ancestor has read-groups."""
        if self.enabled and self.linker.item_has_group(item_id, check_hierarchy=True):
            return f"{title}{self.config.post_marking_symbol}"
        return title

    def mark_item(self, item: ContentItem) -> ContentItem:
        marked = self.add_marking(item.title, item.id)
        if marked == item.title:
            return item
        return item.model_copy(update={"title": marked})

    def mark_items(self, items: Iterable[ContentItem]) -> list[ContentItem]:
        return [self.mark_item(item) for item in items]


__all__ = ["TitleMarker"]
