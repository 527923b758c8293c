"""Unified exception hierarchy for contextgroups.

All errors raised by the access subsystem inherit from ContextGroupsError.
This module provides the base exception hierarchy with stable error codes.

Usage:
    from contextgroups.exceptions import (
        ContextGroupsError,
        GroupNotFoundError,
        HierarchyDepthError,
    )

Failure policy:
    NotFound errors propagate to the caller. ConfigurationError raised while
    resolving access is converted to a denial by the resolver (fail closed).
    CascadeFailure is never raised out of a write; it is collected into a
    CascadeReport, handed back to the writer and logged.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "ContextGroupsError",
    "NotFoundError",
    "GroupNotFoundError",
    "ItemNotFoundError",
    "InvalidInputError",
    "ConfigurationError",
    "HierarchyDepthError",
    "UnsupportedStrategyError",
    "CascadeFailure",
]


# ---- Exception Hierarchy ----------------------------------------------------


class ContextGroupsError(Exception):
    """Base exception for the access subsystem.

    Attributes:
        code: Stable error code string (e.g. "GROUP_NOT_FOUND").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class NotFoundError(ContextGroupsError):
    """A group or content item id does not resolve."""

    code: str = "NOT_FOUND"
    message: str = "Requested object does not exist"


class GroupNotFoundError(NotFoundError):
    """Group id does not resolve to a group."""

    code: str = "GROUP_NOT_FOUND"

    def __init__(self, group_id: int, message: str | None = None, **kwargs: Any) -> None:
        self.group_id = group_id
        super().__init__(message or f"Group {group_id} does not exist", group_id=group_id, **kwargs)


class ItemNotFoundError(NotFoundError):
    """Content item id does not resolve to an item."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: int, message: str | None = None, **kwargs: Any) -> None:
        self.item_id = item_id
        super().__init__(message or f"Item {item_id} does not exist", item_id=item_id, **kwargs)


class InvalidInputError(ContextGroupsError):
    """Input that cannot be coerced into something usable."""

    code: str = "INVALID_INPUT"


class ConfigurationError(ContextGroupsError):
    """Invalid configuration, or a resolution pass that cannot complete safely."""

    code: str = "CONFIGURATION_ERROR"


class HierarchyDepthError(ConfigurationError):
    """A hierarchy walk exceeded its safety bound or ran into a cycle."""

    code: str = "HIERARCHY_DEPTH_ERROR"


class UnsupportedStrategyError(ConfigurationError):
    """The selected access strategy is not known."""

    code: str = "UNSUPPORTED_STRATEGY"


class CascadeFailure(ContextGroupsError):
    """A descendant could not be updated during propagation."""

    code: str = "CASCADE_FAILURE"
