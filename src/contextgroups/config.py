"""Configuration contract for the group access subsystem.

Pydantic-validated settings that select the bulk filtering strategy, the
content types under group control and the safety bounds of hierarchy walks.

``load_access_config_from_env()`` is the only place where environment
variables are read. All other code receives an ``AccessConfig`` instance
through its constructor.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AccessStrategyName(str, Enum):
    """Mechanisms for applying access resolution to bulk listings.

    - FILTER: post-filter query results, re-querying to fill pages
    - EXCLUDE: inject the unreadable id set as a negative filter
    - INCLUDE: inject the readable id set as a positive filter
    - PROPAGATE: mirror read-groups down the content tree at write time
    """

    FILTER = "filter"
    EXCLUDE = "exclude"
    INCLUDE = "include"
    PROPAGATE = "propagate"


class ParentInheritance(str, Enum):
    """How read restrictions compose along the content hierarchy.

    - NEAREST: an item with read-groups of its own is decided by them alone;
      an item without any defers to its parent.
    - CONJUNCTIVE: every level of the content ancestry must grant access.
    """

    NEAREST = "nearest"
    CONJUNCTIVE = "conjunctive"


def _split_types(value: Any) -> Any:
    if isinstance(value, str):
        return {part.strip() for part in value.split(",") if part.strip()}
    return value


class AccessConfig(BaseModel):
    """Settings for the access resolution engine.

    Environment variables (see ``load_access_config_from_env``):
        GROUPS_ACCESS_STRATEGY     — filter | exclude | include | propagate
        GROUPS_PROPAGATE           — enable read-group propagation
        GROUPS_READ_POST_TYPES     — comma-separated content types with read control
        GROUPS_EDIT_POST_TYPES     — comma-separated content types with edit control
        GROUPS_POST_MARKING        — symbol appended to restricted item titles
        GROUPS_PARENT_INHERITANCE  — nearest | conjunctive
        GROUPS_MAX_DEPTH           — ancestor walk bound
        GROUPS_MAX_CASCADE_NODES   — subtree walk node limit
    """

    access_strategy: AccessStrategyName = Field(
        default=AccessStrategyName.FILTER,
        description="Active bulk filtering strategy (system-wide)",
    )
    propagate_enabled: bool = Field(
        default=False,
        description="Mirror read-group assignments onto descendant items at write time",
    )
    read_post_types: set[str] = Field(
        default_factory=lambda: {"post", "page"},
        description="Content types whose reads are governed by groups",
    )
    edit_post_types: set[str] = Field(
        default_factory=lambda: {"post", "page"},
        description="Content types whose edits can be granted by edit-groups",
    )
    post_marking_symbol: str = Field(
        default="",
        description="Appended to titles of group-restricted items for privileged users",
    )
    parent_inheritance: ParentInheritance = Field(
        default=ParentInheritance.NEAREST,
        description="Composition of read restrictions along the content tree",
    )
    max_hierarchy_depth: int = Field(
        default=100,
        ge=1,
        description="Maximum number of steps in a single ancestor walk",
    )
    max_cascade_nodes: int = Field(
        default=10_000,
        ge=1,
        description="Maximum number of nodes visited by one subtree walk",
    )
    meta_prefix: str = Field(
        default="_groupz_meta_",
        description="Prefix for group option keys and item meta keys",
    )
    edit_groups_meta_key: str = Field(
        default="edit_groups",
        description="Item meta key (after prefix) holding the edit-group id list",
    )
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    model_config = {
        "extra": "forbid",
    }

    @field_validator("read_post_types", "edit_post_types", mode="before")
    @classmethod
    def validate_post_types(cls, v: Any) -> Any:
        """Accept comma-separated strings as well as iterables."""
        return _split_types(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @model_validator(mode="after")
    def validate_propagation(self) -> "AccessConfig":
        """The propagate strategy is only correct when propagation runs."""
        if self.access_strategy == AccessStrategyName.PROPAGATE and not self.propagate_enabled:
            raise ValueError("access_strategy 'propagate' requires propagate_enabled=True")
        return self

    @property
    def edit_groups_meta(self) -> str:
        """Full item meta key for the edit-group list."""
        return f"{self.meta_prefix}{self.edit_groups_meta_key}"

    def is_read_post_type(self, post_type: str | None) -> bool:
        """Whether reads of ``post_type`` are governed by groups.

        ``"any"`` is accepted, and an empty type defaults to ``"post"``.
        """
        post_type = post_type or "post"
        return post_type == "any" or post_type in self.read_post_types

    def is_edit_post_type(self, post_type: str | None) -> bool:
        """Whether edits of ``post_type`` can be granted by edit-groups."""
        return (post_type or "post") in self.edit_post_types


def load_access_config_from_env() -> AccessConfig:
    """Load access configuration from environment variables.

    This is the ONLY place where os.getenv is used for these settings.

    Environment variables:
    - GROUPS_ACCESS_STRATEGY: filter | exclude | include | propagate
    - GROUPS_PROPAGATE: Enable propagation (true/false)
    - GROUPS_READ_POST_TYPES: Comma-separated read post types
    - GROUPS_EDIT_POST_TYPES: Comma-separated edit post types
    - GROUPS_POST_MARKING: Title marking symbol
    - GROUPS_PARENT_INHERITANCE: nearest | conjunctive
    - GROUPS_MAX_DEPTH: Ancestor walk bound
    - GROUPS_MAX_CASCADE_NODES: Subtree walk node limit
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)

    Returns:
        AccessConfig instance with values from environment or defaults.
    """
    import os

    truthy = ("true", "1", "yes", "on")
    values: dict[str, Any] = {
        "access_strategy": os.getenv("GROUPS_ACCESS_STRATEGY", "filter").lower(),
        "propagate_enabled": os.getenv("GROUPS_PROPAGATE", "false").lower() in truthy,
        "post_marking_symbol": os.getenv("GROUPS_POST_MARKING", ""),
        "parent_inheritance": os.getenv("GROUPS_PARENT_INHERITANCE", "nearest").lower(),
        "max_hierarchy_depth": int(os.getenv("GROUPS_MAX_DEPTH", "100")),
        "max_cascade_nodes": int(os.getenv("GROUPS_MAX_CASCADE_NODES", "10000")),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() in truthy,
    }

    read_types = os.getenv("GROUPS_READ_POST_TYPES")
    if read_types is not None:
        values["read_post_types"] = read_types
    edit_types = os.getenv("GROUPS_EDIT_POST_TYPES")
    if edit_types is not None:
        values["edit_post_types"] = edit_types

    return AccessConfig(**values)


__all__ = [
    "AccessConfig",
    "AccessStrategyName",
    "LogLevel",
    "ParentInheritance",
    "load_access_config_from_env",
]
