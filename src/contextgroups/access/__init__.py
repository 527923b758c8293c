"""Access resolution: linker, resolver, bulk strategies and propagation."""

from ..models import CascadeReport
from .closure import ReadableSets, ReadSetBuilder, resolve_deferred
from .linker import ContentGroupLinker, ReadGroupChange
from .marking import TitleMarker
from .propagation import PropagationEngine
from .resolver import AccessPolicy, AccessResolver
from .strategies import (
    STRATEGIES,
    AccessStrategy,
    ExcludeStrategy,
    FilterStrategy,
    IncludeStrategy,
    PropagateStrategy,
    get_strategy_class,
)

__all__ = [
    "AccessPolicy",
    "AccessResolver",
    "AccessStrategy",
    "CascadeReport",
    "ContentGroupLinker",
    "ExcludeStrategy",
    "FilterStrategy",
    "IncludeStrategy",
    "PropagateStrategy",
    "PropagationEngine",
    "ReadGroupChange",
    "ReadSetBuilder",
    "ReadableSets",
    "STRATEGIES",
    "TitleMarker",
    "get_strategy_class",
    "resolve_deferred",
]
