"""Group tree, group parameters and user membership."""

from .membership import MembershipResolver
from .params import (
    BUILTIN_PARAMETERS,
    INVISIBLE,
    IS_EDIT_GROUP,
    USERS,
    GroupParameter,
    GroupParameterRegistry,
)
from .store import GroupStore

__all__ = [
    "BUILTIN_PARAMETERS",
    "GroupParameter",
    "GroupParameterRegistry",
    "GroupStore",
    "INVISIBLE",
    "IS_EDIT_GROUP",
    "MembershipResolver",
    "USERS",
]
