"""Typed group parameters and their registry.

Group metadata lives outside the tree-node table, in the option store, one
entry per ``(group, parameter)`` under ``"{prefix}{group_id}-{key}"``.

Provides:
- ``GroupParameter`` — definition of one parameter (key, coercion, default).
- ``GroupParameterRegistry`` — the closed set of parameters known to a
  deployment, bound to an option store.
- ``USERS``, ``IS_EDIT_GROUP``, ``INVISIBLE`` — built-in parameters.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, Optional

from ..interfaces import GroupTreeStore
from ..utils import coerce_ids


class GroupParameter:
    """Definition of one group parameter.

    Args:
        key: Option key suffix and ``Group`` attribute name.
        label: Short label for admin surfaces.
        description: Longer help text for admin surfaces.
        default: Value returned when nothing is stored.
        coerce: Normalizes values on both read and write.
        inverse: For boolean parameters, a ``True`` filter keeps groups
            where the stored value is False (and vice versa).
    """

    __slots__ = ("key", "label", "description", "default", "coerce", "inverse")

    def __init__(
        self,
        key: str,
        *,
        label: str = "",
        description: str = "",
        default: Any = None,
        coerce: Optional[Callable[[Any], Any]] = None,
        inverse: bool = False,
    ) -> None:
        self.key = key
        self.label = label or key
        self.description = description
        self.default = default
        self.coerce = coerce or (lambda value: value)
        self.inverse = inverse

    @property
    def is_boolean(self) -> bool:
        return isinstance(self.default, bool)

    def option_key(self, prefix: str, group_id: int) -> str:
        return f"{prefix}{group_id}-{self.key}"

    def matches(self, value: Any, wanted: bool) -> bool:
        """Whether a stored boolean ``value`` satisfies filter ``wanted``."""
        actual = bool(value)
        if self.inverse:
            actual = not actual
        return actual == wanted

    def __repr__(self) -> str:
        return f"GroupParameter(key={self.key!r}, default={self.default!r})"


def _as_bool(value: Any) -> bool:
    return bool(value)


def _as_user_list(value: Any) -> list[int]:
    return coerce_ids(value)


USERS = GroupParameter(
    "users",
    label="Users",
    description="Users that are direct members of the group.",
    default=[],
    coerce=_as_user_list,
)

IS_EDIT_GROUP = GroupParameter(
    "is_edit_group",
    label="Edit group",
    description="Whether this group can be used for edit privilege.",
    default=False,
    coerce=_as_bool,
)

INVISIBLE = GroupParameter(
    "invisible",
    label="Invisible",
    description="Make this group visible for privileged users only.",
    default=False,
    coerce=_as_bool,
)

BUILTIN_PARAMETERS = (USERS, IS_EDIT_GROUP, INVISIBLE)


class GroupParameterRegistry:
    """Parameters known to a deployment, persisted through an option store."""

    def __init__(self, options: GroupTreeStore, prefix: str) -> None:
        self._options = options
        self._prefix = prefix
        self._params: dict[str, GroupParameter] = {}
        for parameter in BUILTIN_PARAMETERS:
            self.register(parameter)

    def register(self, parameter: GroupParameter) -> None:
        self._params[parameter.key] = parameter

    def unregister(self, key: str) -> None:
        if key in (p.key for p in BUILTIN_PARAMETERS):
            raise ValueError(f"Built-in parameter '{key}' cannot be unregistered")
        self._params.pop(key, None)

    def get(self, key: str) -> GroupParameter:
        try:
            return self._params[key]
        except KeyError:
            raise KeyError(f"Unknown group parameter: {key}") from None

    def __contains__(self, key: object) -> bool:
        return key in self._params

    def __iter__(self) -> Iterator[GroupParameter]:
        return iter(list(self._params.values()))

    def keys(self) -> list[str]:
        return list(self._params)

    def boolean_keys(self) -> list[str]:
        return [p.key for p in self._params.values() if p.is_boolean]

    # ── Values ──────────────────────────────────────────

    def get_value(self, group_id: int, key: str) -> Any:
        parameter = self.get(key)
        raw = self._options.get_option(parameter.option_key(self._prefix, group_id), None)
        if raw is None:
            default = parameter.default
            return list(default) if isinstance(default, list) else default
        return parameter.coerce(raw)

    def set_value(self, group_id: int, key: str, value: Any) -> bool:
        """Store a value. Returns False when a boolean was already at ``value``."""
        parameter = self.get(key)
        value = parameter.coerce(value)
        if parameter.is_boolean and self.get_value(group_id, key) == value:
            return False
        self._options.update_option(parameter.option_key(self._prefix, group_id), value)
        return True

    def values(self, group_id: int) -> dict[str, Any]:
        return {key: self.get_value(group_id, key) for key in self._params}

    def delete_all(self, group_id: int) -> None:
        for parameter in self._params.values():
            self._options.delete_option(parameter.option_key(self._prefix, group_id))

    def __repr__(self) -> str:
        return f"GroupParameterRegistry(keys={self.keys()!r})"


__all__ = [
    "BUILTIN_PARAMETERS",
    "GroupParameter",
    "GroupParameterRegistry",
    "INVISIBLE",
    "IS_EDIT_GROUP",
    "USERS",
]
