"""Capability constants and role profiles.

Provides:
- ``Capabilities`` — capability names checked by the access engine.
- ``ROLE_CAPABILITIES`` — role → capabilities granted by default.
- ``CapabilityChecker`` — the callable the engine asks ``(user_id, cap) -> bool``.
- ``RoleCapabilityChecker`` — a checker backed by a user → roles mapping.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping


class Capabilities:
    """Capabilities understood by the access engine.

    ``IGNORE_GROUPS`` short-circuits every read and edit decision to True.
    """

    # ── Primary ─────────────────────────────────────────
    IGNORE_GROUPS = "ignore_groups"
    SEE_INVISIBLE_GROUPS = "see_invisible_groups"
    VIEW_GROUP_MARKINGS = "view_group_markings"
    MANAGE_GROUP_USERS = "manage_group_users"

    # ── Group management ────────────────────────────────
    MANAGE_GROUPS = "manage_groups"
    EDIT_GROUPS = "edit_groups"
    DELETE_GROUPS = "delete_groups"
    ASSIGN_GROUPS = "assign_groups"
    ASSIGN_OTHERS_GROUPS = "assign_others_groups"


_PRIVILEGED = (
    Capabilities.IGNORE_GROUPS,
    Capabilities.SEE_INVISIBLE_GROUPS,
    Capabilities.VIEW_GROUP_MARKINGS,
    Capabilities.MANAGE_GROUP_USERS,
    Capabilities.MANAGE_GROUPS,
    Capabilities.EDIT_GROUPS,
    Capabilities.DELETE_GROUPS,
    Capabilities.ASSIGN_GROUPS,
    Capabilities.ASSIGN_OTHERS_GROUPS,
)

# Roles not listed get nothing
ROLE_CAPABILITIES: dict[str, tuple[str, ...]] = {
    "administrator": _PRIVILEGED,
    "editor": _PRIVILEGED,
    "author": (Capabilities.ASSIGN_GROUPS,),
}


CapabilityChecker = Callable[[int, str], bool]


def caps_for_role(role: str) -> tuple[str, ...]:
    """Return the capabilities granted to ``role`` (empty for unknown roles)."""
    return ROLE_CAPABILITIES.get(role, ())


def no_capabilities(user_id: int, capability: str) -> bool:
    """Checker for deployments without capability wiring."""
    return False


class RoleCapabilityChecker:
    """Capability checker backed by a user → roles mapping.

    Args:
        user_roles: Roles per user id.
        extra: Per-user capabilities granted on top of the roles.

    Example::

        checker = RoleCapabilityChecker({1: ["administrator"], 7: ["author"]})
        checker(1, Capabilities.IGNORE_GROUPS)  # True
        checker(7, Capabilities.IGNORE_GROUPS)  # False
    """

    __slots__ = ("user_roles", "extra")

    def __init__(
        self,
        user_roles: Mapping[int, Iterable[str]],
        extra: Mapping[int, Iterable[str]] | None = None,
    ) -> None:
        self.user_roles = {user_id: tuple(roles) for user_id, roles in user_roles.items()}
        self.extra = {user_id: frozenset(caps) for user_id, caps in (extra or {}).items()}

    def capabilities(self, user_id: int) -> frozenset[str]:
        caps: set[str] = set(self.extra.get(user_id, ()))
        for role in self.user_roles.get(user_id, ()):
            caps.update(caps_for_role(role))
        return frozenset(caps)

    def __call__(self, user_id: int, capability: str) -> bool:
        if not user_id:
            return False
        return capability in self.capabilities(user_id)

    def __repr__(self) -> str:
        return f"RoleCapabilityChecker(user_roles={self.user_roles!r})"


__all__ = [
    "Capabilities",
    "CapabilityChecker",
    "ROLE_CAPABILITIES",
    "RoleCapabilityChecker",
    "caps_for_role",
    "no_capabilities",
]
