"""
Role definitions and the role hierarchy.

Roles are hierarchical: a higher tier satisfies every requirement of the
tiers below it.

    ANALYST (1) < DISPONENT (2) < CHIEF (3) < ADMIN (4)

A role string that is not a member of `Role` has no tier. It fails every
permission check instead of raising.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    CHIEF = "chief"
    DISPONENT = "disponent"
    ANALYST = "analyst"

    @classmethod
    def parse(cls, value: Role | str | None) -> Role | None:
        """Return the matching Role, or None for absent/unknown values."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


ROLE_HIERARCHY: dict[Role, int] = {
    Role.ADMIN: 4,
    Role.CHIEF: 3,
    Role.DISPONENT: 2,
    Role.ANALYST: 1,
}


def role_tier(role: Role | str | None) -> int | None:
    """Privilege level of a role, or None if the role is absent or unknown."""
    parsed = Role.parse(role)
    if parsed is None:
        return None
    return ROLE_HIERARCHY[parsed]


def has_permission(user_role: Role | str | None, required_role: Role | str | None) -> bool:
    """True iff `user_role` is at least as privileged as `required_role`.

    Fails closed: an absent or unknown role on either side yields False.
    """
    user_level = role_tier(user_role)
    required_level = role_tier(required_role)
    if user_level is None or required_level is None:
        return False
    return user_level >= required_level
