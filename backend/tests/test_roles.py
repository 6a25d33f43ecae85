"""Tests for the role hierarchy and the permission table."""

import itertools

import pytest

from dispo.auth.permissions import PERMISSIONS, Permission, check_permission, permissions_for
from dispo.auth.roles import ROLE_HIERARCHY, Role, has_permission, role_tier


class TestRoleHierarchy:
    def test_every_role_has_a_tier(self):
        assert set(ROLE_HIERARCHY) == set(Role)

    def test_tiers(self):
        assert [role_tier(r) for r in ("admin", "chief", "disponent", "analyst")] == [4, 3, 2, 1]

    @pytest.mark.parametrize("user,required", list(itertools.product(Role, Role)))
    def test_has_permission_compares_tiers(self, user, required):
        assert has_permission(user, required) == (ROLE_HIERARCHY[user] >= ROLE_HIERARCHY[required])

    def test_plain_strings_are_accepted(self):
        assert has_permission("chief", "disponent") is True
        assert has_permission("analyst", "chief") is False

    @pytest.mark.parametrize("user,required", [
        (None, Role.ANALYST),
        (Role.ADMIN, None),
        ("", Role.ANALYST),
        ("superuser", Role.ANALYST),
        (Role.ADMIN, "superuser"),
    ])
    def test_unknown_or_missing_roles_fail_closed(self, user, required):
        assert has_permission(user, required) is False

    def test_parse(self):
        assert Role.parse("chief") is Role.CHIEF
        assert Role.parse(Role.ADMIN) is Role.ADMIN
        assert Role.parse("root") is None
        assert Role.parse(None) is None


class TestPermissionTable:
    @pytest.mark.parametrize("name,minimum", [
        ("canManageShifts", Role.CHIEF),
        ("canViewAudit", Role.ADMIN),
        ("canApplyForShifts", Role.DISPONENT),
        ("canViewAnalytics", Role.ANALYST),
        ("canAssignShifts", Role.CHIEF),
        ("canManageTemplates", Role.CHIEF),
    ])
    def test_minimum_roles(self, name, minimum):
        for role in Role:
            assert PERMISSIONS[name](role) == (ROLE_HIERARCHY[role] >= ROLE_HIERARCHY[minimum])

    def test_fixed_set_of_names(self):
        assert set(PERMISSIONS) == {p.value for p in Permission}

    def test_unknown_name_is_a_caller_error(self):
        with pytest.raises(KeyError):
            check_permission("canDoAnything", Role.ADMIN)

    def test_unknown_role_has_no_permissions(self):
        assert permissions_for("guest") == set()

    def test_disponent_permissions(self):
        assert permissions_for(Role.DISPONENT) == {Permission.APPLY_FOR_SHIFTS, Permission.VIEW_ANALYTICS}

    def test_admin_has_everything(self):
        assert permissions_for(Role.ADMIN) == set(Permission)
