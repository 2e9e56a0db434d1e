import pytest

from safari_ops.permissions import (
    MENU_ORDER, ROLE_PERMISSIONS, VALID_ROLES, has_permission, menu_for_role, permissions_for,
)


class TestRolePermissions:

    def test_every_permission_is_a_menu_item(self):
        for role, perms in ROLE_PERMISSIONS.items():
            assert perms <= set(MENU_ORDER), role

    def test_everyone_has_dashboard_and_attendance(self):
        for role in VALID_ROLES:
            assert has_permission(role, "dashboard")
            assert has_permission(role, "attendance")

    @pytest.mark.parametrize("role,permission,allowed", [
        ("operations_coordinator", "trips", True),
        ("operations_coordinator", "vehicles", True),
        ("operations_coordinator", "staff", False),
        ("admin", "staff", True),
        ("admin", "trips", False),
        ("admin", "users", False),
        ("super_admin", "users", True),
        ("super_admin", "trips", True),
        ("super_admin", "my_trips", True),
        ("driver", "my_trips", True),
        ("driver", "drivers", False),
        ("finance_officer", "invoices", True),
        ("customer_service", "faq", True),
        ("booking_manager", "bookings", True),
    ])
    def test_mapping(self, role, permission, allowed):
        assert has_permission(role, permission) is allowed

    def test_unknown_role_gets_nothing(self):
        assert permissions_for("intern") == frozenset()
        assert menu_for_role("intern") == []
        assert not has_permission("intern", "dashboard")


class TestMenu:

    def test_menu_follows_dashboard_order(self):
        assert menu_for_role("driver") == ["dashboard", "my_trips", "reports", "attendance"]
        assert menu_for_role("operations_coordinator") == [
            "dashboard", "messages", "trips", "drivers", "vehicles", "attendance",
        ]

    def test_super_admin_sees_every_item(self):
        assert permissions_for("super_admin") == frozenset(MENU_ORDER)
        assert menu_for_role("super_admin") == list(MENU_ORDER)

    def test_super_admin_menu_ends_with_admin_items(self):
        menu = menu_for_role("super_admin")
        assert menu[0] == "dashboard"
        assert menu[-3:] == ["forensic", "users", "settings"]
