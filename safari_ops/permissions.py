"""Role -> permission mapping for the back-office dashboard.

Each permission doubles as a navigation menu item; ``MENU_ORDER`` fixes the
order in which the dashboard shows them.
"""

MENU_ORDER = (
    "dashboard", "messages", "customers", "bookings", "trips", "drivers", "vehicles",
    "my_trips", "payments", "invoices", "staff", "reports", "support", "faq",
    "attendance", "forensic", "users", "settings",
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    # super_admin sees every menu item
    "super_admin": frozenset(MENU_ORDER),
    "admin": frozenset({
        "dashboard", "messages", "customers", "bookings", "staff", "reports",
        "forensic", "attendance",
    }),
    "admin_helper": frozenset({"dashboard", "messages", "customers", "bookings", "attendance"}),
    "booking_manager": frozenset({"dashboard", "messages", "customers", "bookings", "attendance"}),
    "operations_coordinator": frozenset({
        "dashboard", "messages", "trips", "drivers", "vehicles", "attendance",
    }),
    "driver": frozenset({"dashboard", "my_trips", "reports", "attendance"}),
    "finance_officer": frozenset({
        "dashboard", "payments", "invoices", "reports", "messages", "attendance",
    }),
    "customer_service": frozenset({"dashboard", "messages", "support", "faq", "attendance"}),
}

VALID_ROLES = tuple(ROLE_PERMISSIONS)

# Roles told about every trip assignment
ASSIGNMENT_NOTIFY_ROLES = ("admin", "admin_helper", "operations_coordinator")


def permissions_for(role: str) -> frozenset[str]:
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(role: str, permission: str) -> bool:
    return permission in permissions_for(role)


def menu_for_role(role: str) -> list[str]:
    """Menu items visible to ``role``, in dashboard order. Unknown roles see nothing."""
    allowed = permissions_for(role)
    return [item for item in MENU_ORDER if item in allowed]
