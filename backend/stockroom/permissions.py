"""
Permission codes and role mappings.

Every protected route names one permission code. A user's role decides
which codes they hold; there are no per-user overrides.
"""

from stockroom.models.auth import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, description)
PERMISSION_DEFINITIONS = [
    ("VIEW_INVENTORY", "View products, categories, suppliers and stock movements"),
    ("MANAGE_PRODUCTS", "Create, edit and delete catalog entries"),
    ("ADJUST_INVENTORY", "Record manual stock adjustments"),
    ("RECORD_SALE", "Record sales"),
    ("PROCESS_RETURN", "Process returns against recorded sales"),
    ("MANAGE_PURCHASE_ORDERS", "Create, edit and cancel purchase orders"),
    ("RECEIVE_PURCHASE_ORDERS", "Receive purchase orders into stock"),
    ("VIEW_REPORTS", "View stock and sales reports"),
    ("VIEW_INSIGHTS", "Request sales forecasts and promotion plans"),
    ("MANAGE_USERS", "Create and manage user accounts"),
]

ALL_PERMISSIONS = frozenset(code for code, _ in PERMISSION_DEFINITIONS)


# =============================================================================
# ROLE MAPPINGS
# =============================================================================

ROLE_PERMISSIONS = {
    ROLE_ADMIN: ALL_PERMISSIONS,
    ROLE_MANAGER: ALL_PERMISSIONS - {"MANAGE_USERS"},
    ROLE_STAFF: frozenset({
        "VIEW_INVENTORY",
        "RECORD_SALE",
        "PROCESS_RETURN",
        "VIEW_REPORTS",
    }),
}


def get_role_permissions(role: str) -> frozenset:
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(user, permission_code: str) -> bool:
    """Fail closed: unknown roles and inactive users hold nothing."""
    if user is None or not user.is_active:
        return False
    return permission_code in get_role_permissions(user.role)
