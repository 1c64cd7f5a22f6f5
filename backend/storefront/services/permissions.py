"""
Admin Permissions
=================

Role-based permissions for the back office.

Each admin role maps to a fixed permission set; an AdminUser stores the set
derived from its role when it is created or re-roled. Permission strings
follow a ``resource.action`` naming convention.
"""

from typing import Dict, Iterable, List, Optional

from storefront.errors import ValidationError


class Permissions:
    """Permission string constants."""

    ADMIN_LOGIN = "admin.login"
    ADMIN_LIST_EDIT = "admin.list.edit"
    ADMIN_LIST_VIEW = "admin.list.view"
    ADMIN_PERMISSIONS_EDIT = "admin.permissions.edit"

    PRODUCTS_VIEW = "products.view"
    PRODUCTS_EDIT = "products.edit"
    PRODUCTS_DELETE = "products.delete"
    PRODUCTS_POPULARITY_VIEW = "products.popularity.view"

    ORDERS_VIEW = "orders.view"
    ORDERS_EDIT = "orders.edit"
    ORDERS_CAPTURE = "orders.capture"

    CUSTOMERS_VIEW = "customers.view"

    ANALYTICS_VIEW = "analytics.view"
    ANALYTICS_EXPORT = "analytics.export"
    ANALYTICS_PROFIT_VIEW = "analytics.profit.view"

    SYSTEM_SETTINGS = "system.settings"


P = Permissions

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    "super_admin": [
        P.ADMIN_LOGIN, P.ADMIN_LIST_EDIT, P.ADMIN_PERMISSIONS_EDIT,
        P.PRODUCTS_VIEW, P.PRODUCTS_EDIT, P.PRODUCTS_DELETE, P.PRODUCTS_POPULARITY_VIEW,
        P.ORDERS_VIEW, P.ORDERS_EDIT, P.ORDERS_CAPTURE,
        P.CUSTOMERS_VIEW,
        P.ANALYTICS_VIEW, P.ANALYTICS_EXPORT, P.ANALYTICS_PROFIT_VIEW,
        P.SYSTEM_SETTINGS,
    ],
    "admin": [
        P.ADMIN_LOGIN, P.ADMIN_LIST_VIEW,
        P.PRODUCTS_VIEW, P.PRODUCTS_EDIT, P.PRODUCTS_POPULARITY_VIEW,
        P.ORDERS_VIEW, P.ORDERS_EDIT, P.ORDERS_CAPTURE,
        P.CUSTOMERS_VIEW,
        P.ANALYTICS_VIEW, P.ANALYTICS_PROFIT_VIEW,
    ],
    "general": [
        P.ADMIN_LOGIN,
        P.PRODUCTS_VIEW, P.PRODUCTS_POPULARITY_VIEW,
        P.ORDERS_VIEW,
        P.CUSTOMERS_VIEW,
        P.ANALYTICS_VIEW,
    ],
    "test_mode": [
        P.ADMIN_LOGIN,
        P.PRODUCTS_VIEW,
    ],
}

ROLE_LEVELS = {
    "super_admin": 4,
    "admin": 3,
    "general": 2,
    "test_mode": 1,
}

# (permission, display name, description) in display order
PERMISSION_CATALOG = [
    (P.ADMIN_LOGIN, "Login", "Can log into the admin system"),
    (P.ADMIN_LIST_VIEW, "Admin List", "Can view the admin user list"),
    (P.ADMIN_LIST_EDIT, "Admin List Editing", "Can edit admin user lists"),
    (P.ADMIN_PERMISSIONS_EDIT, "Admin Permission Editing", "Can edit admin user permissions and roles"),
    (P.PRODUCTS_VIEW, "View Product Information", "Can view product details and listings"),
    (P.PRODUCTS_EDIT, "Edit Products", "Can edit product information"),
    (P.PRODUCTS_DELETE, "Delete Products", "Can delete products"),
    (P.PRODUCTS_POPULARITY_VIEW, "Display by Popularity", "Can view and sort products by popularity metrics"),
    (P.ORDERS_VIEW, "Purchase History", "Can view order and purchase history"),
    (P.ORDERS_EDIT, "Edit Orders", "Can edit order information"),
    (P.ORDERS_CAPTURE, "Capture Orders", "Can capture order payments"),
    (P.CUSTOMERS_VIEW, "Customer List", "Can view customer information and lists"),
    (P.ANALYTICS_VIEW, "View Analytics", "Can view analytics dashboard"),
    (P.ANALYTICS_EXPORT, "Export Analytics", "Can export analytics data"),
    (P.ANALYTICS_PROFIT_VIEW, "Profit Management", "Can view profit analytics and management reports"),
    (P.SYSTEM_SETTINGS, "System Settings", "Can access system settings"),
]

ALL_PERMISSIONS = frozenset(p for p, _, _ in PERMISSION_CATALOG)

PERMISSION_GROUPS: Dict[str, List[str]] = {
    "ADMIN_MANAGEMENT": [P.ADMIN_PERMISSIONS_EDIT, P.ADMIN_LIST_EDIT, P.ADMIN_LIST_VIEW],
    "PRODUCT_MANAGEMENT": [P.PRODUCTS_VIEW, P.PRODUCTS_POPULARITY_VIEW],
    "ORDER_MANAGEMENT": [P.ORDERS_VIEW],
    "CUSTOMER_MANAGEMENT": [P.CUSTOMERS_VIEW],
    "ANALYTICS": [P.ANALYTICS_VIEW, P.ANALYTICS_PROFIT_VIEW],
    "BASIC_ACCESS": [P.ADMIN_LOGIN],
}


def validate_role(role: str) -> str:
    if role not in ROLE_PERMISSIONS:
        raise ValidationError(f"Invalid role: {role}", field="role")
    return role


def get_role_permissions(role: str) -> List[str]:
    """Default permissions for a role. Unknown roles get none."""
    return list(ROLE_PERMISSIONS.get(role, []))


def get_permission_matrix() -> List[Dict]:
    """One row per permission with a flag per role, for the admin UI."""
    return [
        {
            "function": permission,
            "display_name": display_name,
            "description": description,
            **{role: permission in perms for role, perms in ROLE_PERMISSIONS.items()},
        }
        for permission, display_name, description in PERMISSION_CATALOG
    ]


def _permissions_of(user) -> Iterable[str]:
    return user.permissions or []


def has_permission(user, permission: str) -> bool:
    if user is None:
        return False
    return permission in _permissions_of(user)


def has_any_permission(user, permissions: Iterable[str]) -> bool:
    if user is None:
        return False
    granted = set(_permissions_of(user))
    return any(p in granted for p in permissions)


def has_all_permissions(user, permissions: Iterable[str]) -> bool:
    if user is None:
        return False
    granted = set(_permissions_of(user))
    return all(p in granted for p in permissions)


def get_role_level(role: Optional[str]) -> int:
    """Higher number = more privileged. Unknown roles are 0."""
    return ROLE_LEVELS.get(role, 0)


def can_access_by_role(user_role: str, required_role: str) -> bool:
    return get_role_level(user_role) >= get_role_level(required_role)


def can_access_feature(user, feature: str) -> bool:
    if feature not in PERMISSION_GROUPS:
        raise ValidationError(f"Unknown feature area: {feature}", field="feature")
    return has_any_permission(user, PERMISSION_GROUPS[feature])
