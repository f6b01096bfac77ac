# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "INVENTORY_READ",
        "View Stocktakes",
        "View stocktake sessions and their lines",
        PermissionCategory.INVENTORY,
    ),
    (
        "INVENTORY_MANAGE",
        "Run Stocktakes",
        "Open, edit, approve and delete stocktake sessions",
        PermissionCategory.INVENTORY,
    ),
]


# -- MATERIALS --

MATERIAL_PERMISSIONS = [
    (
        "MATERIALS_READ",
        "View Materials",
        "View materials, stock levels and storage locations",
        PermissionCategory.MATERIALS,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "REPORTS_INVENTORY_READ",
        "View Inventory Reports",
        "View stocktake history and shrink reports",
        PermissionCategory.REPORTS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "MANAGE_PERMISSIONS",
        "Manage Permissions",
        "Assign roles and permissions to team members",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + MATERIAL_PERMISSIONS
    + REPORT_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
