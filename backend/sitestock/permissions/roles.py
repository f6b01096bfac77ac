# Overview: Default permission sets per role.
# Foremen and workers have no access to the stocktake module.

DEFAULT_ROLE_PERMISSIONS = {
    "owner": [
        "INVENTORY_READ",
        "INVENTORY_MANAGE",
        "MATERIALS_READ",
        "REPORTS_INVENTORY_READ",
        "MANAGE_PERMISSIONS",
    ],
    "manager": [
        "INVENTORY_READ",
        "INVENTORY_MANAGE",
        "MATERIALS_READ",
        "REPORTS_INVENTORY_READ",
    ],
    "storeman": [
        "INVENTORY_READ",
        "INVENTORY_MANAGE",
        "MATERIALS_READ",
    ],
    "foreman": [
        "MATERIALS_READ",
    ],
    "worker": [],
}

DEFAULT_ROLES = [
    ("owner", "Account owner, full access"),
    ("manager", "Site management, stocktakes and reports"),
    ("storeman", "Warehouse keeper, runs stocktakes"),
    ("foreman", "Crew lead, read-only materials"),
    ("worker", "Field worker"),
]
