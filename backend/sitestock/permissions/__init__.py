# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    INVENTORY_PERMISSIONS,
    MATERIAL_PERMISSIONS,
    REPORT_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS, DEFAULT_ROLES
from .helpers import (
    get_all_permission_codes,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "INVENTORY_PERMISSIONS",
    "MATERIAL_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "DEFAULT_ROLES",
    "get_all_permission_codes",
    "get_permission_definition",
    "validate_permission_code",
]
