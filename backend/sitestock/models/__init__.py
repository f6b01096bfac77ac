from .tenancy import Organization, InventoryLocation
from .materials import Material, StockAdjustment
from .inventory_sessions import InventorySession, InventorySessionItem
from .auth import User, Role, UserRole, Permission, RolePermission, SessionToken
from .security import SecurityEvent

__all__ = [
    'Organization', 'InventoryLocation',
    'Material', 'StockAdjustment',
    'InventorySession', 'InventorySessionItem',
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission', 'SessionToken',
    'SecurityEvent',
]
