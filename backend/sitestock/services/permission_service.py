# Overview: Service-layer operations for permissions and the per-request capability object.

"""
Permission resolution and security event logging.

The stocktake engine never reads permissions from ambient state: callers
build an Actor (build_actor) once per request and pass it into every
engine call. Tests construct Actor directly.

DESIGN PRINCIPLES:
- Fail closed: deny by default, require explicit permission grant
- Log denials only: permission grants are not logged
- Tenant isolation: events carry org_id
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..extensions import db
from ..models import User, UserRole, Role, RolePermission, Permission, SecurityEvent
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS
from sitestock.errors import PermissionDenied
from sitestock.time_utils import utcnow


INVENTORY_MANAGE = "INVENTORY_MANAGE"
INVENTORY_READ = "INVENTORY_READ"
MATERIALS_READ = "MATERIALS_READ"
REPORTS_INVENTORY_READ = "REPORTS_INVENTORY_READ"


@dataclass(frozen=True)
class Actor:
    """
    Capability snapshot of the calling user.

    org_id is the tenant every engine query is scoped to.
    """
    user_id: int
    org_id: int
    roles: frozenset = field(default_factory=frozenset)
    permissions: frozenset = field(default_factory=frozenset)

    def can(self, permission_code: str) -> bool:
        return permission_code in self.permissions

    def can_any(self, *permission_codes: str) -> bool:
        return any(code in self.permissions for code in permission_codes)

    @property
    def has_inventory_access(self) -> bool:
        return self.can(INVENTORY_MANAGE)

    def require(self, *permission_codes: str) -> None:
        """Raise PermissionDenied unless the actor holds any of the codes."""
        if not self.can_any(*permission_codes):
            raise PermissionDenied(" | ".join(permission_codes))


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: int | None = None,
) -> SecurityEvent:
    """
    Append a security event (PERMISSION_DENIED, LOGIN_FAILED, ...) to the audit trail.
    """
    event = SecurityEvent(
        user_id=user_id,
        org_id=org_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission codes for a user: union over the user's roles.
    """
    rows = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id)
        .all()
    )
    return {code for (code,) in rows}


def get_user_role_names(user_id: int) -> list[str]:
    """Get list of role names for a user."""
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name)
        .all()
    )
    return [name for (name,) in rows]


def build_actor(user: User, org_id: int | None = None) -> Actor:
    """
    Resolve the capability snapshot for a user.

    org_id defaults to the user's organization (session tokens pass the
    org captured at login).
    """
    return Actor(
        user_id=user.id,
        org_id=org_id if org_id is not None else user.org_id,
        roles=frozenset(get_user_role_names(user.id)),
        permissions=frozenset(get_user_permissions(user.id)),
    )


def initialize_permissions() -> int:
    """
    Create Permission records for all codes in PERMISSION_DEFINITIONS.

    Idempotent: safe to run multiple times.
    """
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(code=code).first()

        if not existing:
            permission = Permission(
                code=code,
                name=name,
                description=description,
                category=category
            )
            db.session.add(permission)
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions(org_id: int) -> int:
    """
    Link the organization's roles to their DEFAULT_ROLE_PERMISSIONS.

    Idempotent: skips existing links and unknown roles/permissions.
    """
    created_count = 0

    for role_name, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(org_id=org_id, name=role_name).first()

        if not role:
            continue

        for permission_code in permission_codes:
            permission = db.session.query(Permission).filter_by(code=permission_code).first()

            if not permission:
                continue

            existing = db.session.query(RolePermission).filter_by(
                role_id=role.id,
                permission_id=permission.id
            ).first()

            if not existing:
                db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                created_count += 1

    db.session.commit()
    return created_count
