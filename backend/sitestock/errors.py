# Overview: Error taxonomy of the stocktake engine.

"""
Every failure the stocktake engine can report is a subclass of
InventorySessionError carrying a stable ``code``. Callers dispatch on the
class (or the code), never on the message text. Routes turn these into
localized user-facing messages (see messages.py).
"""

from __future__ import annotations


class InventorySessionError(Exception):
    """Base class for stocktake failures."""
    code = "INVENTORY_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.code)
        self.details = details


class PermissionDenied(InventorySessionError):
    """Actor lacks the capability required by the operation."""
    code = "PERMISSION_DENIED"
    http_status = 403

    def __init__(self, permission_code: str):
        super().__init__(f"Permission denied: {permission_code}", permission=permission_code)
        self.permission_code = permission_code


class SessionNotFound(InventorySessionError):
    """No session with that id in the actor's organization."""
    code = "SESSION_NOT_FOUND"
    http_status = 404

    def __init__(self, session_id):
        super().__init__(f"Inventory session {session_id} not found", session_id=session_id)
        self.session_id = session_id


class SessionItemNotFound(InventorySessionError):
    """Material is not a line of the session."""
    code = "SESSION_ITEM_NOT_FOUND"
    http_status = 404

    def __init__(self, session_id, material_id):
        super().__init__(
            f"Material {material_id} is not on inventory session {session_id}",
            session_id=session_id,
            material_id=material_id,
        )
        self.session_id = session_id
        self.material_id = material_id


class SessionAlreadyApproved(InventorySessionError):
    """Draft-only mutation attempted on an approved or deleted session."""
    code = "SESSION_ALREADY_APPROVED"
    http_status = 409

    def __init__(self, session_id, state: str):
        super().__init__(
            f"Inventory session {session_id} is {state}, not a draft",
            session_id=session_id,
            state=state,
        )
        self.session_id = session_id
        self.state = state


class InvalidLocation(InventorySessionError):
    """Location missing, soft-deleted or owned by another organization."""
    code = "INVALID_LOCATION"

    def __init__(self, location_id):
        super().__init__(f"Inventory location {location_id} is not available", location_id=location_id)
        self.location_id = location_id


class InvalidSessionDate(InventorySessionError):
    code = "INVALID_SESSION_DATE"

    def __init__(self, value):
        super().__init__(f"Invalid session date: {value!r}", value=value)


class MaterialNotEligible(InventorySessionError):
    """Material missing, soft-deleted or outside the session's location."""
    code = "MATERIAL_NOT_ELIGIBLE"

    def __init__(self, session_id, material_id, reason: str):
        super().__init__(
            f"Material {material_id} cannot be added to inventory session {session_id}: {reason}",
            session_id=session_id,
            material_id=material_id,
            reason=reason,
        )
        self.material_id = material_id
        self.reason = reason


class InvalidQuantity(InventorySessionError):
    code = "INVALID_QUANTITY"

    def __init__(self, value):
        super().__init__(f"Counted quantity cannot be negative: {value}", value=str(value))


class ApprovalBlocked(InventorySessionError):
    """
    Approval gate not satisfied.

    reason is one of NOT_DRAFT, EMPTY_SESSION, MISSING_COUNTS.
    """
    code = "APPROVAL_BLOCKED"
    http_status = 409

    NOT_DRAFT = "NOT_DRAFT"
    EMPTY_SESSION = "EMPTY_SESSION"
    MISSING_COUNTS = "MISSING_COUNTS"

    def __init__(self, session_id, reason: str, missing_count: int = 0):
        super().__init__(
            f"Inventory session {session_id} cannot be approved: {reason}",
            session_id=session_id,
            reason=reason,
            missing_count=missing_count,
        )
        self.session_id = session_id
        self.reason = reason
        self.missing_count = missing_count


class StoreFailure(InventorySessionError):
    """Opaque backing-store failure. Always logged before it is raised."""
    code = "STORE_FAILURE"
    http_status = 500

    def __init__(self, operation: str, **context):
        super().__init__(f"{operation} failed", operation=operation, **context)
        self.operation = operation
        self.context = context
