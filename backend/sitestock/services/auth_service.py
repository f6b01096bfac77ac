# Overview: Service-layer operations for auth; users, password hashing and roles.

"""
Authentication service with multi-tenant users.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper/lower/digit/special required
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User, Role, UserRole, Organization
from ..permissions import DEFAULT_ROLES
from sitestock.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """Raises PasswordValidationError if requirements not met."""
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    org_id: int,
    full_name: str | None = None,
    rounds: int = 12,
) -> User:
    """Create a user in an active organization. Raises ValueError on conflicts."""
    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org or not org.is_active:
        raise ValueError("Organization is not active")

    existing = db.session.query(User).filter(
        User.org_id == org_id,
        db.or_(User.username == username, User.email == email),
    ).first()
    if existing:
        raise ValueError("Username or email already exists in this organization")

    user = User(
        org_id=org_id,
        username=username,
        email=email,
        full_name=full_name,
        password_hash=hash_password(password, rounds=rounds),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str, org_id: int | None = None) -> User | None:
    """
    Return the active user matching the credentials, or None.

    Username is only unique per organization: without org_id the login is
    refused when the username is ambiguous.
    """
    query = db.session.query(User).filter_by(username=username, is_active=True)
    if org_id is not None:
        query = query.filter_by(org_id=org_id)

    users = query.all()
    if len(users) != 1:
        return None

    user = users[0]
    if not user.organization or not user.organization.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign one of the user's organization roles to the user."""
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError(f"User {user_id} not found")

    role = db.session.query(Role).filter_by(org_id=user.org_id, name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(
        user_id=user_id,
        role_id=role.id
    ).first()

    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)

    db.session.add(user_role)
    db.session.commit()
    return user_role


def create_default_roles(org_id: int):
    """Create standard roles for a specific organization if they don't exist."""
    for name, desc in DEFAULT_ROLES:
        existing = db.session.query(Role).filter_by(org_id=org_id, name=name).first()
        if not existing:
            db.session.add(Role(org_id=org_id, name=name, description=desc))

    db.session.commit()
