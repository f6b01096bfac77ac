# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/sitestock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Org Name"] [--location "Main store"]
#   Idempotent bootstrap: default org, roles, permissions, owner user and one location.
# - python -m flask system init-permissions
#   Initialize permissions and assign defaults to the roles of every organization.
#
# Storage locations:
# - python -m flask locations create --org-id 1 --label "Container B"
# - python -m flask locations list [--org-id 1] [--all]
#
# Users and permissions:
# - python -m flask users create --org-id 1 --username jan --email jan@site.local --password "Password123!" --role storeman
# - python -m flask perms list [--category INVENTORY]
#
# Stocktakes:
# - python -m flask inventory check [--org-id 1]
#   Report approved stocktakes that still hold uncounted lines.

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from .extensions import db
from .models import InventoryLocation, Organization, Role, User
from .permissions import DEFAULT_ROLES, get_all_permission_codes, get_permission_definition
from .services.auth_service import create_user, create_default_roles, assign_role, PasswordValidationError
from .services import permission_service, session_store


ROLE_NAMES = [name for name, _ in DEFAULT_ROLES]


def _resolve_org(org_id):
    if org_id:
        return db.session.query(Organization).filter_by(id=org_id).first()
    return db.session.query(Organization).order_by(Organization.id.asc()).first()


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@click.option('--location', 'location_label', default='Main store', help='Default storage location label')
@with_appcontext
def init_system(org_name, org_code, location_label):
    """
    Initialize the system: organization, roles, permissions, owner user and
    a default storage location.

    Default owner credentials: owner / Password123!
    SECURITY: Change the password immediately in production!
    """
    click.echo("START Initializing sitestock...")

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    create_default_roles(org.id)
    roles = db.session.query(Role).filter_by(org_id=org.id).all()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")

    perm_count = permission_service.initialize_permissions()
    assignment_count = permission_service.assign_default_role_permissions(org.id)
    click.echo(f"PASS Created {perm_count} permissions, {assignment_count} role assignments")

    location = db.session.query(InventoryLocation).filter_by(org_id=org.id, label=location_label).first()
    if not location:
        location = InventoryLocation(org_id=org.id, label=location_label)
        db.session.add(location)
        db.session.commit()
        click.echo(f"PASS Created location: {location.label} (ID: {location.id})")
    else:
        click.echo(f"PASS Using existing location: {location.label} (ID: {location.id})")

    existing = db.session.query(User).filter_by(org_id=org.id, username="owner").first()
    if existing:
        click.echo("WARN  User 'owner' already exists in org, skipping...")
    else:
        try:
            user = create_user(
                username="owner",
                email="owner@sitestock.local",
                password="Password123!",
                org_id=org.id,
            )
            assign_role(user.id, "owner")
            click.echo("PASS Created user: owner (owner@sitestock.local) with role 'owner'")
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Failed to create user 'owner': {e}")

    click.echo("DONE sitestock initialized")


@system_group.command('init-permissions')
@with_appcontext
def init_permissions():
    """Create missing permissions and link them to the default roles of every organization."""
    perm_count = permission_service.initialize_permissions()
    assignment_count = 0
    for org in db.session.query(Organization).all():
        assignment_count += permission_service.assign_default_role_permissions(org.id)
    click.echo(f"PASS Created {perm_count} permissions, {assignment_count} role assignments")


@click.group('locations')
def locations_group():
    """Storage location management commands."""


@locations_group.command('create')
@click.option('--org-id', type=int, help='Organization ID (uses default if not specified)')
@click.option('--label', prompt=True, help='Location label, unique within the organization')
@with_appcontext
def create_location(org_id, label):
    org = _resolve_org(org_id)
    if not org:
        click.echo("FAIL Organization not found. Run 'python -m flask system init' first.")
        return

    label = label.strip()
    if not label:
        click.echo("FAIL Label is required")
        return

    location = InventoryLocation(org_id=org.id, label=label)
    db.session.add(location)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        click.echo(f"FAIL Location '{label}' already exists in {org.name}")
        return

    click.echo(f"PASS Created location: {location.label} (ID: {location.id}, Org: {org.name})")


@locations_group.command('list')
@click.option('--org-id', type=int, help='Organization ID (uses default if not specified)')
@click.option('--all', 'include_deleted', is_flag=True, help='Include soft-deleted locations')
@with_appcontext
def list_locations(org_id, include_deleted):
    org = _resolve_org(org_id)
    if not org:
        click.echo("FAIL Organization not found")
        return

    query = db.session.query(InventoryLocation).filter_by(org_id=org.id)
    if not include_deleted:
        query = query.filter(InventoryLocation.deleted_at.is_(None))

    locations = query.order_by(InventoryLocation.label.asc()).all()
    if not locations:
        click.echo("No locations found")
        return

    for location in locations:
        suffix = " (deleted)" if location.is_deleted else ""
        click.echo(f"{location.id:>5}  {location.label}{suffix}")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--org-id', type=int, help='Organization ID (uses default if not specified)')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLE_NAMES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(org_id, username, email, password, role):
    """
    Create a user within an organization.

    Password must be 8+ characters with uppercase, lowercase, digit and
    special character.
    """
    org = _resolve_org(org_id)
    if not org:
        click.echo("FAIL Organization not found. Run 'python -m flask system init' first.")
        return

    try:
        create_default_roles(org.id)
        user = create_user(username=username, email=email, password=password, org_id=org.id)
        assign_role(user.id, role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {username} ({email}) with role '{role}' in {org.name}")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--category', help='Filter by category (INVENTORY, MATERIALS, REPORTS, SYSTEM)')
@with_appcontext
def list_permissions(category):
    for code in get_all_permission_codes():
        definition = get_permission_definition(code)
        if category and definition["category"] != category.upper():
            continue
        click.echo(f"{definition['category']:<10} {code:<24} {definition['name']}")


@click.group('inventory')
def inventory_group():
    """Stocktake consistency commands."""


@inventory_group.command('check')
@click.option('--org-id', type=int, help='Limit the check to one organization')
@with_appcontext
def check_inventory(org_id):
    """Every approved stocktake must have a counted quantity on every line."""
    rows = session_store.approved_sessions_missing_counts(org_id)
    if not rows:
        click.echo("PASS Every approved stocktake is fully counted")
        return

    for row_org_id, session_id, missing in rows:
        click.echo(f"FAIL Stocktake {session_id} (org {row_org_id}) was approved with {missing} uncounted line(s)")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(locations_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(inventory_group)
