"""
Pytest fixtures for sitestock backend tests.

Provides test database setup, two tenants with locations, materials and
users, actors for the stocktake engine, and a test client.
"""

from decimal import Decimal

import pytest
from sitestock import create_app
from sitestock.extensions import db
from sitestock.models import Organization, InventoryLocation, Material
from sitestock.services.auth_service import create_user, create_default_roles, assign_role
from sitestock.services import permission_service
from sitestock.time_utils import utcnow


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Build", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Construction", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def setup_roles(db_session, org_a, org_b):
    """Setup default roles and permissions for both tenants."""
    permission_service.initialize_permissions()
    for org in (org_a, org_b):
        create_default_roles(org.id)
        permission_service.assign_default_role_permissions(org.id)
    db_session.commit()


def make_user(org, username: str, role: str):
    user = create_user(
        username=username,
        email=f"{username}@{org.code.lower()}.test",
        password=TEST_PASSWORD,
        org_id=org.id,
        rounds=4,
    )
    assign_role(user.id, role)
    return user


@pytest.fixture(scope='function')
def storeman_a(db_session, org_a, setup_roles):
    return make_user(org_a, "storeman_a", "storeman")


@pytest.fixture(scope='function')
def manager_a(db_session, org_a, setup_roles):
    return make_user(org_a, "manager_a", "manager")


@pytest.fixture(scope='function')
def foreman_a(db_session, org_a, setup_roles):
    """Foremen can see materials but have no access to stocktakes."""
    return make_user(org_a, "foreman_a", "foreman")


@pytest.fixture(scope='function')
def manager_b(db_session, org_b, setup_roles):
    return make_user(org_b, "manager_b", "manager")


@pytest.fixture(scope='function')
def actor_a(storeman_a):
    return permission_service.build_actor(storeman_a)


@pytest.fixture(scope='function')
def manager_actor_a(manager_a):
    return permission_service.build_actor(manager_a)


@pytest.fixture(scope='function')
def foreman_actor_a(foreman_a):
    return permission_service.build_actor(foreman_a)


@pytest.fixture(scope='function')
def actor_b(manager_b):
    return permission_service.build_actor(manager_b)


@pytest.fixture(scope='function')
def location_a(db_session, org_a):
    """Main store of Organization A."""
    location = InventoryLocation(org_id=org_a.id, label="Main store")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def container_a(db_session, org_a):
    """Second location of Organization A."""
    location = InventoryLocation(org_id=org_a.id, label="Container B")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def retired_location_a(db_session, org_a):
    location = InventoryLocation(org_id=org_a.id, label="Old shed", deleted_at=utcnow())
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def location_b(db_session, org_b):
    location = InventoryLocation(org_id=org_b.id, label="Yard")
    db_session.add(location)
    db_session.commit()
    return location


def make_material(location, title, stock_qty, unit="pcs", unit_price=None, deleted=False):
    material = Material(
        org_id=location.org_id,
        inventory_location_id=location.id,
        title=title,
        unit=unit,
        stock_qty=Decimal(str(stock_qty)),
        unit_price=Decimal(str(unit_price)) if unit_price is not None else None,
        deleted_at=utcnow() if deleted else None,
    )
    db.session.add(material)
    db.session.commit()
    return material


@pytest.fixture(scope='function')
def materials_a(db_session, location_a, container_a):
    """
    Materials of Organization A keyed by short name.

    location_a holds cement, rebar, sand and a deleted paint;
    container_a holds pipes.
    """
    return {
        "cement": make_material(location_a, "Cement 25kg", 10, unit="bag", unit_price="20.00"),
        "rebar": make_material(location_a, "Rebar 12mm", 5, unit="m", unit_price="3.50"),
        "sand": make_material(location_a, "Sand", 0, unit="t"),
        "paint": make_material(location_a, "Paint white", 4, unit="l", deleted=True),
        "pipes": make_material(container_a, "PVC pipe 110", 12, unit="m", unit_price="8.00"),
    }


@pytest.fixture(scope='function')
def material_b(db_session, location_b):
    return make_material(location_b, "Bricks", 500, unit="pcs", unit_price="1.20")


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str, locale: str | None = None) -> dict:
    """Helper to create Authorization headers."""
    headers = {'Authorization': f'Bearer {token}'}
    if locale:
        headers['Accept-Language'] = locale
    return headers


@pytest.fixture(scope='function')
def storeman_headers(client, storeman_a):
    return auth_headers(get_auth_token(client, "storeman_a"))


@pytest.fixture(scope='function')
def foreman_headers(client, foreman_a):
    return auth_headers(get_auth_token(client, "foreman_a"))


@pytest.fixture(scope='function')
def manager_b_headers(client, manager_b):
    return auth_headers(get_auth_token(client, "manager_b"))
