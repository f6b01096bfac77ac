# Overview: Pytest coverage for the storage location directory.

import pytest

from sitestock.errors import InvalidLocation, PermissionDenied
from sitestock.services.location_service import get_location, list_locations
from sitestock.services.permission_service import Actor

from conftest import make_material


class TestGetLocation:

    def test_active_location(self, actor_a, location_a):
        assert get_location(actor_a, location_a.id).label == "Main store"

    def test_deleted_location(self, actor_a, retired_location_a):
        with pytest.raises(InvalidLocation):
            get_location(actor_a, retired_location_a.id)

    def test_other_tenant_location_looks_missing(self, actor_a, location_b):
        with pytest.raises(InvalidLocation) as exc:
            get_location(actor_a, location_b.id)
        assert exc.value.location_id == location_b.id

    def test_foreman_can_read_locations(self, foreman_actor_a, location_a):
        assert get_location(foreman_actor_a, location_a.id).id == location_a.id


class TestListLocations:

    def test_only_locations_with_materials_by_default(self, actor_a, materials_a, retired_location_a):
        labels = [loc.label for loc in list_locations(actor_a)]
        assert labels == ["Container B", "Main store"]

    def test_all_active_locations(self, actor_a, location_a, container_a, retired_location_a):
        labels = [loc.label for loc in list_locations(actor_a, only_with_materials=False)]
        assert labels == ["Container B", "Main store"]

    def test_include_deleted(self, actor_a, location_a, retired_location_a):
        labels = [loc.label for loc in list_locations(actor_a, include_deleted=True, only_with_materials=False)]
        assert labels == ["Main store", "Old shed"]

    def test_location_holding_only_deleted_materials_hidden(self, actor_a, location_a, container_a):
        make_material(container_a, "Old tarp", 1, deleted=True)

        assert list_locations(actor_a) == []

    def test_tenant_scoped(self, actor_b, materials_a, material_b):
        assert [loc.label for loc in list_locations(actor_b)] == ["Yard"]

    def test_requires_materials_or_inventory_access(self, storeman_a, location_a):
        nobody = Actor(user_id=storeman_a.id, org_id=storeman_a.org_id)
        with pytest.raises(PermissionDenied):
            list_locations(nobody)
