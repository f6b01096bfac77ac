# Overview: Pytest coverage for the stocktake session lifecycle.

"""
Stocktake engine tests.

Covers:
- Opening sessions (location scoping, dates, descriptions)
- Idempotent add and the system quantity snapshot
- Bulk add of a whole location (chunked, re-runnable)
- Counted quantity entry and normalization
- Approval gate and the atomic approval commit
- Read-only approved/deleted sessions
- Tenant isolation
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from sitestock.extensions import db
from sitestock.errors import (
    ApprovalBlocked,
    InvalidLocation,
    InvalidQuantity,
    InvalidSessionDate,
    MaterialNotEligible,
    PermissionDenied,
    SessionAlreadyApproved,
    SessionItemNotFound,
    SessionNotFound,
    StoreFailure,
)
from sitestock.models import InventorySession, InventorySessionItem, Material, StockAdjustment
from sitestock.services import inventory_session_service as engine
from sitestock.services import concurrency, session_store, stock_service
from sitestock.services.permission_service import Actor
from sitestock.time_utils import today


def _item_count(session_id):
    return db.session.query(InventorySessionItem).filter_by(session_id=session_id).count()


@pytest.fixture
def failing_commits(monkeypatch):
    """
    Make the next N commits raise a lock error ("database is locked").

    Returns a setter: failing_commits(n). Retry backoff is disabled.
    """
    real_commit = db.session.commit
    state = {"remaining": 0, "calls": 0}

    def commit():
        state["calls"] += 1
        if state["remaining"] > 0:
            state["remaining"] -= 1
            raise OperationalError("COMMIT", None, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(concurrency.time, "sleep", lambda _seconds: None)
    monkeypatch.setattr(db.session, "commit", commit)

    def arm(count):
        state["remaining"] = count
        state["calls"] = 0
        return state

    return arm


@pytest.fixture
def draft(actor_a, location_a, materials_a):
    return engine.open_session(actor_a, location_a.id, description="Monthly count")


@pytest.fixture
def counted_draft(actor_a, draft, materials_a):
    """Draft with cement counted short (10 -> 8) and rebar counted over (5 -> 6)."""
    engine.add_item(actor_a, draft.id, materials_a["cement"].id)
    engine.add_item(actor_a, draft.id, materials_a["rebar"].id)
    engine.set_counted_qty(actor_a, draft.id, materials_a["cement"].id, "8")
    engine.set_counted_qty(actor_a, draft.id, materials_a["rebar"].id, "6")
    return draft


class TestOpenSession:

    def test_open_session_defaults(self, actor_a, location_a):
        session = engine.open_session(actor_a, location_a.id)

        assert session.id is not None
        assert session.is_draft
        assert session.session_date == today()
        assert session.inventory_location_id == location_a.id
        assert session.created_by_user_id == actor_a.user_id
        assert session.org_id == actor_a.org_id

    def test_description_trimmed_and_date_parsed(self, actor_a, location_a):
        session = engine.open_session(actor_a, location_a.id, session_date="2026-03-31", description="  Q1 close  ")

        assert session.session_date == date(2026, 3, 31)
        assert session.description == "Q1 close"

    def test_blank_description_stored_as_none(self, actor_a, location_a):
        session = engine.open_session(actor_a, location_a.id, description="   ")
        assert session.description is None

    def test_invalid_date_rejected(self, actor_a, location_a):
        with pytest.raises(InvalidSessionDate):
            engine.open_session(actor_a, location_a.id, session_date="31.03.2026")

    def test_deleted_location_rejected(self, actor_a, retired_location_a):
        with pytest.raises(InvalidLocation):
            engine.open_session(actor_a, retired_location_a.id)

    def test_foreign_location_rejected(self, actor_a, location_b):
        with pytest.raises(InvalidLocation):
            engine.open_session(actor_a, location_b.id)

        assert db.session.query(InventorySession).count() == 0

    def test_foreman_cannot_open(self, foreman_actor_a, location_a):
        with pytest.raises(PermissionDenied):
            engine.open_session(foreman_actor_a, location_a.id)

        assert db.session.query(InventorySession).count() == 0


class TestAddItem:

    def test_add_snapshots_system_qty(self, actor_a, draft, materials_a):
        outcome = engine.add_item(actor_a, draft.id, materials_a["cement"].id)

        assert outcome.inserted is True
        assert outcome.item.system_qty == Decimal("10")
        assert outcome.item.counted_qty is None

    def test_add_twice_is_idempotent(self, actor_a, draft, materials_a):
        first = engine.add_item(actor_a, draft.id, materials_a["cement"].id)
        second = engine.add_item(actor_a, draft.id, materials_a["cement"].id)

        assert second.inserted is False
        assert second.item.id == first.item.id
        assert _item_count(draft.id) == 1

    def test_snapshot_not_recomputed_when_stock_moves(self, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["cement"].id)

        cement = db.session.get(Material, materials_a["cement"].id)
        cement.stock_qty = Decimal("99")
        db.session.commit()

        again = engine.add_item(actor_a, draft.id, materials_a["cement"].id)
        assert again.item.system_qty == Decimal("10")

    def test_deleted_material_not_eligible(self, actor_a, draft, materials_a):
        with pytest.raises(MaterialNotEligible) as exc:
            engine.add_item(actor_a, draft.id, materials_a["paint"].id)
        assert exc.value.reason == "deleted"

    def test_material_of_other_location_not_eligible(self, actor_a, draft, materials_a):
        with pytest.raises(MaterialNotEligible) as exc:
            engine.add_item(actor_a, draft.id, materials_a["pipes"].id)
        assert exc.value.reason == "wrong_location"
        assert _item_count(draft.id) == 0

    def test_material_of_other_tenant_not_found(self, actor_a, draft, material_b):
        with pytest.raises(MaterialNotEligible) as exc:
            engine.add_item(actor_a, draft.id, material_b.id)
        assert exc.value.reason == "not_found"

    def test_unknown_session(self, actor_a, materials_a):
        with pytest.raises(SessionNotFound):
            engine.add_item(actor_a, 99999, materials_a["cement"].id)

    def test_unique_constraint_race_returns_existing_line(self, monkeypatch, actor_a, draft, materials_a):
        first = engine.add_item(actor_a, draft.id, materials_a["cement"].id)

        # Another request inserted the line between our lookup and our insert
        real_get_item = session_store.get_item
        misses = []

        def get_item_missing_once(session_id, material_id):
            if not misses:
                misses.append(material_id)
                return None
            return real_get_item(session_id, material_id)

        monkeypatch.setattr(session_store, "get_item", get_item_missing_once)

        second = engine.add_item(actor_a, draft.id, materials_a["cement"].id)

        assert misses == [materials_a["cement"].id]
        assert second.inserted is False
        assert second.item.id == first.item.id
        assert _item_count(draft.id) == 1


class TestBulkAdd:

    def test_adds_every_eligible_material(self, actor_a, draft, materials_a):
        result = engine.add_all_eligible_items(actor_a, draft.id)

        assert (result.attempted, result.inserted, result.skipped) == (3, 3, 0)

        _, items = engine.get_session_details(actor_a, draft.id)
        material_ids = {item.material_id for item in items}
        assert material_ids == {materials_a["cement"].id, materials_a["rebar"].id, materials_a["sand"].id}

    def test_rerun_skips_existing_lines(self, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["rebar"].id)

        first = engine.add_all_eligible_items(actor_a, draft.id)
        second = engine.add_all_eligible_items(actor_a, draft.id)

        assert (first.inserted, first.skipped) == (2, 1)
        assert (second.inserted, second.skipped) == (0, 3)
        assert _item_count(draft.id) == 3

    def test_chunk_size_does_not_change_result(self, app, monkeypatch, actor_a, draft, materials_a):
        monkeypatch.setitem(app.config, "INVENTORY_BULK_CHUNK_SIZE", 2)

        result = engine.add_all_eligible_items(actor_a, draft.id)

        assert result.inserted == 3
        assert _item_count(draft.id) == 3

    def test_result_to_dict(self, actor_a, draft, materials_a):
        result = engine.add_all_eligible_items(actor_a, draft.id)
        assert result.to_dict() == {"attempted": 3, "inserted": 3, "skipped": 0}

    def test_bulk_add_on_approved_session_rejected(self, actor_a, counted_draft):
        engine.approve(actor_a, counted_draft.id)

        with pytest.raises(SessionAlreadyApproved):
            engine.add_all_eligible_items(actor_a, counted_draft.id)

    def test_lost_chunk_commit_replays_whole_run(self, app, monkeypatch, failing_commits, actor_a, draft, materials_a):
        monkeypatch.setitem(app.config, "INVENTORY_BULK_CHUNK_SIZE", 2)
        state = failing_commits(1)

        result = engine.add_all_eligible_items(actor_a, draft.id)

        assert state["calls"] > 1
        assert (result.attempted, result.inserted, result.skipped) == (3, 3, 0)
        db.session.expire_all()
        assert _item_count(draft.id) == 3


class TestCountedQuantity:

    def test_decimal_comma_accepted(self, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["cement"].id)

        item = engine.set_counted_qty(actor_a, draft.id, materials_a["cement"].id, "12,5")

        assert item.counted_qty == Decimal("12.5")
        assert item.diff_qty == Decimal("2.5")

    def test_blank_clears_count(self, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["cement"].id)
        engine.set_counted_qty(actor_a, draft.id, materials_a["cement"].id, "4")

        item = engine.set_counted_qty(actor_a, draft.id, materials_a["cement"].id, "")

        assert item.counted_qty is None
        assert item.diff_qty is None

    def test_negative_rejected_and_previous_count_kept(self, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["cement"].id)
        engine.set_counted_qty(actor_a, draft.id, materials_a["cement"].id, "4")

        with pytest.raises(InvalidQuantity):
            engine.set_counted_qty(actor_a, draft.id, materials_a["cement"].id, "-2")

        _, items = engine.get_session_details(actor_a, draft.id)
        assert items[0].counted_qty == Decimal("4")

    def test_count_for_material_not_on_session(self, actor_a, draft, materials_a):
        with pytest.raises(SessionItemNotFound):
            engine.set_counted_qty(actor_a, draft.id, materials_a["rebar"].id, "1")

    def test_note_is_trimmed(self, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["sand"].id)

        item = engine.set_item_note(actor_a, draft.id, materials_a["sand"].id, "  wet, re-weigh  ")

        assert item.note == "wet, re-weigh"

    def test_count_and_note_share_one_commit(self, failing_commits, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["cement"].id)
        state = failing_commits(0)

        item = engine.update_item(actor_a, draft.id, materials_a["cement"].id, counted_qty="9,5", note=" torn bag ")

        assert state["calls"] == 1
        assert item.counted_qty == Decimal("9.5")
        assert item.note == "torn bag"

    def test_invalid_count_leaves_note_untouched(self, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["cement"].id)

        with pytest.raises(InvalidQuantity):
            engine.update_item(actor_a, draft.id, materials_a["cement"].id, counted_qty="-1", note="recount")

        _, items = engine.get_session_details(actor_a, draft.id)
        assert items[0].note is None
        assert items[0].counted_qty is None

    def test_unset_fields_are_not_touched(self, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["cement"].id)
        engine.update_item(actor_a, draft.id, materials_a["cement"].id, counted_qty="3", note="pallet 2")

        item = engine.update_item(actor_a, draft.id, materials_a["cement"].id, note=None)

        assert item.counted_qty == Decimal("3")
        assert item.note is None


class TestRemoveItem:

    def test_remove_existing_line(self, actor_a, draft, materials_a):
        engine.add_item(actor_a, draft.id, materials_a["cement"].id)

        assert engine.remove_item(actor_a, draft.id, materials_a["cement"].id) is True
        assert _item_count(draft.id) == 0

    def test_remove_missing_line_is_noop(self, actor_a, draft, materials_a):
        assert engine.remove_item(actor_a, draft.id, materials_a["cement"].id) is False


class TestApprove:

    def test_empty_session_blocked(self, actor_a, draft):
        with pytest.raises(ApprovalBlocked) as exc:
            engine.approve(actor_a, draft.id)
        assert exc.value.reason == ApprovalBlocked.EMPTY_SESSION

    def test_missing_counts_blocked(self, actor_a, counted_draft, materials_a):
        engine.add_item(actor_a, counted_draft.id, materials_a["sand"].id)

        with pytest.raises(ApprovalBlocked) as exc:
            engine.approve(actor_a, counted_draft.id)

        assert exc.value.reason == ApprovalBlocked.MISSING_COUNTS
        assert exc.value.missing_count == 1
        assert db.session.get(InventorySession, counted_draft.id).is_draft

    def test_approve_overwrites_stock(self, actor_a, counted_draft, materials_a):
        session = engine.approve(actor_a, counted_draft.id)

        assert session.approved is True
        assert session.approved_by_user_id == actor_a.user_id
        assert session.approved_at is not None

        assert db.session.get(Material, materials_a["cement"].id).stock_qty == Decimal("8")
        assert db.session.get(Material, materials_a["rebar"].id).stock_qty == Decimal("6")
        # Not on the session: untouched
        assert db.session.get(Material, materials_a["sand"].id).stock_qty == Decimal("0")

        adjustments = db.session.query(StockAdjustment).filter_by(session_id=counted_draft.id).all()
        deltas = {a.material_id: a.delta_qty for a in adjustments}
        assert deltas == {
            materials_a["cement"].id: Decimal("-2"),
            materials_a["rebar"].id: Decimal("1"),
        }

    def test_adjuster_receives_counted_pairs(self, actor_a, counted_draft, materials_a):
        calls = []

        def adjuster(session, items, user_id):
            calls.append((session.id, sorted((i.material_id, i.counted_qty) for i in items), user_id))

        engine.approve(actor_a, counted_draft.id, stock_adjuster=adjuster)

        assert calls == [(
            counted_draft.id,
            sorted([
                (materials_a["cement"].id, Decimal("8")),
                (materials_a["rebar"].id, Decimal("6")),
            ]),
            actor_a.user_id,
        )]

    def test_adjuster_failure_rolls_back_approval(self, actor_a, counted_draft, materials_a):
        def failing_adjuster(session, items, user_id):
            stock_service.apply_counted_quantities(session, items, user_id)
            raise RuntimeError("stock ledger unavailable")

        with pytest.raises(StoreFailure) as exc:
            engine.approve(actor_a, counted_draft.id, stock_adjuster=failing_adjuster)
        assert exc.value.operation == "approve"

        db.session.expire_all()
        assert db.session.get(InventorySession, counted_draft.id).is_draft
        assert db.session.get(Material, materials_a["cement"].id).stock_qty == Decimal("10")
        assert db.session.query(StockAdjustment).count() == 0

        # Still a draft: a retry goes through
        engine.approve(actor_a, counted_draft.id)
        assert db.session.get(Material, materials_a["cement"].id).stock_qty == Decimal("8")

    def test_lock_error_on_commit_replays_approval(self, failing_commits, actor_a, counted_draft, materials_a):
        state = failing_commits(1)

        session = engine.approve(actor_a, counted_draft.id)

        assert state["calls"] == 2
        assert session.approved is True
        db.session.expire_all()
        assert db.session.get(InventorySession, counted_draft.id).approved is True
        assert db.session.get(Material, materials_a["cement"].id).stock_qty == Decimal("8")
        assert db.session.query(StockAdjustment).filter_by(session_id=counted_draft.id).count() == 2

    def test_commit_that_keeps_failing_is_reported(self, failing_commits, actor_a, counted_draft, materials_a):
        failing_commits(3)

        with pytest.raises(StoreFailure) as exc:
            engine.approve(actor_a, counted_draft.id)
        assert exc.value.operation == "approve"

        db.session.expire_all()
        assert db.session.get(InventorySession, counted_draft.id).is_draft
        assert db.session.get(Material, materials_a["cement"].id).stock_qty == Decimal("10")
        assert db.session.query(StockAdjustment).count() == 0

    def test_second_approval_blocked(self, actor_a, counted_draft):
        engine.approve(actor_a, counted_draft.id)

        with pytest.raises(ApprovalBlocked) as exc:
            engine.approve(actor_a, counted_draft.id)
        assert exc.value.reason == ApprovalBlocked.NOT_DRAFT


class TestReadOnlyAfterApproval:

    @pytest.fixture
    def approved(self, actor_a, counted_draft):
        engine.approve(actor_a, counted_draft.id)
        return counted_draft

    def test_counts_frozen(self, actor_a, approved, materials_a):
        with pytest.raises(SessionAlreadyApproved) as exc:
            engine.set_counted_qty(actor_a, approved.id, materials_a["cement"].id, "1")
        assert exc.value.state == "APPROVED"

    def test_lines_frozen(self, actor_a, approved, materials_a):
        with pytest.raises(SessionAlreadyApproved):
            engine.add_item(actor_a, approved.id, materials_a["sand"].id)
        with pytest.raises(SessionAlreadyApproved):
            engine.remove_item(actor_a, approved.id, materials_a["cement"].id)
        with pytest.raises(SessionAlreadyApproved):
            engine.set_item_note(actor_a, approved.id, materials_a["cement"].id, "late note")

    def test_cannot_delete_approved(self, actor_a, approved):
        with pytest.raises(SessionAlreadyApproved):
            engine.delete_session(actor_a, approved.id)


class TestDeleteSession:

    def test_soft_delete_draft(self, actor_a, draft):
        session = engine.delete_session(actor_a, draft.id)

        assert session.deleted_at is not None
        assert session.state == "DELETED"
        assert db.session.get(InventorySession, draft.id) is not None

    def test_deleted_session_is_read_only(self, actor_a, draft, materials_a):
        engine.delete_session(actor_a, draft.id)

        with pytest.raises(SessionAlreadyApproved) as exc:
            engine.add_item(actor_a, draft.id, materials_a["cement"].id)
        assert exc.value.state == "DELETED"

        with pytest.raises(ApprovalBlocked):
            engine.approve(actor_a, draft.id)


class TestAccessAndIsolation:

    def test_other_tenant_sees_not_found(self, actor_b, draft):
        with pytest.raises(SessionNotFound):
            engine.get_session_details(actor_b, draft.id)
        with pytest.raises(SessionNotFound):
            engine.delete_session(actor_b, draft.id)

    def test_actor_without_capabilities_denied(self, storeman_a, draft, materials_a):
        nobody = Actor(user_id=storeman_a.id, org_id=storeman_a.org_id)

        with pytest.raises(PermissionDenied):
            engine.add_item(nobody, draft.id, materials_a["cement"].id)
        with pytest.raises(PermissionDenied):
            engine.get_session_details(nobody, draft.id)

    def test_details_of_empty_session(self, actor_a, draft):
        session, items = engine.get_session_details(actor_a, draft.id)

        assert session.id == draft.id
        assert items == []

    def test_details_lines_ordered_by_title(self, actor_a, draft, materials_a):
        engine.add_all_eligible_items(actor_a, draft.id)

        _, items = engine.get_session_details(actor_a, draft.id)

        assert [item.material.title for item in items] == ["Cement 25kg", "Rebar 12mm", "Sand"]
