# Overview: Pytest coverage for the diff policy, count normalization and the approval gate.

from decimal import Decimal
from types import SimpleNamespace

import pytest

from sitestock.errors import ApprovalBlocked, InvalidQuantity
from sitestock.numbers import parse_decimal, qty_to_json
from sitestock.services.reconciliation import (
    DIFF_MISSING,
    DIFF_NEUTRAL,
    DIFF_SHRINK,
    DIFF_SURPLUS,
    can_approve,
    check_approval_gate,
    classify_diff,
    diff_quantity,
    normalize_counted_qty,
    summarize_lines,
)


def line(system, counted):
    return SimpleNamespace(
        system_qty=Decimal(str(system)),
        counted_qty=Decimal(str(counted)) if counted is not None else None,
    )


class TestDiffPolicy:

    def test_diff_is_counted_minus_system(self):
        assert diff_quantity(Decimal("10"), Decimal("7")) == Decimal("-3")
        assert diff_quantity(Decimal("10"), Decimal("12.5")) == Decimal("2.5")

    def test_uncounted_line_has_no_diff(self):
        assert diff_quantity(Decimal("10"), None) is None

    @pytest.mark.parametrize(
        "diff, expected",
        [
            (None, DIFF_MISSING),
            (Decimal("0"), DIFF_NEUTRAL),
            (Decimal("0.001"), DIFF_SURPLUS),
            (Decimal("-4"), DIFF_SHRINK),
        ],
    )
    def test_classify_diff(self, diff, expected):
        assert classify_diff(diff) == expected


class TestCountNormalization:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("12,5", Decimal("12.5")),
            ("  7.25 ", Decimal("7.25")),
            (3, Decimal("3")),
            (2.5, Decimal("2.5")),
            ("0", Decimal("0")),
        ],
    )
    def test_numeric_input(self, raw, expected):
        assert normalize_counted_qty(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "NaN", "Infinity", True])
    def test_blank_or_unparsable_means_not_counted(self, raw):
        assert normalize_counted_qty(raw) is None

    def test_negative_count_rejected(self):
        with pytest.raises(InvalidQuantity):
            normalize_counted_qty("-1,5")

    def test_only_first_comma_is_a_decimal_separator(self):
        assert parse_decimal("1,234,5") is None

    def test_qty_to_json(self):
        assert qty_to_json(Decimal("12.500")) == 12.5
        assert qty_to_json(None) is None


class TestSummaryAndGate:

    def test_summarize_lines(self):
        totals = summarize_lines([
            line(10, 12),   # surplus +2
            line(5, 4),     # shrink -1
            line(3, 3),     # neutral
            line(8, None),  # missing
        ])

        assert totals.total == 4
        assert totals.counted == 3
        assert totals.missing == 1
        assert (totals.surplus, totals.shrink, totals.neutral) == (1, 1, 1)
        assert totals.net_diff == Decimal("1")

    def test_gate_blocks_non_draft(self):
        with pytest.raises(ApprovalBlocked) as exc:
            check_approval_gate(1, False, [line(1, 1)])
        assert exc.value.reason == ApprovalBlocked.NOT_DRAFT

    def test_gate_blocks_empty_session(self):
        with pytest.raises(ApprovalBlocked) as exc:
            check_approval_gate(1, True, [])
        assert exc.value.reason == ApprovalBlocked.EMPTY_SESSION

    def test_gate_blocks_missing_counts(self):
        with pytest.raises(ApprovalBlocked) as exc:
            check_approval_gate(1, True, [line(1, None), line(2, 2), line(3, None)])
        assert exc.value.reason == ApprovalBlocked.MISSING_COUNTS
        assert exc.value.missing_count == 2

    def test_zero_count_is_a_count(self):
        assert can_approve(True, [line(4, 0)]) is True

    def test_can_approve_matches_gate(self):
        assert can_approve(True, [line(1, 1), line(2, 3)]) is True
        assert can_approve(True, [line(1, None)]) is False
        assert can_approve(False, [line(1, 1)]) is False
        assert can_approve(True, []) is False
