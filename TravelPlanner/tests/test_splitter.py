"""
Balance calculator tests.

Tests cover:
- Net balances for the standard split scenarios
- Zero-sum and order independence
- Implicit participants, empty splits and malformed amounts
- The paid/share/net breakdown
"""

import logging
from decimal import Decimal

import pytest

from factories import ALICE, BOB, CAROL, make_expense
from splitter import calculate_balance_breakdown, compute_balances


class TestComputeBalances:
    """Tests for compute_balances()."""

    def test_single_expense_split_three_ways(self):
        """90 paid by A and split A, B, C leaves A +60 and B, C -30."""
        balances = compute_balances(
            [ALICE, BOB, CAROL],
            [make_expense(90, ALICE, [ALICE, BOB, CAROL])]
        )

        assert balances == {ALICE: Decimal("60"), BOB: Decimal("-30"), CAROL: Decimal("-30")}

    def test_two_expenses_net_out(self):
        """100 by A and 40 by B, both split A and B, leaves A +30 and B -30."""
        balances = compute_balances(
            [ALICE, BOB],
            [
                make_expense(100, ALICE, [ALICE, BOB]),
                make_expense(40, BOB, [ALICE, BOB]),
            ]
        )

        assert balances == {ALICE: Decimal("30"), BOB: Decimal("-30")}

    def test_participants_without_expenses_are_zero(self):
        """Every participant appears in the result, even with no expenses."""
        balances = compute_balances([ALICE, BOB, CAROL], [])

        assert balances == {ALICE: 0, BOB: 0, CAROL: 0}

    def test_payer_outside_split(self):
        """The payer does not need to share the expense."""
        balances = compute_balances(
            [ALICE, BOB, CAROL],
            [make_expense(50, ALICE, [BOB, CAROL])]
        )

        assert balances[ALICE] == Decimal("50")
        assert balances[BOB] == Decimal("-25")
        assert balances[CAROL] == Decimal("-25")

    def test_uneven_split_is_zero_sum(self):
        """Thirds of 100 still sum to zero."""
        balances = compute_balances(
            [ALICE, BOB, CAROL],
            [
                make_expense(100, ALICE, [ALICE, BOB, CAROL]),
                make_expense("33.33", BOB, [ALICE, CAROL]),
                make_expense("0.10", CAROL, [ALICE, BOB, CAROL]),
            ]
        )

        assert abs(sum(balances.values())) < Decimal("1e-6")

    def test_result_independent_of_expense_order(self):
        """Reordering the expenses does not change the balances."""
        expenses = [
            make_expense(100, ALICE, [ALICE, BOB, CAROL]),
            make_expense(45, BOB, [BOB, CAROL]),
            make_expense(12, CAROL, [ALICE]),
        ]

        forward = compute_balances([ALICE, BOB, CAROL], expenses)
        backward = compute_balances([ALICE, BOB, CAROL], list(reversed(expenses)))

        assert forward == backward

    def test_repeated_calls_give_same_result(self):
        """Calling twice with the same inputs gives identical output."""
        participants = [ALICE, BOB]
        expenses = [make_expense(10, ALICE, [ALICE, BOB])]

        assert compute_balances(participants, expenses) == compute_balances(participants, expenses)

    def test_accepts_firestore_documents(self):
        """Raw camelCase documents from the mobile client are accepted."""
        balances = compute_balances(
            [ALICE, BOB],
            [{"amount": 20.5, "paidBy": ALICE, "splitAmong": [ALICE, BOB]}]
        )

        assert balances[ALICE] == Decimal("10.25")
        assert balances[BOB] == Decimal("-10.25")

    def test_float_amounts_do_not_drift(self):
        """0.1 + 0.2 paid separately nets to exactly 0.3."""
        balances = compute_balances(
            [ALICE, BOB],
            [
                {"amount": 0.1, "paid_by": ALICE, "split_among": [BOB]},
                {"amount": 0.2, "paid_by": ALICE, "split_among": [BOB]},
            ]
        )

        assert balances[ALICE] == Decimal("0.3")

    def test_inputs_are_not_mutated(self):
        """The caller's participant list and expenses are left untouched."""
        participants = [ALICE, BOB]
        expense = make_expense(10, ALICE, [ALICE, BOB])

        compute_balances(participants, [expense])

        assert participants == [ALICE, BOB]
        assert expense.split_among == [ALICE, BOB]
        assert expense.amount == Decimal("10")


class TestEdgeCases:
    """Tests for the defensive handling of malformed expenses."""

    def test_unlisted_payer_tracked_implicitly(self, caplog):
        """A payer outside the participant list is accumulated, not dropped."""
        with caplog.at_level(logging.WARNING, logger="travel_planner.splitter"):
            balances = compute_balances(
                [ALICE, BOB],
                [make_expense(30, CAROL, [ALICE, BOB, CAROL])]
            )

        assert balances[CAROL] == Decimal("20")
        assert balances[ALICE] == Decimal("-10")
        assert sum(balances.values()) == 0
        assert "not a trip participant" in caplog.text

    def test_unlisted_splitter_tracked_implicitly(self):
        """A splitter outside the participant list is accumulated too."""
        balances = compute_balances([ALICE], [make_expense(10, ALICE, [ALICE, BOB])])

        assert balances == {ALICE: Decimal("5"), BOB: Decimal("-5")}

    def test_empty_split_credits_payer_only(self, caplog):
        """An expense with nobody to split it still credits the payer."""
        with caplog.at_level(logging.WARNING, logger="travel_planner.splitter"):
            balances = compute_balances([ALICE, BOB], [make_expense(40, ALICE, [])])

        assert balances == {ALICE: Decimal("40"), BOB: Decimal("0")}
        assert "no splitters" in caplog.text

    @pytest.mark.parametrize("amount", [-10, float("nan"), float("inf"), "abc", None])
    def test_malformed_amount_skipped(self, amount):
        """Negative, non-finite and non-numeric amounts are skipped."""
        balances = compute_balances(
            [ALICE, BOB],
            [
                {"amount": amount, "paidBy": ALICE, "splitAmong": [ALICE, BOB]},
                {"amount": 10, "paidBy": BOB, "splitAmong": [ALICE, BOB]},
            ]
        )

        assert balances == {ALICE: Decimal("-5"), BOB: Decimal("5")}


class TestBalanceBreakdown:
    """Tests for calculate_balance_breakdown()."""

    def test_breakdown_tracks_paid_and_share(self):
        """Paid, share and net are reported per participant."""
        breakdown = calculate_balance_breakdown(
            [ALICE, BOB, CAROL],
            [
                make_expense(90, ALICE, [ALICE, BOB, CAROL]),
                make_expense(20, BOB, [ALICE, BOB]),
            ]
        )

        assert breakdown[ALICE] == {
            "total_paid": Decimal("90"),
            "total_share": Decimal("40"),
            "net_balance": Decimal("50"),
        }
        assert breakdown[BOB]["total_paid"] == Decimal("20")
        assert breakdown[BOB]["net_balance"] == Decimal("-20")
        assert breakdown[CAROL]["total_paid"] == Decimal("0")

    def test_net_matches_compute_balances(self):
        """net_balance equals the compute_balances value for everyone."""
        participants = [ALICE, BOB, CAROL]
        expenses = [
            make_expense(100, ALICE, [ALICE, BOB, CAROL]),
            make_expense(7, CAROL, [BOB]),
        ]

        breakdown = calculate_balance_breakdown(participants, expenses)
        balances = compute_balances(participants, expenses)

        assert {p: e["net_balance"] for p, e in breakdown.items()} == balances
