"""
Result store tests.

Tests cover:
- Saving and loading balances, settlements, analytics and explanations
- Replacing stale settlement documents
- Live recomputation when expenses change
"""

from decimal import Decimal

import pytest

import expenses
import firebase_store
import trips
from factories import ALICE, BOB, CAROL
from settlement import SettlementTransfer


class TestSaveAndLoad:
    """Tests for the save_* functions and load_results()."""

    def test_balances_round_trip(self, trip):
        """Balances are stored rounded to 2 places and read back per email."""
        firebase_store.save_balances(trip.trip_id, {
            ALICE: {
                "total_paid": Decimal("100"),
                "total_share": Decimal("33.333333"),
                "net_balance": Decimal("66.666667"),
            },
        })

        results = firebase_store.load_results(trip.trip_id)

        assert results["balances"] == {
            ALICE: {"total_paid": 100.0, "total_share": 33.33, "net_balance": 66.67},
        }

    def test_settlements_replace_previous(self, trip):
        """Saving a shorter list removes transfers from the earlier save."""
        firebase_store.save_settlements(trip.trip_id, [
            SettlementTransfer(BOB, ALICE, Decimal("30")),
            SettlementTransfer(CAROL, ALICE, Decimal("30")),
        ])
        summary = firebase_store.save_settlements(trip.trip_id, [
            SettlementTransfer(CAROL, BOB, Decimal("12.5")),
        ])

        results = firebase_store.load_results(trip.trip_id)

        assert summary["settlement_ids"] == ["S001"]
        assert results["settlements"] == [{
            "settlement_id": "S001",
            "from_participant": CAROL,
            "to_participant": BOB,
            "amount": 12.5,
        }]

    def test_balances_and_explanations_replace_previous(self, trip):
        """A participant missing from the latest save has no stored results."""
        zero = {"total_paid": Decimal("0"), "total_share": Decimal("0"), "net_balance": Decimal("0")}
        firebase_store.save_balances(trip.trip_id, {ALICE: zero, CAROL: zero})
        firebase_store.save_explanations(trip.trip_id, [
            {"participant_id": ALICE, "expense_contributions": []},
            {"participant_id": CAROL, "expense_contributions": []},
        ])

        firebase_store.save_balances(trip.trip_id, {ALICE: zero})
        firebase_store.save_explanations(trip.trip_id, [
            {"participant_id": ALICE, "expense_contributions": []},
        ])

        results = firebase_store.load_results(trip.trip_id)

        assert list(results["balances"]) == [ALICE]
        assert [e["participant_id"] for e in results["explanations"]] == [ALICE]

    def test_analytics_and_explanations(self, trip):
        """Analytics and explanations are stored without timestamps on read."""
        firebase_store.save_analytics(trip.trip_id, {"total_trip_cost": 90.0})
        saved = firebase_store.save_explanations(trip.trip_id, [
            {"participant_id": ALICE, "expense_contributions": [], "net_balance": 60.0},
            {"expense_contributions": []},
        ])

        results = firebase_store.load_results(trip.trip_id)

        assert saved["participant_ids"] == [ALICE]
        assert results["analytics"] == {"total_trip_cost": 90.0}
        assert results["explanations"] == [
            {"participant_id": ALICE, "expense_contributions": [], "net_balance": 60.0},
        ]

    def test_empty_results(self, trip):
        """A trip with nothing saved loads empty results."""
        assert firebase_store.load_results(trip.trip_id) == {
            "balances": {},
            "settlements": [],
            "analytics": {},
            "explanations": [],
        }

    def test_invalid_trip_id(self, fake_db):
        """Blank trip IDs are rejected."""
        with pytest.raises(ValueError):
            firebase_store.save_balances("  ", {})


class TestWatchTripResults:
    """Tests for watch_trip_results()."""

    def test_recomputes_on_every_change(self, trip):
        """Each expense change yields balances and transfers for the full list."""
        updates = []

        firebase_store.watch_trip_results(
            trip.trip_id,
            lambda balances, transfers: updates.append((balances, transfers))
        )
        expenses.add_expense(trip.trip_id, 90, ALICE, [ALICE, BOB, CAROL], "2030-01-10")

        initial_balances, initial_transfers = updates[0]
        assert initial_balances == {ALICE: 0, BOB: 0, CAROL: 0}
        assert initial_transfers == []

        balances, transfers = updates[-1]
        assert balances == {ALICE: Decimal("60"), BOB: Decimal("-30"), CAROL: Decimal("-30")}
        assert transfers == [
            SettlementTransfer(BOB, ALICE, Decimal("30")),
            SettlementTransfer(CAROL, ALICE, Decimal("30")),
        ]

    def test_uses_current_participants(self, trip):
        """Participants invited later appear in the next recomputation."""
        updates = []
        firebase_store.watch_trip_results(trip.trip_id, lambda b, t: updates.append(b))

        trips.add_participant(trip.trip_id, "dave@example.com")
        expenses.add_expense(trip.trip_id, 40, "dave@example.com", [ALICE, "dave@example.com"], "2030-01-10")

        assert updates[-1]["dave@example.com"] == Decimal("20")
        assert updates[-1][ALICE] == Decimal("-20")
