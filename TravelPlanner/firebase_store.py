"""
Firebase Store Module

This module saves and loads computed trip results in Firestore and keeps
them current when a trip's expenses change.

Features:
    - Save balances per participant (stale entries are removed)
    - Save settlement transfers (stale transfers are removed)
    - Save analytics summary
    - Save explanations per participant (stale entries are removed)
    - Load all stored results
    - Recompute balances and transfers on every expense change

Firestore Structure:
    trips/{trip_id}/results/balances/balances/{participant_email}
        - participant_id, total_paid, total_share, net_balance, updated_at

    trips/{trip_id}/results/settlements/settlements/{settlement_id}
        - settlement_id (S001, S002, ...), from_participant,
          to_participant, amount, updated_at

    trips/{trip_id}/results/analytics/analytics/summary
        - total_trip_cost, cost_per_participant, daily_spending,
          highest_spending_day, payer_totals, updated_at

    trips/{trip_id}/results/explanations/explanations/{participant_email}
        - participant_id, expense_contributions, total_share,
          total_paid, net_balance, updated_at

Functions:
    save_balances: Save participant balances to Firestore.
    save_settlements: Save settlement transfers to Firestore.
    save_analytics: Save analytics summary to Firestore.
    save_explanations: Save explanations to Firestore.
    load_results: Load every stored result for a trip.
    watch_trip_results: Recompute results whenever expenses change.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from config.firebase_config import get_db
from expenses import watch_expenses
from settlement import SettlementTransfer, simplify_debts
from splitter import compute_balances
from trips import get_trip
from utils import round_currency

logger = logging.getLogger("travel_planner.firebase_store")


def _get_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _validate_trip_id(trip_id: str) -> None:
    """
    Validate that trip_id is a non-empty string.

    Raises:
        ValueError: If trip_id is invalid.
    """
    if not isinstance(trip_id, str) or not trip_id.strip():
        raise ValueError("trip_id must be a non-empty string")


def _get_db():
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")
    return db


def _results_collection(db, trip_id: str, name: str):
    return db.collection("trips").document(trip_id) \
             .collection("results").document(name) \
             .collection(name)


def _clear_collection(collection) -> None:
    """Delete every document in a results collection before it is rewritten."""
    for doc in collection.stream():
        doc.reference.delete()


def save_balances(trip_id: str, balances: dict) -> dict:
    """
    Save participant balances to Firestore.

    Existing balance documents are deleted first, so participants no
    longer in the trip do not keep a stale balance.

    Args:
        trip_id: The ID of the trip.
        balances: Output of calculate_balance_breakdown(), keyed by email.

    Returns:
        dict: Summary of saved documents with count and participant IDs.

    Raises:
        ValueError: If trip_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_trip_id(trip_id)
    db = _get_db()

    timestamp = _get_timestamp()
    collection = _results_collection(db, trip_id, "balances")
    _clear_collection(collection)
    saved_ids = []

    for participant_id, balance_data in balances.items():
        collection.document(participant_id).set({
            "participant_id": participant_id,
            "total_paid": round_currency(balance_data.get("total_paid", 0)),
            "total_share": round_currency(balance_data.get("total_share", 0)),
            "net_balance": round_currency(balance_data.get("net_balance", 0)),
            "updated_at": timestamp
        })
        saved_ids.append(participant_id)

    return {
        "saved_count": len(saved_ids),
        "participant_ids": saved_ids,
        "updated_at": timestamp
    }


def save_settlements(trip_id: str, transfers: list[SettlementTransfer]) -> dict:
    """
    Save settlement transfers to Firestore.

    Existing transfer documents are deleted first, so a shorter list
    does not leave stale transfers behind. IDs are sequential (S001, S002, ...)
    in the order the simplifier produced them.

    Raises:
        ValueError: If trip_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_trip_id(trip_id)
    db = _get_db()

    timestamp = _get_timestamp()
    collection = _results_collection(db, trip_id, "settlements")

    _clear_collection(collection)

    saved_ids = []
    for index, transfer in enumerate(transfers, start=1):
        settlement_id = f"S{index:03d}"
        doc_data = transfer.to_dict()
        doc_data["settlement_id"] = settlement_id
        doc_data["updated_at"] = timestamp
        collection.document(settlement_id).set(doc_data)
        saved_ids.append(settlement_id)

    return {
        "saved_count": len(saved_ids),
        "settlement_ids": saved_ids,
        "updated_at": timestamp
    }


def save_analytics(trip_id: str, analytics: dict) -> dict:
    """
    Save analytics summary to Firestore as a single document.

    Raises:
        ValueError: If trip_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_trip_id(trip_id)
    db = _get_db()

    timestamp = _get_timestamp()
    doc_data = dict(analytics)
    doc_data["updated_at"] = timestamp

    _results_collection(db, trip_id, "analytics").document("summary").set(doc_data)

    return {
        "saved": True,
        "path": f"trips/{trip_id}/results/analytics/analytics/summary",
        "updated_at": timestamp
    }


def save_explanations(trip_id: str, explanations: list[dict]) -> dict:
    """
    Save participant explanations to Firestore, replacing earlier ones.

    Args:
        trip_id: The ID of the trip.
        explanations: Output of explain_all_participants().

    Returns:
        dict: Summary of saved documents with count and participant IDs.
    """
    _validate_trip_id(trip_id)
    db = _get_db()

    timestamp = _get_timestamp()
    collection = _results_collection(db, trip_id, "explanations")
    _clear_collection(collection)
    saved_ids = []

    for explanation in explanations:
        participant_id = explanation.get("participant_id")
        if not participant_id:
            continue

        doc_data = dict(explanation)
        doc_data["updated_at"] = timestamp
        collection.document(participant_id).set(doc_data)
        saved_ids.append(participant_id)

    return {
        "saved_count": len(saved_ids),
        "participant_ids": saved_ids,
        "updated_at": timestamp
    }


def load_results(trip_id: str) -> dict:
    """
    Load every stored result for a trip.

    Returns:
        dict: balances (keyed by email), settlements (ordered by ID),
              analytics (empty if never saved) and explanations.
    """
    _validate_trip_id(trip_id)
    db = _get_db()

    balances = {}
    for doc in _results_collection(db, trip_id, "balances").stream():
        data = doc.to_dict()
        balances[doc.id] = {
            "total_paid": data.get("total_paid", 0),
            "total_share": data.get("total_share", 0),
            "net_balance": data.get("net_balance", 0)
        }

    settlements = []
    for doc in _results_collection(db, trip_id, "settlements").stream():
        data = doc.to_dict()
        settlements.append({
            "settlement_id": data.get("settlement_id", doc.id),
            "from_participant": data.get("from_participant"),
            "to_participant": data.get("to_participant"),
            "amount": data.get("amount")
        })
    settlements.sort(key=lambda s: s["settlement_id"])

    analytics = {}
    analytics_doc = _results_collection(db, trip_id, "analytics").document("summary").get()
    if analytics_doc.exists:
        analytics = analytics_doc.to_dict()
        analytics.pop("updated_at", None)

    explanations = []
    for doc in _results_collection(db, trip_id, "explanations").stream():
        data = doc.to_dict()
        data.pop("updated_at", None)
        explanations.append(data)

    return {
        "balances": balances,
        "settlements": settlements,
        "analytics": analytics,
        "explanations": explanations
    }


def watch_trip_results(trip_id: str, on_results: Callable[[dict, list], None]):
    """
    Keep balances and transfers current for a trip.

    Subscribes to the trip's expenses. On the initial snapshot and after
    every change, balances are recomputed from the full expense list
    against the current participant list, and
    on_results(balances, transfers) is called.

    Returns:
        The Firestore watch; call unsubscribe() to stop.
    """
    _validate_trip_id(trip_id)

    def _recompute(expenses):
        participants = get_trip(trip_id).participants
        balances = compute_balances(participants, expenses)
        transfers = simplify_debts(balances)
        logger.debug(f"Recomputed trip {trip_id}: {len(expenses)} expenses, {len(transfers)} transfers")
        on_results(balances, transfers)

    return watch_expenses(trip_id, _recompute)
