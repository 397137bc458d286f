"""
Splitter Module

This module handles the expense splitting logic for the travel planner.

Features:
    - Equal splitting among the participants sharing an expense
    - Per-participant net balance calculation
    - Decimal arithmetic throughout (no float drift)
    - Permissive handling of payers/splitters missing from the trip

Data Model:
    Input - participants: list of participant emails

    Input - expenses: Expense objects or expense dicts with:
        - amount: number
        - paidBy / paid_by: participant email
        - splitAmong / split_among: list of participant emails

    Output - balances (dict keyed by participant email):
        - Decimal net balance
            - Positive = participant is owed money
            - Negative = participant owes money

Functions:
    compute_balances: Calculate the net balance per participant.
    calculate_balance_breakdown: Paid, share and net per participant.
"""

import logging
from decimal import Decimal, InvalidOperation

from utils import expense_fields, to_decimal

logger = logging.getLogger("travel_planner.splitter")


def _new_entry() -> dict:
    return {"total_paid": Decimal("0"), "total_share": Decimal("0")}


def calculate_balance_breakdown(participants: list[str], expenses: list) -> dict:
    """
    Calculate paid, share and net amounts for every participant.

    For each expense:
        1. The payer's total_paid increases by the full amount
        2. Each splitter's total_share increases by amount / number of splitters

    Args:
        participants: Participant emails. Every one is present in the result,
            including participants with no expenses.
        expenses: Expense objects or expense dicts, in any order.

    Returns:
        dict: Keyed by participant email, each containing Decimal values:
            - total_paid
            - total_share
            - net_balance (total_paid - total_share)

    Notes:
        - The payer does NOT need to be one of the splitters
        - Payers or splitters outside the participant list are added as
          implicit participants rather than dropped
        - An expense with an empty split still credits the payer; the
          split is skipped to avoid dividing by zero
        - Negative, non-finite or non-numeric amounts are skipped; they
          should have been rejected when the expense was created
        - Values are not rounded; callers round for display
    """
    balances = {participant_id: _new_entry() for participant_id in participants}

    for expense in expenses:
        raw_amount, paid_by, split_among = expense_fields(expense)

        try:
            amount = to_decimal(raw_amount)
        except InvalidOperation:
            logger.warning(f"Skipping expense paid by {paid_by}: amount {raw_amount!r} is not a number")
            continue
        if not amount.is_finite() or amount < 0:
            logger.warning(f"Skipping expense paid by {paid_by}: invalid amount {raw_amount!r}")
            continue

        if paid_by not in balances:
            logger.warning(f"Payer {paid_by} is not a trip participant; tracking implicitly")
            balances[paid_by] = _new_entry()
        balances[paid_by]["total_paid"] += amount

        if len(split_among) == 0:
            logger.warning(f"Expense of {amount} paid by {paid_by} has no splitters; payer credited only")
            continue

        share = amount / Decimal(len(split_among))

        for participant_id in split_among:
            if participant_id not in balances:
                logger.warning(f"Splitter {participant_id} is not a trip participant; tracking implicitly")
                balances[participant_id] = _new_entry()
            balances[participant_id]["total_share"] += share

    for entry in balances.values():
        entry["net_balance"] = entry["total_paid"] - entry["total_share"]

    return balances


def compute_balances(participants: list[str], expenses: list) -> dict[str, Decimal]:
    """
    Calculate each participant's net balance from a trip's expenses.

    Positive means the participant is owed money, negative means they owe.
    For expenses that all have at least one splitter the values sum to zero.

    The result does not depend on expense order, and the function never
    mutates its inputs or raises for malformed expenses (see
    calculate_balance_breakdown for how those are handled).
    """
    breakdown = calculate_balance_breakdown(participants, expenses)
    return {
        participant_id: entry["net_balance"]
        for participant_id, entry in breakdown.items()
    }
