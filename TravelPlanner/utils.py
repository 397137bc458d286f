"""
Utilities Module

This module provides utility functions and helpers for the travel planner.

Features:
    - Decimal conversion and currency rounding
    - Transparency of cost calculations (per-participant share breakdown)
    - Amount, email and trip date validation
    - Currency and date formatting

Data Model:
    Input - expenses: Expense objects or raw Firestore dicts with:
        - expense_id: string (optional)
        - amount: number
        - paidBy / paid_by: participant email
        - splitAmong / split_among: list of participant emails
        - date: string (YYYY-MM-DD)
        - description: string (optional)

    Input - balances: dict from calculate_balance_breakdown() with:
        - total_paid: Decimal
        - total_share: Decimal
        - net_balance: Decimal

Functions:
    to_decimal: Convert a number to Decimal without float artefacts.
    round_currency: Round a Decimal to 2 places as a float.
    expense_fields: Read amount, payer and splitters from any expense shape.
    explain_participant_share: Get detailed breakdown for one participant.
    explain_all_participants: Get detailed breakdown for all participants.
    format_currency: Format amount with currency symbol.
    validate_amount: Validate if input is a valid monetary amount.
    is_valid_email: Validate a participant email address.
    parse_trip_date: Parse a DD-MM-YYYY trip date.
    format_trip_date: Format a date as DD-MM-YYYY (how trips store dates).
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from config.settings import CURRENCY_SYMBOL


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TRIP_DATE_FORMAT = "%d-%m-%Y"


def to_decimal(value) -> Decimal:
    """
    Convert a number to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Raises:
        InvalidOperation: If the value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidOperation(f"not a number: {value!r}")
    return Decimal(str(value))


def round_currency(value) -> float:
    """
    Round a value to 2 decimal places and convert to float.

    Uses ROUND_HALF_UP, the way amounts are shown to users.
    """
    return float(to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def expense_fields(expense) -> tuple:
    """
    Read (amount, paid_by, split_among) from an expense.

    Accepts Expense objects as well as raw Firestore documents in either
    the mobile client's camelCase keys or snake_case keys. The amount is
    returned as stored, unvalidated.
    """
    if isinstance(expense, dict):
        amount = expense.get("amount")
        paid_by = expense.get("paidBy", expense.get("paid_by"))
        split_among = expense.get("splitAmong", expense.get("split_among")) or []
        return amount, paid_by, list(split_among)
    return expense.amount, expense.paid_by, list(expense.split_among)


def _expense_meta(expense, key: str, default=None):
    if isinstance(expense, dict):
        return expense.get(key, default)
    return getattr(expense, key, default)


def explain_participant_share(
    participant_id: str,
    expenses: list,
    balances: dict
) -> dict:
    """
    Generate detailed explanation of how a participant's share was calculated.

    For each expense the participant splits:
        - Shows expense details (id, description, date, total amount)
        - Shows everyone sharing that expense
        - Shows the participant's share (amount / number of splitters)

    Args:
        participant_id: Email of the participant to explain.
        expenses: List of Expense objects or expense dicts.
        balances: Output from calculate_balance_breakdown().

    Returns:
        dict: Explanation containing:
            - participant_id: string
            - expense_contributions: list of dicts with expense breakdown
            - total_share: float
            - total_paid: float
            - net_balance: float

    Notes:
        - Uses the same equal-split rule as the balance calculator
        - Expenses with an empty split or an unusable amount are left out
        - Amounts rounded to 2 decimal places
    """
    balance_info = balances.get(participant_id, {
        "total_paid": Decimal("0"),
        "total_share": Decimal("0"),
        "net_balance": Decimal("0")
    })

    expense_contributions = []

    for expense in expenses:
        amount, _, split_among = expense_fields(expense)

        if participant_id not in split_among:
            continue

        try:
            expense_amount = to_decimal(amount)
        except InvalidOperation:
            continue
        if not expense_amount.is_finite() or expense_amount < 0:
            continue

        share = expense_amount / Decimal(len(split_among))

        expense_contributions.append({
            "expense_id": _expense_meta(expense, "expense_id", _expense_meta(expense, "id", "N/A")),
            "description": _expense_meta(expense, "description", ""),
            "date": _expense_meta(expense, "date"),
            "total_expense_amount": round_currency(expense_amount),
            "split_among": split_among,
            "num_splitters": len(split_among),
            "participant_share": round_currency(share)
        })

    return {
        "participant_id": participant_id,
        "expense_contributions": expense_contributions,
        "total_share": round_currency(balance_info["total_share"]),
        "total_paid": round_currency(balance_info["total_paid"]),
        "net_balance": round_currency(balance_info["net_balance"])
    }


def explain_all_participants(expenses: list, balances: dict) -> list[dict]:
    """
    Generate detailed explanations for every participant in the balances.

    Returns:
        list[dict]: One explanation per participant, ordered by participant id.
    """
    explanations = [
        explain_participant_share(participant_id, expenses, balances)
        for participant_id in balances
    ]
    explanations.sort(key=lambda x: x["participant_id"])
    return explanations


def format_currency(amount, symbol: str = CURRENCY_SYMBOL) -> str:
    """
    Format a monetary amount with the appropriate currency symbol.

    Returns:
        str: Formatted string like "₹1,234.56" or "-₹30.00".
    """
    value = round_currency(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def validate_amount(value) -> bool:
    """
    Validate if the input is a valid monetary amount.

    Returns:
        bool: True if the value is a finite number greater than zero.
    """
    try:
        amount = to_decimal(value)
    except InvalidOperation:
        return False
    return amount.is_finite() and amount > 0


def is_valid_email(value) -> bool:
    """Check a participant identifier looks like an email address."""
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value.strip()))


def parse_trip_date(date_str: str) -> date:
    """
    Parse a trip date in DD-MM-YYYY format.

    Raises:
        ValueError: If the string is not a valid DD-MM-YYYY date.
    """
    try:
        return datetime.strptime(date_str, TRIP_DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise ValueError(f"trip dates must be in DD-MM-YYYY format, got: {date_str}")


def format_trip_date(value: date) -> str:
    """Format a date as DD-MM-YYYY, the format trips are stored in."""
    return value.strftime(TRIP_DATE_FORMAT)
