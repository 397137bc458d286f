"""
Expenses Module

This module handles all expense-related operations for the travel planner.

Features:
    - Add/edit/delete expenses
    - Track who paid and who shares each expense
    - Reject malformed amounts and unknown participants at ingestion
    - Live subscription to a trip's expense list

Data Model:
    Expense stored at: trips/{trip_id}/expenses/{expense_id}
    Fields (camelCase, shared with the mobile client):
        - amount: float (must be > 0)
        - description: string
        - date: string (YYYY-MM-DD)
        - paidBy: participant email
        - splitAmong: list of participant emails (at least one)
        - createdBy: email of the user who recorded it, or None

Functions:
    add_expense: Add a new expense to a trip.
    get_expense: Get one expense.
    get_expenses: Get all expenses for a trip.
    update_expense: Replace the details of an expense.
    delete_expense: Delete an expense.
    watch_expenses: Subscribe to changes of a trip's expenses.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from google.api_core.exceptions import AlreadyExists

from config.firebase_config import get_db
from config.settings import EXPENSE_ID_PREFIX
from exceptions import ExpenseNotFoundError, InvalidExpenseError
from trips import get_trip
from utils import round_currency, to_decimal, validate_amount

logger = logging.getLogger("travel_planner.expenses")

MAX_ID_ATTEMPTS = 5


class Expense:
    """
    Represents a single expense in a trip.

    Attributes:
        expense_id (str): Document ID (E### for expenses added here).
        amount (Decimal): Amount of the expense.
        paid_by (str): Email of the participant who paid.
        split_among (list[str]): Emails of the participants sharing the cost.
        date (str): Date of the expense (YYYY-MM-DD).
        description (str): What the expense was for.
        created_by (str | None): Email of the user who recorded the expense.
    """

    def __init__(
        self,
        expense_id: Optional[str],
        amount,
        paid_by: str,
        split_among: list[str],
        date: str,
        description: str = "",
        created_by: Optional[str] = None
    ):
        self.expense_id = expense_id
        self.amount = amount
        self.paid_by = paid_by
        self.split_among = split_among
        self.date = date
        self.description = description
        self.created_by = created_by

    def to_dict(self) -> dict:
        """Convert expense to dictionary for Firestore storage."""
        return {
            "amount": round_currency(self.amount),
            "description": self.description,
            "date": self.date,
            "paidBy": self.paid_by,
            "splitAmong": list(self.split_among),
            "createdBy": self.created_by
        }

    @classmethod
    def from_dict(cls, data: dict, expense_id: Optional[str] = None) -> "Expense":
        """
        Create an Expense instance from a Firestore document.

        The amount is kept as stored; documents written by other clients
        are not re-validated here.
        """
        amount = data.get("amount")
        try:
            amount = to_decimal(amount)
        except InvalidOperation:
            pass
        return cls(
            expense_id=expense_id or data.get("expense_id"),
            amount=amount,
            paid_by=data.get("paidBy"),
            split_among=list(data.get("splitAmong") or []),
            date=data.get("date"),
            description=data.get("description", ""),
            created_by=data.get("createdBy")
        )

    def __repr__(self) -> str:
        """Return string representation of expense."""
        return f"Expense(id='{self.expense_id}', paid_by='{self.paid_by}', amount={self.amount}, split={len(self.split_among)})"


def _expenses_ref(db, trip_id: str):
    return db.collection("trips").document(trip_id).collection("expenses")


def _generate_next_expense_id(trip_id: str) -> str:
    """
    Generate the next sequential expense ID for a trip.

    Format: E001, E002, E003, ...

    IDs not in E### format (for example auto-generated IDs from the
    mobile client) are ignored when finding the highest number.
    """
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    max_num = 0
    pattern = re.compile(rf"^{EXPENSE_ID_PREFIX}(\d+)$")

    for doc in _expenses_ref(db, trip_id).stream():
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return f"{EXPENSE_ID_PREFIX}{max_num + 1:03d}"


def _validate_date(date_str: str, field_name: str) -> bool:
    """
    Validate date string format (YYYY-MM-DD).

    Raises:
        InvalidExpenseError: If date format is invalid.
    """
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
        return True
    except (TypeError, ValueError):
        raise InvalidExpenseError(f"{field_name} must be in YYYY-MM-DD format, got: {date_str}")


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def _validate_amount(amount) -> Decimal:
    """
    Validate an expense amount and return it as a Decimal.

    Raises:
        InvalidExpenseError: If the amount is not a finite number > 0.
    """
    if not validate_amount(amount):
        raise InvalidExpenseError(f"amount must be a finite number greater than 0, got: {amount!r}")
    return to_decimal(amount)


def _validate_split(trip_id: str, paid_by: str, split_among: list[str]) -> list[str]:
    """
    Check the payer and splitters against the trip's participant list.

    Returns:
        list[str]: Splitters with duplicates removed, order preserved.

    Raises:
        InvalidExpenseError: If the split is empty or names a non-participant.
        TripNotFoundError: If the trip does not exist.
    """
    if not isinstance(split_among, (list, tuple)) or len(split_among) == 0:
        raise InvalidExpenseError("At least one person must split the expense")

    participants = set(get_trip(trip_id).participants)

    if paid_by not in participants:
        raise InvalidExpenseError(f"paid_by '{paid_by}' is not a participant of trip {trip_id}")

    for participant_id in split_among:
        if participant_id not in participants:
            raise InvalidExpenseError(f"'{participant_id}' is not a participant of trip {trip_id}")

    return list(dict.fromkeys(split_among))


def add_expense(
    trip_id: str,
    amount,
    paid_by: str,
    split_among: list[str],
    date: str,
    description: str = "",
    created_by: Optional[str] = None
) -> Expense:
    """
    Add a new expense to a trip.

    Args:
        trip_id: The ID of the trip.
        amount: Amount of the expense (finite, > 0).
        paid_by: Email of the participant who paid.
        split_among: Emails of the participants sharing the cost.
        date: Date of the expense (YYYY-MM-DD).
        description: What the expense was for.
        created_by: Email of the user recording the expense.

    Returns:
        Expense: The created expense object.

    Raises:
        InvalidExpenseError: If the amount, date or split is invalid.
        TripNotFoundError: If the trip does not exist.
        RuntimeError: If Firestore is not available or no free ID is found.

    Notes:
        - The payer does NOT have to be one of the splitters
        - No cost splitting is performed here
    """
    _validate_non_empty_string(trip_id, "trip_id")
    _validate_non_empty_string(paid_by, "paid_by")
    _validate_date(date, "date")
    value = _validate_amount(amount)
    splitters = _validate_split(trip_id, paid_by, split_among)

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    expense = Expense(
        expense_id=None,
        amount=value,
        paid_by=paid_by,
        split_among=splitters,
        date=date,
        description=description.strip() if description else "",
        created_by=created_by
    )

    # create() fails if another writer took the ID since it was read
    for _ in range(MAX_ID_ATTEMPTS):
        expense.expense_id = _generate_next_expense_id(trip_id)
        try:
            _expenses_ref(db, trip_id).document(expense.expense_id).create(expense.to_dict())
            break
        except AlreadyExists:
            logger.warning(f"Expense ID {expense.expense_id} already taken in trip {trip_id}; retrying")
    else:
        raise RuntimeError(f"Could not allocate an expense ID in trip {trip_id}")

    logger.info(f"Expense added: {expense.expense_id} ({value}) paid by {paid_by} in trip {trip_id}")

    return expense


def get_expense(trip_id: str, expense_id: str) -> Expense:
    """
    Get a single expense.

    Raises:
        ExpenseNotFoundError: If the expense does not exist.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(trip_id, "trip_id")
    _validate_non_empty_string(expense_id, "expense_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc = _expenses_ref(db, trip_id).document(expense_id).get()
    if not doc.exists:
        raise ExpenseNotFoundError(f"Expense {expense_id} not found in trip {trip_id}")

    return Expense.from_dict(doc.to_dict(), expense_id=doc.id)


def get_expenses(trip_id: str) -> list[Expense]:
    """
    Get all expenses for a trip, newest first.

    Raises:
        ValueError: If trip_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(trip_id, "trip_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    expenses = [
        Expense.from_dict(doc.to_dict(), expense_id=doc.id)
        for doc in _expenses_ref(db, trip_id).stream()
    ]
    # Sorted client-side; ordering in the query would need an index
    expenses.sort(key=lambda e: (e.date or "", e.expense_id or ""), reverse=True)
    return expenses


def update_expense(
    trip_id: str,
    expense_id: str,
    amount,
    paid_by: str,
    split_among: list[str],
    date: str,
    description: str = ""
) -> Expense:
    """
    Replace the details of an existing expense.

    Applies the same validation as add_expense. The original creator is kept.

    Raises:
        ExpenseNotFoundError: If the expense does not exist.
        InvalidExpenseError: If the new details are invalid.
    """
    existing = get_expense(trip_id, expense_id)

    _validate_non_empty_string(paid_by, "paid_by")
    _validate_date(date, "date")
    value = _validate_amount(amount)
    splitters = _validate_split(trip_id, paid_by, split_among)

    expense = Expense(
        expense_id=expense_id,
        amount=value,
        paid_by=paid_by,
        split_among=splitters,
        date=date,
        description=description.strip() if description else "",
        created_by=existing.created_by
    )

    db = get_db()
    _expenses_ref(db, trip_id).document(expense_id).update(expense.to_dict())
    logger.info(f"Expense updated: {expense_id} in trip {trip_id}")

    return expense


def delete_expense(trip_id: str, expense_id: str) -> None:
    """
    Delete an expense.

    Raises:
        ExpenseNotFoundError: If the expense does not exist.
    """
    get_expense(trip_id, expense_id)

    db = get_db()
    _expenses_ref(db, trip_id).document(expense_id).delete()
    logger.info(f"Expense deleted: {expense_id} from trip {trip_id}")


def watch_expenses(trip_id: str, on_change: Callable[[list[Expense]], None]):
    """
    Subscribe to a trip's expenses.

    on_change receives the full expense list on the initial snapshot and
    again after every change. Call unsubscribe() on the returned watch
    to stop listening.
    """
    _validate_non_empty_string(trip_id, "trip_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    def _on_snapshot(col_snapshot, changes, read_time):
        on_change([
            Expense.from_dict(doc.to_dict(), expense_id=doc.id)
            for doc in col_snapshot
        ])

    return _expenses_ref(db, trip_id).on_snapshot(_on_snapshot)
