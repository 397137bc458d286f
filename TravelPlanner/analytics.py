"""
Analytics Module

This module provides analytics and reporting features for the travel planner.

Features:
    - Total trip cost and cost per head
    - Daily spending analysis
    - Highest spending day identification
    - Per-participant payer totals
    - Smart warnings for spending imbalances and unsplit expenses

Data Model:
    Input - participants: list of participant emails

    Input - expenses: Expense objects or expense dicts with:
        - amount: number
        - paidBy / paid_by: participant email
        - splitAmong / split_among: list of participant emails
        - date: string (YYYY-MM-DD)

    Output - dict containing:
        - analytics: dict with total_trip_cost, daily_spending, etc.
        - warnings: list of warning strings

Functions:
    generate_analytics: Generate analytics and warnings from expense data.
"""

from collections import defaultdict
from decimal import Decimal, InvalidOperation

from utils import expense_fields, format_currency, round_currency, to_decimal


def _expense_date(expense):
    if isinstance(expense, dict):
        return expense.get("date")
    return expense.date


def generate_analytics(participants: list[str], expenses: list) -> dict:
    """
    Generate analytics and smart warnings from expense data.

    Analytics computed:
        - total_trip_cost: Sum of all expense amounts
        - cost_per_participant: total_trip_cost / number of participants
        - daily_spending: Total amount spent per date
        - highest_spending_day: Date and amount of maximum daily spend
        - payer_totals: Total amount paid by each participant

    Warnings generated (rule-based):
        - If one participant paid > 40% of the trip cost (3+ participants)
        - If a day's spend > 2x average daily spend
        - If an expense has nobody to split it

    Args:
        participants: Participant emails.
        expenses: Expense objects or expense dicts.

    Returns:
        dict: Contains two keys:
            - analytics: dict with the values above
            - warnings: list of warning strings

    Notes:
        - Amounts rounded to 2 decimal places
        - Expenses with unusable amounts are ignored, like in the splitter
    """
    daily_totals = defaultdict(Decimal)
    payer_totals = defaultdict(Decimal)
    total_spent = Decimal("0")
    unsplit = 0

    for expense in expenses:
        raw_amount, paid_by, split_among = expense_fields(expense)
        try:
            amount = to_decimal(raw_amount)
        except InvalidOperation:
            continue
        if not amount.is_finite() or amount < 0:
            continue

        daily_totals[_expense_date(expense)] += amount
        payer_totals[paid_by] += amount
        total_spent += amount
        if not split_among:
            unsplit += 1

    highest_spending_day = {"date": None, "amount": 0.0}
    if daily_totals:
        max_date = max(daily_totals, key=daily_totals.get)
        highest_spending_day = {
            "date": max_date,
            "amount": round_currency(daily_totals[max_date])
        }

    per_head = total_spent / Decimal(len(participants)) if participants else Decimal("0")

    analytics = {
        "total_trip_cost": round_currency(total_spent),
        "cost_per_participant": round_currency(per_head),
        "daily_spending": {
            day: round_currency(amount) for day, amount in daily_totals.items()
        },
        "highest_spending_day": highest_spending_day,
        "payer_totals": {
            payer: round_currency(amount) for payer, amount in payer_totals.items()
        }
    }

    warnings = []

    # With two people one of them always covers more than 40%
    if total_spent > 0 and len(participants) >= 3:
        for payer, amount in payer_totals.items():
            percentage = amount / total_spent * 100
            if percentage > 40:
                warnings.append(
                    f"Warning: {payer} paid {round_currency(percentage)}% of the trip cost "
                    f"({format_currency(amount)} of {format_currency(total_spent)})"
                )

    if len(daily_totals) > 1:
        avg_daily = total_spent / Decimal(len(daily_totals))
        for day, amount in daily_totals.items():
            if amount > avg_daily * 2:
                warnings.append(
                    f"Warning: Spending on {day} ({format_currency(amount)}) "
                    f"exceeds 2x average daily spend ({format_currency(avg_daily)})"
                )

    if unsplit:
        warnings.append(
            f"Warning: {unsplit} expense(s) have nobody to split them; "
            f"only the payer is credited"
        )

    return {
        "analytics": analytics,
        "warnings": warnings
    }
