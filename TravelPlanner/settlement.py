"""
Settlement Module

This module handles the settlement calculations for the travel planner.

Features:
    - Convert net balances into settlement transfers
    - Keep the number of transfers low using a greedy matching
    - Deterministic output for a given balance mapping
    - Ignore rounding dust below a configurable tolerance

Data Model:
    Input - balances (dict keyed by participant email):
        - net balance as Decimal, int, float or numeric string
          (positive = owed money, negative = owes money)

    Output - list of SettlementTransfer:
        - from_participant: string (debtor who pays)
        - to_participant: string (creditor who receives)
        - amount: Decimal

Functions:
    simplify_debts: Convert balances into settlement transfers.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from config.settings import SETTLEMENT_EPSILON
from utils import round_currency, to_decimal

logger = logging.getLogger("travel_planner.settlement")


@dataclass(frozen=True)
class SettlementTransfer:
    """A single payment instruction: from_participant pays to_participant."""
    from_participant: str
    to_participant: str
    amount: Decimal

    def to_dict(self) -> dict:
        """Convert the transfer to a dictionary for JSON or Firestore."""
        return {
            "from_participant": self.from_participant,
            "to_participant": self.to_participant,
            "amount": round_currency(self.amount)
        }


def simplify_debts(balances: dict, epsilon: Decimal = SETTLEMENT_EPSILON) -> list[SettlementTransfer]:
    """
    Convert net balances into a short list of settlement transfers.

    Uses a greedy algorithm:
        1. Split participants into debtors (balance < -epsilon) and
           creditors (balance > epsilon); everyone else is settled
        2. Sort debtors most negative first, creditors most positive first
           (stable sorts, so ties keep the order of the input mapping)
        3. Walk both lists: the current debtor pays the current creditor
           min(|debt|, credit), both remainders are updated, and each cursor
           moves on once its remainder is within epsilon of zero
        4. Stop when either list runs out

    Args:
        balances: Net balance per participant.
        epsilon: Balances with an absolute value below this count as zero.

    Returns:
        list[SettlementTransfer]: At most debtors + creditors - 1 transfers.

    Notes:
        - For balances that sum to zero every debt and credit is discharged
        - Balances that do not sum to zero are settled as far as possible;
          the remainder is dropped and logged
        - Non-numeric or non-finite balances are skipped and logged
        - Does NOT modify the input mapping

    Raises:
        ValueError: If epsilon is negative or not finite.
    """
    epsilon = to_decimal(epsilon)
    if not epsilon.is_finite() or epsilon < 0:
        raise ValueError(f"epsilon must be a finite non-negative number, got {epsilon}")

    debtors = []    # [participant_id, balance], balance negative
    creditors = []  # [participant_id, balance], balance positive
    total = Decimal("0")

    for participant_id, value in balances.items():
        try:
            net = to_decimal(value)
        except InvalidOperation:
            logger.warning(f"Skipping balance of {participant_id}: {value!r} is not a number")
            continue
        if not net.is_finite():
            logger.warning(f"Skipping balance of {participant_id}: invalid value {value!r}")
            continue

        total += net
        if net < -epsilon:
            debtors.append([participant_id, net])
        elif net > epsilon:
            creditors.append([participant_id, net])

    if abs(total) >= epsilon and total != 0:
        logger.warning(f"Balances sum to {total}, not zero; settlement will be partial")

    debtors.sort(key=lambda x: x[1])
    creditors.sort(key=lambda x: x[1], reverse=True)

    transfers = []
    debtor_idx = 0
    creditor_idx = 0

    while debtor_idx < len(debtors) and creditor_idx < len(creditors):
        debtor = debtors[debtor_idx]
        creditor = creditors[creditor_idx]

        amount = min(abs(debtor[1]), creditor[1])
        transfers.append(SettlementTransfer(debtor[0], creditor[0], amount))

        debtor[1] += amount
        creditor[1] -= amount

        # min() leaves at least one remainder at exactly zero
        if debtor[1] == 0 or abs(debtor[1]) < epsilon:
            debtor_idx += 1
        if creditor[1] == 0 or creditor[1] < epsilon:
            creditor_idx += 1

    return transfers
