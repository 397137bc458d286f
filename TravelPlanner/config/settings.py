"""
Settings Module

Environment-driven settings for the travel planner backend. Values are
read once at import time.

Settings:
    SETTLEMENT_EPSILON: Balances smaller than this (in currency units) are
        treated as settled. Env: SETTLEMENT_EPSILON (default 0.01).
    CURRENCY_SYMBOL: Symbol used when formatting amounts for display.
        Env: CURRENCY_SYMBOL (default ₹).
    LOG_LEVEL: Root log level. Env: LOG_LEVEL (default INFO).
    EXPENSE_ID_PREFIX: Prefix for sequential expense IDs (E001, E002, ...).
"""

import logging
import os
from decimal import Decimal


SETTLEMENT_EPSILON = Decimal(os.environ.get("SETTLEMENT_EPSILON", "0.01"))
CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₹")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
EXPENSE_ID_PREFIX = "E"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = None) -> None:
    """Apply the application log format and level to the root logger."""
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)
