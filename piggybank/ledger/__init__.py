"""Ledger package: the balance chain and the projection read on top of it."""

from piggybank.ledger.engine import BalanceRecalculationEngine, calculate_new_balance
from piggybank.ledger.projection import BalanceProjection, calculate_actual_balance

__all__ = [
    "BalanceProjection",
    "BalanceRecalculationEngine",
    "calculate_actual_balance",
    "calculate_new_balance",
]
