"""
Piggy Bank - Source Package

An exercise reward ledger: every day the user exercises adds the reward
rate to a virtual piggy bank, every missed day halves it, and rewards
are cashed out against the balance.

DESIGN PRINCIPLES:
1. Money is Decimal, rounded one way, everywhere
2. Derived numbers (balance, streak) are recomputed, never cached
3. No silent corrections
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Piggy Bank Team"
