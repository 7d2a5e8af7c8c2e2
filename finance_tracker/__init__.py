"""
Finance Tracker - Core Package

A personal finance tracker that records income, expense, transfer and
save-to-goal transactions across three balances (bank, cash, savings).

DESIGN PRINCIPLES:
1. Balances are always the replay of the stored transactions
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation is logged
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
