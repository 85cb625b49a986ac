"""
Financia - Source Package

Personal finance backend: transactions, budgets, goals and debts, with a
short-lived undo for every change.

DESIGN PRINCIPLES:
1. Every mutation can be reverted for a few seconds
2. Undo never double-applies a reversal
3. Failures are reported, never swallowed
4. Every step is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Financia Team"
