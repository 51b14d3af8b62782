"""
Pocket Ledger - Source Package

Balance ledger and aggregation engine for personal finances and
shared debts between people.

DESIGN PRINCIPLES:
1. Local first: every change is visible immediately
2. The remote store confirms or the change is undone
3. Balances are derived, and drift is detectable and repairable
4. Every mutation is logged as a structured event
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Pocket Ledger Team"
