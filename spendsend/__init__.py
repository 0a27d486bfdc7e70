"""
Spend & Send - Source Package

The per-diem accounting core of a personal budgeting assistant.
Income for a pay period, minus predictable expenses, is turned into a
daily spending allowance that rolls over from one day to the next.

DESIGN PRINCIPLES:
1. The ledger is the single source of truth for today's balance
2. Days advance lazily, on interaction, never on a timer
3. Overspending is carried forward, never forgiven
4. Every mutation is atomic and auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Spend & Send Team"
