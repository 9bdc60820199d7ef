"""
Ledger Kernel - period lifecycle and closing validation core.

A double-entry ledger with:
- Balanced, gap-free numbered ledger entries
- Period state machine (open -> closed -> closed_final, reopen as exception)
- Compare-and-set period transitions
- Append-only closure records and balance snapshots
- Closed-period write protection at the service and ORM layers
"""

__version__ = "0.1.0"
