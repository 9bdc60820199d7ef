"""Database layer - engine, base classes, types, and immutability."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import create_tables, get_engine, get_session
from ledger_kernel.db.types import Money, ShortCode, round_money

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "ShortCode",
    "round_money",
]
