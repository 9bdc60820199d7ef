"""Kernel services - flush-only writers; callers own commit/rollback."""
