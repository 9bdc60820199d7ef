"""Selectors - read-only query services returning DTOs."""
