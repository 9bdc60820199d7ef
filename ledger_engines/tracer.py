"""
ledger_engines.tracer -- Engine invocation tracer emitting LEDGER_ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    engine invocations with structured trace logging: engine_name,
    engine_version, input_fingerprint (SHA-256 of selected inputs) and
    duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; uses its own logger namespace
    (``ledger_kernel.engines.tracer``) so engines stay free of kernel
    logging setup.

Invariants enforced:
    - Fingerprints are deterministic: dict keys are sorted and sequences
      keep their order; the digest is truncated to 16 hex characters.
    - The decorator never mutates inputs or the return value.

Usage:
    from ledger_engines.tracer import traced_engine

    @traced_engine("treasury_reconciliation", "1.0", fingerprint_fields=("tolerance",))
    def reconcile(self, *, accounts, tolerance):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable
from typing import Any

_logger = logging.getLogger("ledger_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    """Stable string form of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """
    Deterministic fingerprint of the selected keyword arguments.

    Missing fields are recorded as "null".
    """
    parts = [f"{field}={_canonicalize(kwargs.get(field))}" for field in fingerprint_fields]
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits LEDGER_ENGINE_TRACE for pure engine invocations."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                fp = compute_input_fingerprint(fingerprint_fields, kwargs)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "LEDGER_ENGINE_TRACE",
                extra={
                    "trace_type": "LEDGER_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
