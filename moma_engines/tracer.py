"""
moma_engines.tracer -- Engine invocation tracer emitting MOMA_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps a pure engine function and emits one
    MOMA_ENGINE_TRACE record per call with the engine name and version, a
    fingerprint of the selected inputs, the call outcome and its duration.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; never changes arguments or results.

Invariants enforced:
    - Fingerprints are deterministic: arguments are bound against the
      function signature, so positional and keyword calls hash alike;
      mappings and sets are canonicalized in sorted order; Decimals are
      normalized; category objects hash by id and arrows by
      (label, source, target, amount, date).

Failure modes:
    - A fingerprint field the call did not supply hashes as "null".
    - An engine exception is traced with outcome "error" and re-raised.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from moma_kernel.domain.objects import CategoryObject, Morphism
from moma_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

TRACE_TYPE = "MOMA_ENGINE_TRACE"


def canonical_form(value: Any) -> str:
    """Stable text form of an engine input."""
    match value:
        case None:
            return "null"
        case Enum():
            return str(value.value)
        case bool():
            return "true" if value else "false"
        case Decimal():
            return str(value.normalize())
        case str() | int() | float():
            return str(value)
        case date():
            return value.isoformat()
        case CategoryObject():
            return value.id
        case Morphism():
            return (
                f"{value.label}:{value.source.id}->{value.target.id}"
                f":{canonical_form(value.amount)}:{value.date.isoformat()}"
            )
        case Mapping():
            items = sorted((str(k), canonical_form(v)) for k, v in value.items())
            return "{" + ",".join(f"{k}:{v}" for k, v in items) + "}"
        case set() | frozenset():
            return "{" + ",".join(sorted(canonical_form(v) for v in value)) + "}"
        case list() | tuple():
            return "[" + ",".join(canonical_form(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-char SHA-256 prefix over ``field=value`` pairs in field order."""
    canonical = "|".join(
        f"{name}={canonical_form(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits MOMA_ENGINE_TRACE around a pure engine call."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        def fingerprint(args: tuple, kwargs: dict) -> str:
            if not fingerprint_fields:
                return ""
            bound = signature.bind_partial(*args, **kwargs)
            return compute_input_fingerprint(fingerprint_fields, bound.arguments)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            trace = {
                "trace_type": TRACE_TYPE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint(args, kwargs),
                "function": func.__qualname__,
            }
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                trace["outcome"] = "error"
                trace["error"] = type(exc).__name__
                trace["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
                _logger.warning(TRACE_TYPE, extra=trace)
                raise
            trace["outcome"] = "ok"
            trace["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            _logger.info(TRACE_TYPE, extra=trace)
            return result

        return wrapper

    return decorator
